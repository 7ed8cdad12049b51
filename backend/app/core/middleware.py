"""HTTP middleware: correlation IDs, request logs and Prometheus metrics.

Probe endpoints (``/health``, ``/metrics``) are left out of request logs and
metrics so scrapers do not drown out upload and transcode traffic.
"""

import logging
import re
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from app.core.logging import clear_correlation_id, log_error, log_info, set_correlation_id
from app.core.metrics import (
    HTTP_REQUEST_DURATION_SECONDS,
    HTTP_REQUESTS_IN_PROGRESS,
    HTTP_REQUESTS_TOTAL,
)

logger = logging.getLogger("app.requests")

PROBE_PATHS = frozenset({"/health", "/metrics"})

_NUMERIC_SEGMENT = re.compile(r"/\d+(?=/|$)")
_UUID_SEGMENT = re.compile(
    r"/[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}(?=/|$)",
    re.IGNORECASE,
)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Counts requests and observes latency per method and endpoint."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in PROBE_PATHS:
            return await call_next(request)

        method = request.method
        in_flight_label = self._normalize_path(request.url.path)
        HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=in_flight_label).inc()

        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            endpoint = self._endpoint_label(request)
            HTTP_REQUEST_DURATION_SECONDS.labels(method=method, endpoint=endpoint).observe(
                time.perf_counter() - started
            )
            HTTP_REQUESTS_TOTAL.labels(
                method=method, endpoint=endpoint, status_code=str(status_code)
            ).inc()
            HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=in_flight_label).dec()

    def _endpoint_label(self, request: Request) -> str:
        # Matched routes expose their template, e.g. /api/v1/videos/{video_id}/url
        route = request.scope.get("route")
        template = getattr(route, "path_format", None)
        if template:
            return template
        return self._normalize_path(request.url.path)

    def _normalize_path(self, path: str) -> str:
        """Collapse numeric and UUID path segments into ``{id}``."""
        path = _UUID_SEGMENT.sub("/{id}", path)
        return _NUMERIC_SEGMENT.sub("/{id}", path)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Adopts the caller's X-Correlation-ID or mints one, and echoes it back."""

    CORRELATION_ID_HEADER = "X-Correlation-ID"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(self.CORRELATION_ID_HEADER) or str(uuid.uuid4())
        set_correlation_id(correlation_id)
        try:
            response = await call_next(request)
            response.headers[self.CORRELATION_ID_HEADER] = correlation_id
            return response
        finally:
            clear_correlation_id()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs one line per finished request, or the error that escaped it.

    Request bodies here are small JSON documents (upload and transcode
    requests), so they can be logged when ``log_request_body`` is set.
    """

    def __init__(self, app: ASGIApp, log_request_body: bool = False):
        super().__init__(app)
        self.log_request_body = log_request_body

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in PROBE_PATHS:
            return await call_next(request)

        fields = {
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
        }
        if request.query_params:
            fields["query"] = str(request.query_params)
        if self.log_request_body and request.method in ("POST", "PUT", "PATCH"):
            body = await request.body()
            fields["body"] = body.decode("utf-8", errors="replace")

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            log_error(logger, "Request failed", exception=exc, duration_ms=_elapsed_ms(started), **fields)
            raise

        log_info(
            logger,
            f"{request.method} {request.url.path} -> {response.status_code}",
            status_code=response.status_code,
            duration_ms=_elapsed_ms(started),
            **fields,
        )
        return response


__all__ = [
    "MetricsMiddleware",
    "CorrelationIdMiddleware",
    "RequestLoggingMiddleware",
]
