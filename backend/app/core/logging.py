"""Structured logging with correlation IDs.

Every record is rendered as one JSON object carrying the request's
correlation ID so that the upload, encode and store steps of one transcode
can be followed across log lines. Pipeline errors add their ``kind`` and,
for encoder failures, the captured FFmpeg diagnostics.
"""

import json
import logging
import sys
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional

from app.core.errors import EncodeFailure, ServiceError

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Attributes every LogRecord has; anything else was passed through ``extra``
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "correlation_id"}

_NOISY_LOGGERS = (
    "uvicorn.access",
    "sqlalchemy.engine",
    "botocore",
    "boto3",
    "s3transfer",
    "urllib3",
)


def get_correlation_id() -> str:
    """Get the current correlation ID or generate a new one."""
    cid = correlation_id_var.get()
    if cid is None:
        cid = str(uuid.uuid4())
        correlation_id_var.set(cid)
    return cid


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    correlation_id_var.set(None)


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter with correlation ID support."""

    def __init__(self, service: str = "video-transcoding", include_stack_trace: bool = True):
        super().__init__()
        self.service = service
        self.include_stack_trace = include_stack_trace

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None) or correlation_id_var.get(),
        }

        if record.levelno >= logging.WARNING:
            log_data["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info and record.exc_info[1] is not None:
            log_data["exception"] = self._format_exception(record.exc_info)

        extra_fields = {}
        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS:
                continue
            try:
                json.dumps(value)
                extra_fields[key] = value
            except (TypeError, ValueError):
                extra_fields[key] = str(value)
        if extra_fields:
            log_data["extra"] = extra_fields

        return json.dumps(log_data, default=str)

    def _format_exception(self, exc_info) -> dict[str, Any]:
        exc = exc_info[1]
        data: dict[str, Any] = {"type": type(exc).__name__, "message": str(exc)}
        if isinstance(exc, ServiceError):
            data["kind"] = exc.kind
        if isinstance(exc, EncodeFailure) and exc.diagnostics:
            data["diagnostics"] = exc.diagnostics.splitlines()
        if self.include_stack_trace and exc_info[2] is not None:
            data["stack_trace"] = traceback.format_exception(*exc_info)
        return data


class CorrelationIdFilter(logging.Filter):
    """Stamps the current correlation ID onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get()
        return True


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    include_stack_trace: bool = True,
) -> None:
    """Set up application logging.

    Replaces any handlers on the root logger, so calling it twice is harmless.

    Args:
        level: Log level name
        json_format: Use JSON structured logging
        include_stack_trace: Include stack traces for logged exceptions
    """
    numeric_level = getattr(logging, level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CorrelationIdFilter())
    if json_format:
        handler.setFormatter(StructuredFormatter(include_stack_trace=include_stack_trace))
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s [%(correlation_id)s] %(message)s"
        ))

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(numeric_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def log_error(
    logger: logging.Logger,
    message: str,
    exception: Optional[BaseException] = None,
    **extra: Any,
) -> None:
    """Log an error with correlation ID and optional exception."""
    extra["correlation_id"] = get_correlation_id()
    logger.error(message, exc_info=exception, extra=extra)


def log_warning(logger: logging.Logger, message: str, **extra: Any) -> None:
    extra["correlation_id"] = get_correlation_id()
    logger.warning(message, extra=extra)


def log_info(logger: logging.Logger, message: str, **extra: Any) -> None:
    extra["correlation_id"] = get_correlation_id()
    logger.info(message, extra=extra)
