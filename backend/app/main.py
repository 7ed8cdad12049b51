"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from app.core.config import settings
from app.core.container import ServiceContainer
from app.core.errors import ServiceError, ValidationError
from app.core.logging import log_error, log_warning, setup_logging
from app.core.metrics import get_content_type, get_metrics, set_app_info
from app.core.middleware import (
    CorrelationIdMiddleware,
    MetricsMiddleware,
    RequestLoggingMiddleware,
)
from app.modules.history.router import router as history_router
from app.modules.transcoding.router import router as transcoding_router
from app.modules.video.router import router as video_router

logger = logging.getLogger(__name__)


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """Build the application.

    Args:
        container: Pre-built services; built from settings at startup if None
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "container", None) is None:
            app.state.container = ServiceContainer.from_settings(settings)
        await app.state.container.startup()
        try:
            yield
        finally:
            await app.state.container.shutdown()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="""
## Video Upload & Transcoding API

Clients upload videos straight to object storage with a presigned URL, then
ask for a transcode to one of the quality presets. Every upload and transcode
is recorded in the caller's history.

### Authentication

All endpoints except `/health` and `/metrics` require a JWT Bearer token
(access or ID token) carrying an `email` claim.

```
Authorization: Bearer <token>
```
        """,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        openapi_tags=[
            {"name": "health", "description": "Health check endpoints"},
            {"name": "videos", "description": "Upload descriptors, listings and playable URLs"},
            {"name": "transcoding", "description": "Transcode an uploaded video to a preset"},
            {"name": "history", "description": "Upload and transcode history"},
        ],
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware, log_request_body=False)
    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(MetricsMiddleware)

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        if exc.status_code >= 500:
            log_error(logger, exc.message, kind=exc.kind, path=request.url.path)
        else:
            log_warning(logger, exc.message, kind=exc.kind, path=request.url.path)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        parts = []
        for item in exc.errors():
            field = ".".join(str(loc) for loc in item["loc"] if loc != "body")
            parts.append(f"{field}: {item['msg']}")
        error = ValidationError("; ".join(parts))
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Prometheus exposition."""
        return Response(content=get_metrics(), media_type=get_content_type())

    app.include_router(video_router, prefix=settings.API_V1_PREFIX)
    app.include_router(transcoding_router, prefix=settings.API_V1_PREFIX)
    app.include_router(history_router, prefix=settings.API_V1_PREFIX)

    return app


setup_logging(
    level="DEBUG" if settings.DEBUG else settings.LOG_LEVEL,
    json_format=settings.LOG_JSON,
    include_stack_trace=True,
)

set_app_info(
    version=settings.VERSION,
    environment="development" if settings.DEBUG else "production",
)

app = create_app()
