"""FastAPI diagnostics application.

Exposes health, readiness, embedding provider status and Prometheus metrics
for the semantic subsystem.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from forum_vectors import __version__
from forum_vectors.config import get_settings
from forum_vectors.exceptions import ErrorCode, ForumVectorError
from forum_vectors.logging_config import get_logger, setup_logging
from forum_vectors.observability import (
    MetricsMiddleware,
    get_metrics,
    get_metrics_content_type,
)
from forum_vectors.service import SemanticService, build_semantic_service

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Builds the semantic service unless one was injected and closes it on
    shutdown.
    """
    # Startup
    settings = get_settings()
    setup_logging(level=settings.log_level)
    owns_service = getattr(app.state, "service", None) is None
    if owns_service:
        app.state.service = build_semantic_service(settings)
    logger.info(
        "Starting forum vectors diagnostics",
        extra={
            "version": __version__,
            "environment": settings.environment.value,
        },
    )

    yield

    # Shutdown
    logger.info("Shutting down forum vectors diagnostics")
    if owns_service:
        await app.state.service.close()


def create_app(service: SemanticService | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        service: Semantic service to expose. Built on startup if omitted.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Forum Vectors",
        description="Diagnostics for semantic search and recommendations",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.service = service

    app.add_middleware(MetricsMiddleware)

    # Register exception handlers
    app.add_exception_handler(ForumVectorError, forum_vector_exception_handler)

    # Register routes
    app.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/ready", readiness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/live", liveness_check, methods=["GET"], tags=["Health"])
    app.add_api_route(
        "/status/providers",
        provider_status,
        methods=["GET"],
        tags=["Status"],
    )
    app.add_api_route(
        "/metrics",
        metrics_endpoint,
        methods=["GET"],
        tags=["Observability"],
        include_in_schema=False,
    )

    return app


def get_service(request: Request) -> SemanticService:
    """Service attached to the app, built lazily when lifespan did not run."""
    service = getattr(request.app.state, "service", None)
    if service is None:
        service = build_semantic_service()
        request.app.state.service = service
    return service


async def forum_vector_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle ForumVectorError exceptions.

    Converts exceptions to structured JSON responses.
    """
    if not isinstance(exc, ForumVectorError):
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": ErrorCode.INTERNAL_ERROR.value,
                    "message": str(exc),
                    "details": {},
                }
            },
        )

    logger.error(
        f"Request failed: {exc.message}",
        extra={
            "error_code": exc.code.value,
            "path": request.url.path,
            "details": exc.details,
        },
    )

    return JSONResponse(
        status_code=_get_status_code(exc.code),
        content=exc.to_dict(),
    )


def _get_status_code(error_code: ErrorCode) -> int:
    """Map error code to HTTP status code."""
    if error_code in (
        ErrorCode.BAD_REQUEST,
        ErrorCode.DIMENSION_MISMATCH,
        ErrorCode.INVALID_FILTER,
    ):
        return 400

    if error_code in (
        ErrorCode.COLLECTION_NOT_FOUND,
        ErrorCode.POINT_NOT_FOUND,
        ErrorCode.PROFILE_UNAVAILABLE,
    ):
        return 404

    if error_code is ErrorCode.EMBEDDING_RATE_LIMITED:
        return 429

    if error_code in (
        ErrorCode.STORE_UNAVAILABLE,
        ErrorCode.SEARCH_UNAVAILABLE,
        ErrorCode.EMBEDDING_UNAVAILABLE,
    ):
        return 503

    return 500


async def health_check() -> dict[str, Any]:
    """Basic health check endpoint.

    Returns:
        Health status with version and timestamp.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def readiness_check(request: Request) -> dict[str, Any]:
    """Readiness check.

    The vector store being down does not make the process unready; vector
    features degrade and callers fall back, so the status reads ``degraded``.
    """
    service = get_service(request)
    store_ready = await service.is_ready()
    checks = {
        "config": "ok",
        "vector_store": "ok" if store_ready else "unavailable",
    }

    return {
        "status": "ready" if store_ready else "degraded",
        "checks": checks,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def liveness_check() -> dict[str, str]:
    """Liveness check.

    Returns:
        Liveness status.
    """
    return {"status": "alive"}


async def provider_status(request: Request) -> dict[str, Any]:
    """Rate-limit window and backoff remaining per embedding provider."""
    service = get_service(request)
    statuses = service.get_provider_status()
    return {
        "providers": [status.model_dump() for status in statuses.values()],
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def metrics_endpoint() -> Response:
    """Prometheus metrics in text exposition format."""
    return Response(content=get_metrics(), media_type=get_metrics_content_type())


# Create the application instance
app = create_app()


def run() -> None:
    """Serve the diagnostics app on the configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "forum_vectors.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
