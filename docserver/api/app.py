"""FastAPI application entry point.

Configures the application with logging, exception handling, metrics
and health checks.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from docserver import __version__
from docserver.api.routes import router
from docserver.config import get_settings
from docserver.exceptions import DocServerError, ErrorCode
from docserver.logging_config import get_logger, setup_logging
from docserver.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    get_metrics_content_type,
)
from docserver.vectorstore.factory import VectorStoreFactory

logger = get_logger(__name__)

STATUS_CODES: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.PACKAGE_NOT_FOUND: 404,
    ErrorCode.DOCUMENT_NOT_FOUND: 404,
    ErrorCode.EMBEDDING_SERVICE_ERROR: 502,
    ErrorCode.STORE_NOT_READY: 503,
}


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Creates the vector store on startup and closes it on shutdown.
    """
    settings = get_settings()
    setup_logging(level=settings.log_level)
    logger.info(
        "Starting documentation server",
        extra={
            "version": __version__,
            "environment": settings.environment.value,
            "store": settings.database.type.value,
        },
    )

    await VectorStoreFactory.create()

    yield

    logger.info("Shutting down documentation server")
    await VectorStoreFactory.close()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="MCP Document Server",
        description="Version-specific documentation search",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )

    app.add_middleware(MetricsMiddleware)
    app.add_exception_handler(DocServerError, docserver_exception_handler)

    app.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/ready", readiness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/live", liveness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], tags=["Observability"])
    app.include_router(router)

    return app


async def docserver_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Convert DocServerError exceptions to structured JSON responses."""
    if not isinstance(exc, DocServerError):
        return JSONResponse(
            status_code=500,
            content={"error": {"code": ErrorCode.INTERNAL_ERROR.value, "message": str(exc), "details": {}}},
        )

    status_code = STATUS_CODES.get(exc.code, 500)
    log = logger.warning if status_code < 500 else logger.error
    log(
        f"Request failed: {exc.message}",
        extra={
            "error_code": exc.code.value,
            "path": request.url.path,
            "details": exc.details,
        },
    )

    return JSONResponse(status_code=status_code, content=exc.to_dict())


async def health_check() -> dict[str, Any]:
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def readiness_check() -> dict[str, Any]:
    """Readiness probe: the vector store must be initialized."""
    store = VectorStoreFactory.current()
    checks: dict[str, str] = {
        "config": "ok",
        "vector_store": "ok" if store is not None and store.is_ready else "unavailable",
    }

    all_ok = all(v == "ok" for v in checks.values())

    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def liveness_check() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "alive"}


async def metrics_endpoint() -> Response:
    """Expose Prometheus metrics."""
    return Response(content=get_metrics(), media_type=get_metrics_content_type())


# Create the application instance
app = create_app()
