"""
Messenger Relay Service - FastAPI Application Entry Point.

This module provides the FastAPI application instance with middleware,
routes, exception handlers, and lifecycle management of the relay state.
"""

import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request

from src.api import router
from src.config.constants import SERVICE_DESCRIPTION, SERVICE_NAME, SERVICE_VERSION, SHUTDOWN_TIMEOUT
from src.config.settings import Settings, get_settings
from src.exceptions.base_exceptions import setup_exception_handlers
from src.services.service_container import ServiceContainer
from src.utils.logger import get_logger, setup_logging

# Initialize logger
logger = get_logger(__name__)


def install_loop_exception_handler(container: ServiceContainer) -> Optional[Callable[..., Any]]:
    """
    Flush conversation memory when the event loop reports an unhandled error.

    Returns the handler that was installed before, for restoring at shutdown.
    """
    loop = asyncio.get_running_loop()
    previous = loop.get_exception_handler()

    def handle_exception(loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        exc = context.get("exception")
        logger.error(
            "Unhandled event loop error",
            message=context.get("message"),
            error=str(exc) if exc else None,
            exc_info=exc
        )
        container.store.flush()

    loop.set_exception_handler(handle_exception)
    return previous


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    settings: Settings = app.state.settings

    setup_logging(settings.LOG_LEVEL.value, settings.LOG_FORMAT)

    logger.info(
        "Messenger Relay starting",
        version=SERVICE_VERSION,
        environment=settings.ENVIRONMENT.value,
        debug=settings.DEBUG,
        host=settings.HOST,
        port=settings.PORT
    )

    missing = settings.missing_credentials()
    if missing:
        logger.warning("Missing credentials, related features will fail", missing=missing)

    container: Optional[ServiceContainer] = getattr(app.state, "container", None)
    if container is None:
        container = ServiceContainer(settings)
        app.state.container = container

    await container.start()
    previous_handler = install_loop_exception_handler(container)
    logger.info("Messenger Relay startup completed")

    try:
        yield
    finally:
        logger.info("Shutting down Messenger Relay...")
        try:
            await asyncio.wait_for(container.stop(), timeout=SHUTDOWN_TIMEOUT)
            logger.info("Messenger Relay shutdown completed successfully")
        except Exception as e:
            logger.error("Error during shutdown", error=str(e), exc_info=True)
        finally:
            asyncio.get_running_loop().set_exception_handler(previous_handler)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure FastAPI application instance."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Messenger Relay API",
        description=SERVICE_DESCRIPTION,
        version=SERVICE_VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url=None,
    )
    app.state.settings = settings

    setup_middleware(app)
    setup_exception_handlers(app)
    app.include_router(router)

    return app


def setup_middleware(app: FastAPI) -> None:
    """Configure application middleware."""

    # Request ID middleware
    @app.middleware("http")
    async def add_request_id_middleware(request: Request, call_next):
        """Add unique request ID to all requests."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    # Request timing middleware
    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        """Add processing time header to responses."""
        start_time = time.perf_counter()
        response = await call_next(request)
        process_time = time.perf_counter() - start_time
        response.headers["X-Process-Time"] = str(round(process_time * 1000, 2))
        return response


def main() -> None:
    """Main entry point for running the service."""
    settings = get_settings()

    uvicorn_config = {
        "app": "src.main:app",
        "host": settings.HOST,
        "port": settings.PORT,
        "log_level": settings.LOG_LEVEL.value.lower(),
        "access_log": True,
        "server_header": False,
    }

    if settings.is_development():
        uvicorn_config.update({
            "reload": settings.DEBUG,
            "reload_dirs": ["src/"],
        })

    logger.info(
        "Starting Messenger Relay server",
        service=SERVICE_NAME,
        host=settings.HOST,
        port=settings.PORT,
        environment=settings.ENVIRONMENT.value
    )

    uvicorn.run(**uvicorn_config)


# Create the FastAPI app instance
app = create_app()

if __name__ == "__main__":
    main()
