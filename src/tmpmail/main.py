"""tmpmail - Main FastAPI Application

Disposable inbox service. This module wires together:
- The shared in-memory message store and its expiry sweeper
- The SMTP listener feeding that store (started in the app lifespan)
- The mailbox query API and observability endpoints

Run with:
    python -m tmpmail.main
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .inbox.router import router as inbox_router
from .observability.logging_config import configure_logging
from .observability.middleware import RequestIDMiddleware
from .observability.router import router as observability_router
from .smtp.listener import SMTPListener
from .store.expiring_store import ExpiringStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    - Startup: start the store sweeper and, if enabled, bind the mail
      listener. A bind failure aborts startup.
    - Shutdown: stop the listener (open connections are dropped) and the
      sweeper.
    """
    settings: Settings = app.state.settings
    store: ExpiringStore = app.state.store

    logger.info("tmpmail starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    sweeper = asyncio.create_task(
        store.run_sweeper(settings.STORE_SWEEP_INTERVAL_SECONDS)
    )

    listener: Optional[SMTPListener] = None
    try:
        if app.state.start_listener:
            listener = SMTPListener.from_settings(store, settings)
            await listener.start()
        app.state.listener = listener

        yield

    finally:
        logger.info("tmpmail shutting down...")
        if listener is not None:
            await listener.stop()
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ExpiringStore] = None,
    start_listener: Optional[bool] = None,
) -> FastAPI:
    """Application factory.

    Args:
        settings: Settings to use (defaults to environment settings)
        store: Message store to share with the listener (defaults to a new
            store with the configured TTL)
        start_listener: Whether the lifespan starts the SMTP listener
            (defaults to START_SMTP_WITH_API)

    Returns:
        FastAPI: Configured application
    """
    settings = settings or get_settings()
    if store is None:
        store = ExpiringStore(ttl_seconds=settings.MAIL_TTL_SECONDS)
    if start_listener is None:
        start_listener = settings.START_SMTP_WITH_API

    docs_enabled = settings.ENVIRONMENT != "production"
    app = FastAPI(
        title="tmpmail API",
        description="Disposable inbox: receive mail over SMTP, read it over HTTP",
        version="0.1.0",
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.start_listener = start_listener
    app.state.listener = None

    # =========================================================================
    # MIDDLEWARE CONFIGURATION
    # =========================================================================

    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in settings.CORS_ORIGINS.split(",")],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
        max_age=3600,
    )

    # =========================================================================
    # EXCEPTION HANDLERS
    # =========================================================================

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError
    ) -> JSONResponse:
        """Return a structured error body with field-level details."""
        logger.warning(f"Validation error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": "validation_error",
                "message": "Request validation failed",
                "details": exc.errors(),
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception
    ) -> JSONResponse:
        """Log full details, return a generic error to the client."""
        logger.error(
            f"Unhandled exception on {request.method} {request.url.path}",
            exc_info=exc
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "internal_error",
                "message": "An unexpected error occurred. Please try again later.",
            },
        )

    # =========================================================================
    # ROUTER REGISTRATION
    # =========================================================================

    app.include_router(observability_router)
    app.include_router(inbox_router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, Any]:
        return {
            "name": "tmpmail API",
            "version": "0.1.0",
            "status": "running",
            "docs": "/docs" if docs_enabled else None,
        }

    return app


def main() -> None:
    """Run the API (and by default the mail listener) under uvicorn."""
    import uvicorn

    settings = get_settings()
    configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)
    uvicorn.run(
        create_app(settings),
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
