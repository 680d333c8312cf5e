"""
Application factory for the DealDesk API.

Builds the FastAPI application: logging, exception handlers, the admission
control middleware, API routers and the lifespan that owns the shared counter
store and the admission pipeline.
"""

import logging
import time
import traceback
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from dealdesk.core.config.settings import Settings, get_settings
from dealdesk.core.exceptions import ConfigurationError, StoreUnavailableError
from dealdesk.core.interfaces.services.counter_store_interface import ICounterStore
from dealdesk.core.logging_config import setup_logging
from dealdesk.infrastructure.security.rate_limiting.providers import (
    create_admission_pipeline,
    create_counter_store,
)
from dealdesk.presentation.api.v1.api_router import api_v1_router
from dealdesk.presentation.middleware.rate_limiting import AdmissionControlMiddleware

logger = logging.getLogger(__name__)


# --- Helper Functions ---
def _initialize_sentry(settings: Settings) -> None:
    """Initializes Sentry if DSN is provided."""
    if settings.SENTRY_DSN:
        logger.info("Sentry DSN found, initializing Sentry.")
        try:
            sentry_sdk.init(
                dsn=str(settings.SENTRY_DSN),
                traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
                environment=settings.ENVIRONMENT,
                release=settings.API_VERSION,
            )
        except Exception as e:
            logger.error(f"Failed to initialize Sentry: {e}", exc_info=True)
    else:
        logger.info("Sentry DSN not provided, skipping Sentry initialization.")


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for FastAPI application.

    Handles application startup and shutdown operations:
    1. Creates the shared counter store and checks connectivity
    2. Builds the admission pipeline from the settings
    3. Initializes Sentry (if configured)
    4. Closes the counter store on shutdown
    """
    current_settings: Settings = fastapi_app.state.settings
    store: ICounterStore = fastapi_app.state.counter_store_override or create_counter_store(current_settings)

    try:
        await store.ping()
        logger.info("Counter store connection successfully established")
    except StoreUnavailableError as e:
        # Admission fails open until the store comes back
        logger.error(f"Counter store unreachable at startup, admission control will fail open: {e}")

    try:
        pipeline = create_admission_pipeline(current_settings, store, fastapi_app.state.clock)
    except ConfigurationError:
        await store.close()
        raise

    fastapi_app.state.counter_store = store
    fastapi_app.state.admission_pipeline = pipeline

    _initialize_sentry(current_settings)

    logger.info("Application startup complete.")
    yield

    logger.info("Application is shutting down.")
    fastapi_app.state.admission_pipeline = None
    await store.close()
    logger.info("Counter store closed.")


def create_application(
    settings_override: Settings | None = None,
    store_override: ICounterStore | None = None,
    clock: Callable[[], float] | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings_override: Settings to use instead of the global ones
        store_override: Counter store to use instead of the configured backend
        clock: Time source of the admission layer, defaults to ``time.time``

    Returns:
        Configured FastAPI application
    """
    current_settings = settings_override or get_settings()
    setup_logging(level=current_settings.LOG_LEVEL)

    app_instance = FastAPI(
        title=current_settings.API_TITLE,
        description=current_settings.API_DESCRIPTION,
        version=current_settings.API_VERSION,
        lifespan=lifespan,
    )

    @app_instance.exception_handler(StoreUnavailableError)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
        """Administrative operations do not fail open: report the outage."""
        logger.error(f"Counter store unavailable on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "success": False,
                "message": "Rate limiting store is temporarily unavailable.",
                "error": {"code": exc.code, "details": {"operation": exc.operation}},
            },
        )

    @app_instance.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Handle all unhandled exceptions with a generic error message.

        No stack trace or exception detail is leaked to clients.
        """
        logger.error(f"Unhandled exception: {type(exc).__name__}: {exc!s}")
        logger.debug(traceback.format_exc())
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "An internal server error occurred."},
        )

    app_instance.state.settings = current_settings
    app_instance.state.counter_store_override = store_override
    app_instance.state.clock = clock or time.time
    app_instance.state.admission_pipeline = None

    if current_settings.RATE_LIMITING_ENABLED:
        app_instance.add_middleware(
            AdmissionControlMiddleware,
            exclude_paths=current_settings.RATE_LIMIT_EXEMPT_PATHS,
            trust_forwarded_for=current_settings.RATE_LIMIT_TRUST_FORWARDED_FOR,
        )
    else:
        logger.warning("Rate limiting is disabled by configuration")

    app_instance.include_router(api_v1_router, prefix=current_settings.API_V1_STR)

    @app_instance.get("/health", include_in_schema=False)
    async def health(request: Request) -> dict[str, str]:
        store: ICounterStore | None = getattr(request.app.state, "counter_store", None)
        counter_store = "unknown"
        if store is not None:
            try:
                counter_store = "ok" if await store.ping() else "degraded"
            except StoreUnavailableError:
                counter_store = "degraded"
        return {"status": "ok", "counter_store": counter_store}

    logger.info("Application factory complete.")
    return app_instance
