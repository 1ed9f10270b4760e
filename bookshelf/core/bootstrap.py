import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
import signal
import sys
from types import FrameType
from typing import Any
from uuid import uuid4

from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import APIRouter, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from sentry_sdk.integrations.asgi import SentryAsgiMiddleware
import uvicorn

from .auth import router as auth_router
from .auth.services import AuthService
from .config import Settings, default_settings
from .database import DatabaseManager
from .exceptions import AppError
from .logger import get_logger, setup_logger
from .plugins import PluginManager
from .routers import sys_router
from .sentry import SentryManager
from .utilities import (
    app_exception_handler,
    check_all_resources,
    custom_validation_exception_handler,
)

###############################################################################

logger = get_logger(__name__)


def _register_all_plugins() -> None:
    """Register core plugins. Setup runs in this order, teardown in reverse."""
    plugin_mgr = PluginManager.get_instance()

    plugin_mgr.register("database", DatabaseManager.get_instance())
    plugin_mgr.register("sentry", SentryManager.get_instance())
    plugin_mgr.register("auth", AuthService.get_instance())
    logger.debug("Plugin manager setup complete")


async def _setup_all(settings: Settings) -> None:
    logger.info("Initializing all plugins...")
    success = await PluginManager.get_instance().setup(settings)
    if not success:
        logger.warning("Some plugins failed to initialize, but continuing startup")

    db_manager = DatabaseManager.get_instance()
    if db_manager.engine is not None and settings.is_development:
        # migrations own the schema outside development
        await db_manager.init_db_models()


async def _teardown_all() -> None:
    logger.info("Tearing down all plugins...")
    success = await PluginManager.get_instance().teardown()
    if not success:
        logger.warning("Some plugins failed to teardown properly")


def _add_middlewares(app: FastAPI, settings: Settings, middlewares: list[Any] | None = None) -> None:
    # NOTE: Middleware must be added before the application starts
    if settings.gzip_enabled:
        app.add_middleware(GZipMiddleware, minimum_size=settings.gzip_min_size)

    trusted_hosts = settings.allowed_hosts or ["*"]
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=trusted_hosts)

    if settings.cors_enabled:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=settings.cors_credentials,
            allow_methods=settings.cors_allow_methods,
            allow_headers=settings.cors_allow_headers,
            expose_headers=settings.cors_expose_headers,
        )

    ## add x-request-id header to each request for tracing
    app.add_middleware(
        CorrelationIdMiddleware,
        header_name="X-Request-ID",
        generator=lambda: uuid4().hex,
    )

    if settings.sentry_dsn:
        app.add_middleware(SentryAsgiMiddleware)

    if middlewares:
        for middleware in middlewares:
            app.add_middleware(middleware)


async def refresh_status(app: FastAPI, settings: Settings, verbose: bool = False) -> None:
    """
    Refresh status of all plugins, logging a summary when verbose is True.
    """
    await check_all_resources(app, settings)
    if not verbose:
        return

    latest_status_info = getattr(app.state, "latest_status_info", {})
    db_health = latest_status_info.get("db", {})

    logger.debug("=========================================================")
    logger.debug(
        f"\tWe are running '{settings.app_name}' - {settings.app_version} on {settings.environment} in {'DEBUG' if settings.is_debug else 'NON-DEBUG'} mode."
    )
    if db_health.get("response", False):
        logger.debug(f"\tDB\t: {db_health}")
    else:
        logger.error(f"\tDB\t: {db_health}")
    logger.debug(f"\tSentry\t: {latest_status_info.get('sentry', {})}")
    logger.debug(f"\tAuth\t: {latest_status_info.get('auth', {})}")
    logger.debug("=========================================================")


def create_app(
    settings: Settings | None = None,
    routers: list[APIRouter] | None = None,
    middlewares: list[Any] | None = None,
    **kwargs: Any,
) -> FastAPI:
    """
    Create a FastAPI application.

    Args:
        settings: The configuration object. If None, the default settings are used.
        routers: List of additional routers to include.
        middlewares: List of additional middlewares to add.
        **kwargs: Other FastAPI parameters.

    Returns:
        A FastAPI application instance.
    """
    if settings is None:
        settings = default_settings

    # Setup logging as early as possible to ensure logs are captured
    setup_logger(
        settings.is_debug,
        settings.log_level,
        settings.log_format,
        settings.log_file,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Starting application...")
        try:
            await _setup_all(settings)
            await refresh_status(app, settings, settings.is_debug)
        except AppError as exp:
            logger.critical(f"Application startup failed: {exp}")

        yield

        try:
            await _teardown_all()
            logger.info("Shutting down application...")
        except AppError as e:
            logger.critical(f"Error during shutdown: {e}")

    app = FastAPI(
        lifespan=lifespan,
        docs_url="/docs" if settings.is_debug else None,
        redoc_url="/redoc" if settings.is_debug else None,
        openapi_url="/openapi.json" if settings.is_debug else None,
        version=settings.app_version,
        title=settings.app_name,
        description=settings.app_description,
        debug=settings.is_debug,
        **kwargs,
    )
    app.state.settings = settings

    _register_all_plugins()
    _add_middlewares(app, settings, middlewares)

    app.include_router(auth_router)
    app.include_router(sys_router)
    if routers:
        for router in routers:
            app.include_router(router)

    app.add_exception_handler(RequestValidationError, custom_validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(AppError, app_exception_handler)  # type: ignore[arg-type]

    return app


def run_app(
    app: FastAPI,
    reload: bool | None = None,
    workers: int | None = None,
    **kwargs: Any,
) -> None:
    """
    Run the FastAPI application with uvicorn.

    Args:
        app: The FastAPI application instance.
        reload: Whether to enable auto-reloading.
        workers: The number of worker processes.
        **kwargs: Other uvicorn parameters.
    """
    settings = app.state.settings if hasattr(app.state, "settings") else default_settings

    config_kwargs: dict[str, Any] = {
        "host": settings.host,
        "port": settings.port,
        "log_level": "debug" if settings.is_debug else "info",
        "reload": reload if reload is not None else settings.is_debug,
        "workers": workers or settings.workers,
    }
    if settings.timeout_keep_alive:
        config_kwargs["timeout_keep_alive"] = settings.timeout_keep_alive
    config_kwargs.update(kwargs)

    server = uvicorn.Server(uvicorn.Config(app, **config_kwargs))

    # Graceful shutdown
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def handle_signal(sig: int, frame: FrameType | None) -> None:
        logger.warning(f"Received signal {sig}, shutting down...")
        server.should_exit = True

    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, handle_signal, sig, None)

    loop.run_until_complete(server.serve())
