"""Gymdesk API - composition root and ASGI application.

Invariants:
    - create_app() builds every process-scoped object once: ExecutionContext,
      StorageInitializer, ConnectionCache, RouteTable
    - Persistent mode: storage ensured and database connected during startup;
      a connection failure aborts startup (uvicorn exits)
    - Ephemeral mode: startup connection failure is logged only; the readiness
      gate retries per request and storage is ensured lazily
    - /uploads static serving exists only in persistent mode
"""

import logging
from contextlib import asynccontextmanager
from functools import partial
from typing import Iterable

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from gymdesk.api.pipeline import install_pipeline, install_routes
from gymdesk.api.routes import default_handler_groups, system
from gymdesk.config import Settings, get_settings
from gymdesk.core.domain_types import StorageArea
from gymdesk.core.errors import GymdeskError
from gymdesk.core.execution_context import ExecutionContext, resolve
from gymdesk.core.route_table import HandlerGroup, compose
from gymdesk.infrastructure.database import ConnectionCache, open_session_manager
from gymdesk.infrastructure.observability import attach_file_logging, setup_logging
from gymdesk.infrastructure.storage import StorageInitializer

logger = logging.getLogger(__name__)


async def startup(app: FastAPI) -> None:
    """Eager initialization; fatal only in persistent mode."""
    context: ExecutionContext = app.state.context
    settings: Settings = app.state.settings
    cache: ConnectionCache = app.state.connection_cache

    if not context.is_ephemeral:
        app.state.storage.ensure()
        if settings.log_to_file:
            attach_file_logging(
                app.state.storage.path_for(StorageArea.LOGS), settings.log_format,
            )

    try:
        await cache.ensure_connected()
    except GymdeskError as e:
        if not context.is_ephemeral:
            logger.critical(f"Failed to start server: {e.message}")
            raise
        logger.error(
            f"Startup database connection failed, will retry per request: {e.message}",
            extra={"platform": context.platform.value},
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    context: ExecutionContext = app.state.context
    await startup(app)
    logger.info(
        f"Gymdesk API started ({context.environment})",
        extra={"platform": context.platform.value},
    )
    yield
    logger.info("Gymdesk API shutting down")
    await app.state.connection_cache.dispose()


def build_connection_cache(settings: Settings, context: ExecutionContext) -> ConnectionCache:
    return ConnectionCache(
        context.database_uri,
        connect_timeout=settings.db_connect_timeout_seconds,
        connector=partial(
            open_session_manager,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
        ),
    )


def create_app(
    settings: Settings | None = None,
    *,
    handler_groups: Iterable[HandlerGroup] | None = None,
    connection_cache: ConnectionCache | None = None,
    context: ExecutionContext | None = None,
) -> FastAPI:
    """Compose the application for the resolved execution context."""
    if settings is None:
        settings = get_settings()
    if context is None:
        context = resolve(settings)
    setup_logging(settings.log_level, settings.log_format)

    app = FastAPI(title="Gymdesk API", version=system.SERVICE_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.context = context
    app.state.storage = StorageInitializer(context)
    if connection_cache is None:
        connection_cache = build_connection_cache(settings, context)
    app.state.connection_cache = connection_cache

    groups = list(handler_groups) if handler_groups is not None else default_handler_groups()
    table = compose(groups)
    app.state.route_table = table

    install_pipeline(app, context, settings.max_body_bytes)
    app.include_router(system.router)
    install_routes(app, table)

    if not context.is_ephemeral:
        app.mount(
            "/uploads",
            StaticFiles(directory=context.area_path(StorageArea.UPLOADS), check_dir=False),
            name="uploads",
        )

    logger.info(
        f"Registered {len(table)} route bindings",
        extra={"platform": context.platform.value},
    )
    return app


app = create_app()
