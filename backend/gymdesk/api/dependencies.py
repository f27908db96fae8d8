"""Request Dependencies - the surface collaborators use to reach process-scoped state.

Invariants:
    - require_database is the readiness gate: attached to every collaborator mount,
      it runs after route matching and before any collaborator code
    - A gate failure always becomes DatabaseUnavailableError (500); the process stays up
    - storage_area() returns None for an unavailable area instead of failing the request
"""

from pathlib import Path
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from gymdesk.core.domain_types import StorageArea
from gymdesk.core.errors import DatabaseUnavailableError, GymdeskError
from gymdesk.core.execution_context import ExecutionContext
from gymdesk.infrastructure.database import ConnectionCache
from gymdesk.infrastructure.storage import StorageInitializer


def get_context(request: Request) -> ExecutionContext:
    return request.app.state.context


def get_connection_cache(request: Request) -> ConnectionCache:
    return request.app.state.connection_cache


def get_storage(request: Request) -> StorageInitializer:
    return request.app.state.storage


async def require_database(request: Request) -> None:
    """Readiness gate: ensure the shared connection exists before dispatch."""
    cache = get_connection_cache(request)
    try:
        await cache.ensure_connected()
    except GymdeskError as e:
        raise DatabaseUnavailableError(e.message) from e


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    await require_database(request)
    async with get_connection_cache(request).session() as session:
        yield session


def storage_area(area: StorageArea):
    """Dependency factory: directory for area, or None when unavailable."""

    def _resolve(request: Request) -> Path | None:
        return get_storage(request).path_for(area)

    return _resolve
