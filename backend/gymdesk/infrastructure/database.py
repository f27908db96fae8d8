"""Database Connection Cache - single-flight connection establishment and pooled sessions.

Invariants:
    - At most one connection attempt is in flight per process; concurrent callers
      await the same asyncio.Task and observe the same outcome
    - CONNECTED is terminal: later calls return immediately
    - FAILED is not cached: the next call starts a fresh attempt
    - Missing DATABASE_URL fails the attempt with ConfigurationError (never defaulted here)
    - Every attempt is bounded by connect_timeout
    - Every session auto-rolls-back on exception (no partial commits leak)

Design Decisions:
    - ConnectionCache is an injectable object owned by create_app() and kept on
      app.state, not a module-level flag
    - asyncio.shield around the shared task: a cancelled request does not cancel
      the attempt other requests are waiting on
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable

from sqlalchemy import text
from sqlalchemy.exc import (
    IntegrityError, OperationalError, DBAPIError, SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)

from gymdesk.core.domain_types import ConnectionStatus
from gymdesk.core.errors import (
    ConfigurationError, DatabaseConnectionError, DatabaseError, ErrorContext,
    GymdeskError,
)

logger = logging.getLogger(__name__)


class DatabaseSessionManager:
    """Manages async database sessions with pooling, rollback, and health checks."""

    def __init__(
        self, database_url: str, pool_size: int = 5, max_overflow: int = 10,
    ):
        engine_kwargs = {"pool_pre_ping": True}
        # SQLite engines use a static/null pool that rejects sizing arguments
        if not database_url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=pool_size, max_overflow=max_overflow, pool_recycle=3600,
            )
        self.engine = create_async_engine(database_url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide session with auto-rollback on exception."""
        session = self._session_factory()
        try:
            yield session
        except IntegrityError as e:
            await session.rollback()
            logger.error(f"DB integrity error: {e}")
            raise DatabaseError("Integrity constraint violated", "commit")
        except OperationalError as e:
            await session.rollback()
            logger.error(f"DB operational error: {e}")
            raise DatabaseError("Connection or operational error", "execute")
        except DBAPIError as e:
            await session.rollback()
            logger.error(f"DB driver error: {e}")
            raise DatabaseError("Database driver error", "query")
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"SQLAlchemy error: {e}")
            raise DatabaseError("Database operation failed", "unknown")
        finally:
            await session.close()

    async def ping(self) -> None:
        """Open a pooled connection and run SELECT 1. Raises on failure."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def health_check(self) -> bool:
        """Check database connectivity (for readiness probes)."""
        try:
            await self.ping()
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


Connector = Callable[[str], Awaitable[DatabaseSessionManager]]


async def open_session_manager(
    database_url: str, pool_size: int = 5, max_overflow: int = 10,
) -> DatabaseSessionManager:
    """Default connector: build the engine and prove it can reach the server."""
    manager = DatabaseSessionManager(
        database_url, pool_size=pool_size, max_overflow=max_overflow,
    )
    try:
        await manager.ping()
    except BaseException:
        await manager.dispose()
        raise
    return manager


class ConnectionCache:
    """Process-wide connection state with single-flight ensure_connected()."""

    def __init__(
        self,
        database_uri: str | None,
        *,
        connect_timeout: float | None = 10.0,
        connector: Connector = open_session_manager,
    ):
        self.database_uri = database_uri
        self.connect_timeout = connect_timeout
        self._connector = connector
        self.status = ConnectionStatus.DISCONNECTED
        self.last_error: GymdeskError | None = None
        self.session_manager: DatabaseSessionManager | None = None
        self.attempts = 0
        self._inflight: asyncio.Task | None = None

    @property
    def connected(self) -> bool:
        return self.status is ConnectionStatus.CONNECTED

    async def ensure_connected(self) -> None:
        """Return once connected; raise the attempt's error otherwise."""
        if self.status is ConnectionStatus.CONNECTED:
            return
        task = self._inflight
        if task is None or task.get_loop() is not asyncio.get_running_loop():
            task = self._start_attempt()
        await asyncio.shield(task)

    def _start_attempt(self) -> asyncio.Task:
        self.attempts += 1
        self.status = ConnectionStatus.CONNECTING
        task = asyncio.get_running_loop().create_task(self._attempt(self.attempts))
        task.add_done_callback(_consume_exception)
        self._inflight = task
        return task

    async def _attempt(self, attempt: int) -> None:
        try:
            if not self.database_uri:
                raise ConfigurationError(
                    "DATABASE_URL is not configured", "database_url",
                    ErrorContext(attempt=attempt),
                )
            manager = await asyncio.wait_for(
                self._connector(self.database_uri), self.connect_timeout,
            )
        except GymdeskError as e:
            self._fail(e, attempt)
            raise
        except asyncio.TimeoutError as e:
            error = DatabaseConnectionError(
                f"connection attempt timed out after {self.connect_timeout}s",
                ErrorContext(attempt=attempt),
            )
            self._fail(error, attempt)
            raise error from e
        except Exception as e:
            error = DatabaseConnectionError(
                str(e) or e.__class__.__name__, ErrorContext(attempt=attempt),
            )
            self._fail(error, attempt)
            raise error from e
        finally:
            self._inflight = None

        self.session_manager = manager
        self.last_error = None
        self.status = ConnectionStatus.CONNECTED
        logger.info("Database connected", extra={"attempt": attempt})

    def _fail(self, error: GymdeskError, attempt: int) -> None:
        self.last_error = error
        self.status = ConnectionStatus.FAILED
        logger.error(
            f"Database connection error: {error.message}",
            extra={"attempt": attempt, "error_code": error.code},
        )

    async def dispose(self) -> None:
        """Release the engine at process shutdown."""
        if self.session_manager is not None:
            await self.session_manager.dispose()
            self.session_manager = None
        self.status = ConnectionStatus.DISCONNECTED

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        await self.ensure_connected()
        async with self.session_manager.session() as session:
            yield session


def _consume_exception(task: asyncio.Task) -> None:
    # Waiters receive the error; this only silences "exception never retrieved"
    if not task.cancelled():
        task.exception()
