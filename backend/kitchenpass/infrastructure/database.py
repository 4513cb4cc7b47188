"""Database Session Manager — async connection pool with automatic rollback and health checks.

Invariants:
    - Every session auto-rolls-back on exception (no partial commits leak)
    - Connection pool uses pool_pre_ping for stale connection detection
    - All SQLAlchemy exceptions mapped through map_store_error:
      unique violations, serialization failures and lock waits -> StoreConflictError,
      everything else (CHECK, NOT NULL, FK included) -> StoreFailureError

Design Decisions:
    - Singleton db_manager initialized on startup: FastAPI lifespan manages lifecycle
    - expire_on_commit=False: prevents lazy-load issues in async context
    - Conflict detection by SQLSTATE (PostgreSQL) and message (SQLite unique and lock errors):
      driver exception classes differ between asyncpg and aiosqlite
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.exc import (
    IntegrityError, OperationalError, DBAPIError, SQLAlchemyError,
)
from sqlalchemy import text

from kitchenpass.core.errors import (
    KitchenPassError, StoreConflictError, StoreFailureError,
)

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected
_CONFLICT_SQLSTATES = frozenset({"40001", "40P01"})
_SQLITE_BUSY_MARKERS = ("database is locked", "database table is locked")
_UNIQUE_VIOLATION_SQLSTATE = "23505"
_UNIQUE_VIOLATION_MARKERS = ("unique constraint failed", "duplicate key value")


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    for attr in ("sqlstate", "pgcode"):
        value = getattr(orig, attr, None)
        if value:
            return str(value)
    return None


def is_transient_conflict(exc: SQLAlchemyError) -> bool:
    """True when retrying the same unit of work may succeed."""
    if isinstance(exc, IntegrityError):
        # CHECK, NOT NULL and FK violations fail the same way on every retry
        if _sqlstate(exc) == _UNIQUE_VIOLATION_SQLSTATE:
            return True
        message = str(exc.orig).lower()
        return any(marker in message for marker in _UNIQUE_VIOLATION_MARKERS)
    if isinstance(exc, DBAPIError):
        if _sqlstate(exc) in _CONFLICT_SQLSTATES:
            return True
        message = str(exc.orig).lower()
        return any(marker in message for marker in _SQLITE_BUSY_MARKERS)
    return False


def map_store_error(exc: SQLAlchemyError, operation: str) -> KitchenPassError:
    """Translate a SQLAlchemy exception into the KitchenPass store taxonomy."""
    if is_transient_conflict(exc):
        return StoreConflictError(type(exc).__name__, operation)
    if isinstance(exc, IntegrityError):
        return StoreFailureError("Constraint violation", operation)
    if isinstance(exc, OperationalError):
        return StoreFailureError("Connection or operational error", operation)
    if isinstance(exc, DBAPIError):
        return StoreFailureError("Database driver error", operation)
    return StoreFailureError("Database operation failed", operation)


class DatabaseSessionManager:
    """Manages async database sessions with pooling, rollback, and health checks."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        engine_kwargs: dict = {"pool_pre_ping": True}
        if not database_url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_recycle=3600,
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
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"DB error: {e}")
            raise map_store_error(e, "session") from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """Check database connectivity (for readiness probes)."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


# Singleton (initialized on startup)
db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs):
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    if not db_manager:
        raise RuntimeError("Database not initialized")
    async with db_manager.session() as session:
        yield session
