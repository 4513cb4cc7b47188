"""Async Session Factory — provides async DB sessions for direct usage outside FastAPI.

Invariants:
    - One AsyncSession per unit of work; sessions are never shared between
      concurrent redemptions
    - Meant for scripts and test fixtures

Design Decisions:
    - Separate from infrastructure/database.py: this is a convenience for non-FastAPI contexts
    - SQLite gets a generous busy timeout: concurrent writers queue on the
      database lock instead of failing straight away
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker,
)

SQLITE_BUSY_TIMEOUT_SECONDS: float = 30.0


def create_engine(database_url: str) -> AsyncEngine:
    """Create an async engine; SQLite connections wait on locks instead of failing."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["timeout"] = SQLITE_BUSY_TIMEOUT_SECONDS
    return create_async_engine(
        database_url, echo=False, connect_args=connect_args,
    )


def create_session_factory(
    engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to `engine`."""
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False,
    )
