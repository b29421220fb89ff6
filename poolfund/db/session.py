"""
Database access for the event journal.

The only tables are those registered in ``poolfund.models`` (today just
``fund_events``). Fund state itself never touches the database, so the
engine serves journal writes, journal queries and the health probe.
"""

from collections.abc import AsyncGenerator
from typing import Any, Dict

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel

from poolfund.core.config import settings


def _engine_options() -> Dict[str, Any]:
    if settings.USE_SQLITE:
        from sqlalchemy.pool import StaticPool

        # One shared connection, or every session would see its own empty
        # in-memory journal.
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "pool_pre_ping": True,
    }


engine = create_async_engine(settings.DATABASE_URL, echo=settings.DEBUG, **_engine_options())

# Journal rows are read back after commit (the API returns them), and async
# sessions cannot lazy-load expired attributes.
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def create_journal_tables(bind: AsyncEngine = engine) -> None:
    """Create every journal table that does not exist yet."""
    import poolfund.models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a session that is closed after the request."""
    async with AsyncSessionLocal() as session:
        yield session
