"""Database engine and session management.

The default backend is sqlite through aiosqlite; any async SQLAlchemy URL
works. Settlement owns its transaction, so callers hand it a session and
the dependency only commits what is left over.
"""

from collections.abc import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tourney.config import get_settings


def create_engine(database_url: str, echo: bool = False, **engine_kwargs) -> AsyncEngine:
    """Create an async engine; sqlite connections enforce foreign keys."""
    engine = create_async_engine(database_url, echo=echo, future=True, **engine_kwargs)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


settings = get_settings()
engine = create_engine(settings.database_url, echo=settings.app_debug)

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a session per request.

    Usage:
        @router.post("/{tournament_id}/settle")
        async def settle(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create missing tables."""
    from tourney.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
