"""Database engine and session plumbing.

Two ways to get a session:

* ``get_async_session`` is the request-scoped FastAPI dependency. It commits
  once when the endpoint returns and rolls back on any exception, so
  repositories only ever add and flush.
* ``get_session_factory`` hands out the factory itself. The context build
  fans out across concurrent tasks and an ``AsyncSession`` must not be shared
  between tasks, so the resolver, each fetcher and the audit sink open their
  own short-lived session from it.
"""

from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from contextguard.config.settings import get_settings


class Base(DeclarativeBase):
    pass


# Anything usable as ``async with factory() as session``.
SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

_db_settings = get_settings()

engine = create_async_engine(
    _db_settings.DATABASE_URL,
    echo=_db_settings.DATABASE_ECHO,
    pool_pre_ping=True,
)

async_session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
    engine,
    expire_on_commit=False,
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session: commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        await session.commit()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_session_factory
