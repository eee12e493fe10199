"""SQLAlchemy async engine and session helpers.

The engine is created once at process start (see ``storage.factory`` and
``main.init_db``) and owned by whoever created it. Nothing here is global.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from .models import Base

logger = logging.getLogger(__name__)


def create_engine(
    url: str,
    *,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    echo: bool = False,
    use_null_pool: bool = False,
) -> AsyncEngine:
    """Create an :class:`AsyncEngine` for a ``postgresql+asyncpg://`` URL.

    Pooled engines ping connections before use, so a database restart
    costs one failed upsert (which the queue redelivers) rather than a
    pool full of dead sockets.

    Args:
        url: Database connection URL.
        pool_size: Persistent connections kept in the pool.
        max_overflow: Extra connections allowed beyond *pool_size*.
        pool_timeout: Seconds to wait for a pooled connection.
        echo: Log all emitted SQL.
        use_null_pool: Disable pooling (one-off commands such as ``init-db``).
    """
    if use_null_pool:
        pool_kwargs: dict = {"poolclass": NullPool}
    else:
        pool_kwargs = {
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "pool_timeout": pool_timeout,
            "pool_pre_ping": True,
        }

    engine = create_async_engine(url, echo=echo, **pool_kwargs)
    logger.info(
        "Created async engine for %s",
        make_url(url).render_as_string(hide_password=True),
    )
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def create_all(engine: AsyncEngine) -> None:
    """``CREATE TABLE IF NOT EXISTS`` for the ``orders`` table."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Orders table created / verified.")


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Session that commits on success and rolls back on any error."""
    session = factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()
