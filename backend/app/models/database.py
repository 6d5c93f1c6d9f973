"""
Async engine, session dependency and schema bootstrap for the Lens store.

Sessions
--------
``get_db`` hands each request its own ``AsyncSession`` and never commits
on its behalf: ``LensService`` commits once per unit of work, so a marker
or comment and the Lens it hangs off are written together or not at all.
Anything that escapes the request is rolled back before the session is
closed, and then re-raised for the envelope handlers in ``app.errors``.

Bootstrap
---------
``init_models`` runs at startup (see ``app.main.lifespan``):

1. ``CREATE COLLATION IF NOT EXISTS`` for the ICU collation named by
   ``settings.sort_collation``.  The Lens-list ORDER BY refers to it by
   name, so it has to exist before the first query.
2. ``Base.metadata.create_all`` for users, lenses, markers and comments.

Both steps are idempotent and share one transaction.
"""

from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
)

# Loaded Lenses are serialized after commit, so attributes must survive it.
async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


def collation_ddl(name: str, locale: str) -> str:
    """DDL for a nondeterministic (case-insensitive) ICU collation."""
    return (
        f'CREATE COLLATION IF NOT EXISTS "{name}" '
        f"(provider = icu, locale = '{locale}', deterministic = false)"
    )


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """FastAPI dependency: one session per request, committed by the service."""
    session = async_session_factory()
    try:
        yield session
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Database error, session rolled back: %s", exc, exc_info=True)
        raise
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def _ensure_collation(conn: AsyncConnection) -> None:
    await conn.execute(
        text(collation_ddl(settings.sort_collation, settings.sort_collation_locale))
    )
    logger.info(
        "Sort collation %s ready (locale %s)",
        settings.sort_collation, settings.sort_collation_locale,
    )


async def init_models() -> None:
    """Create the sort collation and every table registered on ``Base``."""
    async with engine.begin() as conn:
        await _ensure_collation(conn)
        await conn.run_sync(Base.metadata.create_all)
