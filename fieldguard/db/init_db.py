from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from fieldguard.db.base import Base
from fieldguard.models import permissions as _permissions  # noqa: F401  (register table)
from fieldguard.models.security import Role


DEFAULT_ROLES = (
    ("Public", "public", "Default role given to unauthenticated callers."),
    ("Authenticated", "authenticated", "Default role given to authenticated users."),
)


async def init_db(engine: AsyncEngine, session_factory: async_sessionmaker[AsyncSession]) -> None:
    """
    Create tables and seed the built-in roles.

    The public role must exist: anonymous callers (and users without a role)
    resolve to it.
    """

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_factory() as db:
        if await _has_seed_data(db):
            return
        _seed(db)
        await db.commit()


async def _has_seed_data(db: AsyncSession) -> bool:
    result = await db.execute(select(Role.id).limit(1))
    return result.first() is not None


def _seed(db: AsyncSession) -> None:
    db.add_all([Role(name=name, type=type_, description=description) for name, type_, description in DEFAULT_ROLES])
