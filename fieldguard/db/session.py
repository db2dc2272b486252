from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from fieldguard.errors import StoreUnavailable

logger = logging.getLogger(__name__)


def build_engine(db_url: str) -> AsyncEngine:
    return create_async_engine(
        db_url,
        connect_args={"check_same_thread": False} if db_url.startswith("sqlite") else {},
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory shared by the permission store and the role resolver.

    Every store operation opens its own short-lived session, so concurrent
    asyncio tasks never share one ``AsyncSession``.
    """

    return async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, class_=AsyncSession)


@asynccontextmanager
async def translate_db_errors(operation: str) -> AsyncIterator[None]:
    """Re-raise driver level failures as ``StoreUnavailable``."""

    try:
        yield
    except DBAPIError as exc:
        logger.warning("Storage failure during %s: %s", operation, type(exc.orig).__name__)
        raise StoreUnavailable(f"Storage unavailable during {operation}", operation=operation) from exc
