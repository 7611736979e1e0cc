"""Async SQLAlchemy engine and session factory.

One engine (one connection pool) per application context. HTTP handlers,
change-feed callbacks and the broadcaster all draw sessions from the same
factory; nothing here is a module-level singleton.
"""

from collections.abc import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from ewaste.config import Settings


def create_engine(settings: Settings) -> AsyncEngine:
    """Build the engine for the configured database URL."""
    if settings.database_url.startswith("sqlite"):
        # In-memory SQLite must share one connection across sessions
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in settings.database_url:
            kwargs["poolclass"] = StaticPool
        return create_async_engine(settings.database_url, echo=settings.debug, **kwargs)

    # Connection pool: min 5, max 20 connections.
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_size=5,
        max_overflow=15,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """FastAPI dependency — yields a session per request, auto-closes."""
    async with request.app.state.ctx.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
