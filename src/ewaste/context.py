"""Application context — every long-lived resource, built once per app.

Handlers reach it through request.app.state.ctx; tests build their own.
Start order: engine → change feed → (subscribe broadcaster). Shutdown runs
in reverse.
"""

from dataclasses import dataclass
from typing import Optional

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from ewaste.config import Settings
from ewaste.db.engine import create_engine, create_session_factory
from ewaste.db.models import Base
from ewaste.notifications import CredentialProvider, PushGateway, build_credential_provider
from ewaste.realtime.broadcaster import Broadcaster
from ewaste.realtime.change_feed import ChangeFeed, build_change_feed
from ewaste.realtime.registry import SessionRegistry

logger = structlog.get_logger()


@dataclass
class AppContext:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    registry: SessionRegistry
    broadcaster: Broadcaster
    change_feed: ChangeFeed
    http: httpx.AsyncClient
    push: PushGateway

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        engine: Optional[AsyncEngine] = None,
        change_feed: Optional[ChangeFeed] = None,
        http: Optional[httpx.AsyncClient] = None,
        credentials: Optional[CredentialProvider] = None,
    ) -> "AppContext":
        engine = engine or create_engine(settings)
        session_factory = create_session_factory(engine)
        registry = SessionRegistry()
        http = http or httpx.AsyncClient(timeout=settings.fcm_timeout_seconds)
        credentials = credentials or build_credential_provider(settings, http)
        return cls(
            settings=settings,
            engine=engine,
            session_factory=session_factory,
            registry=registry,
            broadcaster=Broadcaster(session_factory, registry),
            change_feed=change_feed or build_change_feed(settings, engine),
            http=http,
            push=PushGateway(credentials, http),
        )

    async def start(self) -> None:
        if self.settings.auto_create_schema:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("ewaste.schema_created")

        self.change_feed.subscribe(self.broadcaster.broadcast)
        await self.change_feed.start()
        logger.info("ewaste.change_feed_started", feed=type(self.change_feed).__name__)

    async def close(self) -> None:
        await self.change_feed.stop()
        await self.http.aclose()
        await self.engine.dispose()
