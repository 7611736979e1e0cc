"""Change feed — "a bin changed" signals from the persistence layer.

The feed carries no trustworthy payload; subscribers re-read whatever
state they need. Each notification runs every subscriber as its own
asyncio task, outside the request that caused the write. There is no
deduplication: a burst of writes produces a burst of callbacks.

Two sources:
1. PostgresChangeFeed — LISTEN on the channel fed by the bins NOTIFY trigger
2. SessionChangeFeed — SQLAlchemy session events (SQLite, tests)
"""

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Optional

import asyncpg
import structlog
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.orm import Session

from ewaste.config import Settings
from ewaste.db.models import Bin

logger = structlog.get_logger()

OnChange = Callable[[], Awaitable[None]]

BIN_CHANNEL = "bin_changed"


class ChangeFeed:
    """Base feed: subscriber list and task bookkeeping."""

    def __init__(self) -> None:
        self._subscribers: list[OnChange] = []
        self._tasks: set[asyncio.Task] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self.notifications = 0

    def subscribe(self, on_change: OnChange) -> None:
        self._subscribers.append(on_change)

    async def start(self) -> None:
        self._loop = asyncio.get_running_loop()

    async def stop(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._loop = None

    async def drain(self) -> None:
        """Wait until every callback scheduled so far has finished."""
        await asyncio.sleep(0)
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
            await asyncio.sleep(0)

    def _notify(self) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        self.notifications += 1
        loop.call_soon_threadsafe(self._fan_out)

    def _fan_out(self) -> None:
        if self._loop is None:
            return
        for on_change in list(self._subscribers):
            task = self._loop.create_task(self._run(on_change))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run(self, on_change: OnChange) -> None:
        try:
            await on_change()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("ewaste.change_feed.callback_failed")


class PostgresChangeFeed(ChangeFeed):
    """LISTEN on the bin_changed channel over a dedicated asyncpg connection."""

    def __init__(self, dsn: str, channel: str = BIN_CHANNEL):
        super().__init__()
        self.dsn = dsn
        self.channel = channel
        self._conn: Optional[asyncpg.Connection] = None

    async def start(self) -> None:
        await super().start()
        self._conn = await asyncpg.connect(self.dsn)
        await self._conn.add_listener(self.channel, self._on_notification)
        logger.info("ewaste.change_feed.listening", channel=self.channel)

    async def stop(self) -> None:
        if self._conn:
            try:
                await self._conn.remove_listener(self.channel, self._on_notification)
            finally:
                await self._conn.close()
                self._conn = None
        await super().stop()

    def _on_notification(self, conn, pid, channel, payload):
        """Synchronous asyncpg callback; the payload is logged, not trusted."""
        try:
            data = json.loads(payload)
        except (TypeError, ValueError):
            data = {"raw": payload}
        logger.debug("ewaste.change_feed.notified", channel=channel, payload=data)
        self._notify()


class SessionChangeFeed(ChangeFeed):
    """Watch ORM sessions bound to one engine for committed Bin writes.

    after_flush marks a session that inserted or updated a Bin;
    after_commit on a marked session fires the feed. A rollback clears
    the mark.
    """

    _FLAG = "ewaste.bins_changed"

    def __init__(self, engine: AsyncEngine):
        super().__init__()
        self._sync_engine = engine.sync_engine
        self._listening = False

    async def start(self) -> None:
        await super().start()
        event.listen(Session, "after_flush", self._after_flush)
        event.listen(Session, "after_commit", self._after_commit)
        event.listen(Session, "after_rollback", self._after_rollback)
        self._listening = True

    async def stop(self) -> None:
        if self._listening:
            event.remove(Session, "after_flush", self._after_flush)
            event.remove(Session, "after_commit", self._after_commit)
            event.remove(Session, "after_rollback", self._after_rollback)
            self._listening = False
        await super().stop()

    def _owns(self, session: Session) -> bool:
        bind = session.bind
        return getattr(bind, "engine", bind) is self._sync_engine

    def _after_flush(self, session, flush_context):
        if not self._owns(session):
            return
        if any(isinstance(obj, Bin) for obj in (*session.new, *session.dirty)):
            session.info[self._FLAG] = True

    def _after_commit(self, session):
        if session.info.pop(self._FLAG, False):
            self._notify()

    def _after_rollback(self, session):
        session.info.pop(self._FLAG, None)


def asyncpg_dsn(database_url: str) -> str:
    """SQLAlchemy URL → plain libpq DSN for asyncpg."""
    return database_url.replace("postgresql+asyncpg://", "postgresql://", 1)


def build_change_feed(settings: Settings, engine: AsyncEngine) -> ChangeFeed:
    if settings.uses_postgres:
        return PostgresChangeFeed(asyncpg_dsn(settings.database_url))
    return SessionChangeFeed(engine)
