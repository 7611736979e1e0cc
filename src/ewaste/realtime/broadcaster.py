"""Fan-out broadcaster — bin snapshots to realtime sessions.

Every trigger reloads the bin table and emits one message per sensor:
event name = sensor id, data = fill percentage of the sensor's canonical
bin. That is O(sessions × bins) per change, fine for a handful of
dashboards, not for thousands.

Learn: snapshots and broadcasts overlap. A connect snapshot may still be
emitting when a change-feed broadcast has already loaded newer state.
Two rules keep the newest state last on every session:
1. Each load takes a sequence number before it reads. A load that started
   later has seen at least every commit the earlier one saw.
2. Each session emits one load at a time (a per-session lock) and skips
   any load older than one it already delivered.
"""

import asyncio
import itertools
import weakref
from dataclasses import dataclass, field

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ewaste.realtime.registry import RealtimeSession, SessionRegistry
from ewaste.services.bin_service import BinService

logger = structlog.get_logger()

Messages = list[tuple[str, float]]


@dataclass
class _Outbox:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    delivered: int = 0


class Broadcaster:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: SessionRegistry,
    ):
        self.session_factory = session_factory
        self.registry = registry
        self._seq = itertools.count(1)
        self._outboxes: "weakref.WeakKeyDictionary[RealtimeSession, _Outbox]" = (
            weakref.WeakKeyDictionary()
        )

    async def _load(self) -> tuple[int, Messages]:
        """Sequence number plus (sensorId, fillPercentage) per canonical bin."""
        seq = next(self._seq)
        async with self.session_factory() as db:
            bins = await BinService(db).list_current_bins()
        return seq, [(b.sensor_id, b.fill_percentage) for b in bins]

    def _outbox(self, session: RealtimeSession) -> _Outbox:
        outbox = self._outboxes.get(session)
        if outbox is None:
            outbox = self._outboxes[session] = _Outbox()
        return outbox

    async def send_snapshot(self, session: RealtimeSession) -> None:
        """Send the current state of every bin to one (new) session."""
        seq, messages = await self._load()
        await self._emit_all(session, seq, messages)

    async def broadcast(self) -> None:
        """Re-send every bin to every session subscribed to it."""
        if not len(self.registry):
            return

        seq, messages = await self._load()
        outbox: dict[str, tuple[RealtimeSession, Messages]] = {}
        for sensor_id, percentage in messages:
            for session in self.registry.sessions_for(sensor_id):
                entry = outbox.setdefault(session.id, (session, []))
                entry[1].append((sensor_id, percentage))

        await asyncio.gather(
            *(self._emit_all(session, seq, msgs) for session, msgs in outbox.values())
        )
        logger.debug("ewaste.realtime.broadcast", seq=seq, sessions=len(outbox), bins=len(messages))

    async def _emit_all(self, session: RealtimeSession, seq: int, messages: Messages) -> None:
        outbox = self._outbox(session)
        async with outbox.lock:
            if seq < outbox.delivered:
                logger.debug(
                    "ewaste.realtime.stale_skipped",
                    session_id=session.id,
                    seq=seq,
                    delivered=outbox.delivered,
                )
                return
            outbox.delivered = seq

            for sensor_id, percentage in messages:
                # Disconnected mid-broadcast: nothing to do
                if not self.registry.is_connected(session):
                    return
                try:
                    await session.emit(sensor_id, percentage)
                except Exception as e:
                    logger.info(
                        "ewaste.realtime.emit_failed",
                        session_id=session.id,
                        error=str(e),
                    )
                    self.registry.disconnect(session)
                    return
