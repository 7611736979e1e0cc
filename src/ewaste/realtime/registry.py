"""Realtime session registry with per-sensor topics.

Sessions subscribe to topics: Topic(sensor_id) for one bin, or ALL_BINS
for everything. New sessions join ALL_BINS, so every viewer currently
receives every bin. Narrower subscriptions need no protocol change.

All mutation happens on the event loop thread; readers get snapshot
copies, so a broadcast in progress is unaffected by concurrent
connects/disconnects.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class Topic:
    """Tagged topic. sensor_id=None is the all-bins wildcard."""

    sensor_id: Optional[str] = None

    @property
    def is_wildcard(self) -> bool:
        return self.sensor_id is None


ALL_BINS = Topic()


class RealtimeSession(Protocol):
    id: str

    async def emit(self, event: str, data: Any) -> None: ...


class SessionRegistry:
    """Connected realtime sessions and the topics each one follows."""

    def __init__(self) -> None:
        self._sessions: dict[str, RealtimeSession] = {}
        self._topics: dict[Topic, set[str]] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def is_connected(self, session: RealtimeSession) -> bool:
        """True while this exact session object is registered."""
        return self._sessions.get(session.id) is session

    def connect(self, session: RealtimeSession, topics: tuple[Topic, ...] = (ALL_BINS,)) -> None:
        """Register a session. It follows every bin unless topics says otherwise."""
        self._sessions[session.id] = session
        for topic in topics:
            self.subscribe(session, topic)
        logger.info("ewaste.realtime.connected", session_id=session.id, sessions=len(self))

    def disconnect(self, session: RealtimeSession) -> None:
        """Drop a session and all its subscriptions. Safe to call twice."""
        if self._sessions.pop(session.id, None) is None:
            return
        for topic in list(self._topics):
            members = self._topics[topic]
            members.discard(session.id)
            if not members:
                del self._topics[topic]
        logger.info("ewaste.realtime.disconnected", session_id=session.id, sessions=len(self))

    def subscribe(self, session: RealtimeSession, topic: Topic) -> None:
        """Follow a topic. Ignored for sessions that are not connected."""
        if session.id not in self._sessions:
            return
        self._topics.setdefault(topic, set()).add(session.id)

    def unsubscribe(self, session: RealtimeSession, topic: Topic) -> None:
        """Stop following a topic; empty topics are dropped."""
        members = self._topics.get(topic)
        if members is None:
            return
        members.discard(session.id)
        if not members:
            del self._topics[topic]

    def sessions_for(self, sensor_id: str) -> list[RealtimeSession]:
        """Sessions that should see updates for this sensor."""
        ids = set(self._topics.get(ALL_BINS, ())) | set(self._topics.get(Topic(sensor_id), ()))
        return [self._sessions[i] for i in ids if i in self._sessions]


def new_session_id() -> str:
    return uuid.uuid4().hex
