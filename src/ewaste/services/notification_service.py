"""Fill-level notification dispatch.

Triggered explicitly by a sensor-facing call, never by the change feed.
Each dispatch walks a fixed sequence of states:

    RECEIVED → BIN_RESOLVED → USER_RESOLVED → CREDENTIAL_OBTAINED → SENT

and lands in FAILED as soon as a lookup or the provider call fails. The
failure is re-raised to the caller; nothing is retried.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from ewaste.errors import APIError, MissingDeviceTokenError, UnassignedBinError
from ewaste.notifications import PushGateway, PushNotification
from ewaste.services.bin_service import BinService

logger = structlog.get_logger()

ALERT_TITLE = "Waste Bin Level Alert"


class DispatchState(str, Enum):
    RECEIVED = "received"
    BIN_RESOLVED = "bin_resolved"
    USER_RESOLVED = "user_resolved"
    CREDENTIAL_OBTAINED = "credential_obtained"
    SENT = "sent"
    FAILED = "failed"


@dataclass
class DispatchResult:
    sensor_id: str
    fill_percentage: float
    state: DispatchState = DispatchState.RECEIVED
    history: list[DispatchState] = field(default_factory=lambda: [DispatchState.RECEIVED])
    failure_reason: Optional[str] = None
    provider_response: dict[str, Any] = field(default_factory=dict)

    def advance(self, state: DispatchState) -> None:
        self.state = state
        self.history.append(state)


def format_alert_body(fill_percentage: float) -> str:
    pct = int(fill_percentage) if float(fill_percentage).is_integer() else fill_percentage
    return f"Your waste bin is {pct}% full"


class NotificationDispatcher:
    def __init__(self, db: AsyncSession, push: PushGateway):
        self.db = db
        self.push = push
        self.bins = BinService(db)

    async def dispatch(self, sensor_id: str, fill_percentage: float) -> DispatchResult:
        result = DispatchResult(sensor_id=sensor_id, fill_percentage=fill_percentage)
        log = logger.bind(sensor_id=sensor_id, fill_percentage=fill_percentage)

        try:
            bin_ = await self.bins.get_by_sensor_id(sensor_id)
            result.advance(DispatchState.BIN_RESOLVED)

            user = bin_.user
            if user is None:
                raise UnassignedBinError(sensor_id)
            if not user.messaging_token:
                raise MissingDeviceTokenError(sensor_id)
            result.advance(DispatchState.USER_RESOLVED)

            credential = await self.push.credentials.obtain()
            result.advance(DispatchState.CREDENTIAL_OBTAINED)

            notification = PushNotification(
                title=ALERT_TITLE,
                body=format_alert_body(fill_percentage),
                data={"sensorId": sensor_id},
            )
            result.provider_response = await self.push.send(
                credential, user.messaging_token, notification
            )
            result.advance(DispatchState.SENT)
        except APIError as e:
            failed_at = result.state
            result.failure_reason = e.message
            result.advance(DispatchState.FAILED)
            log.warning(
                "ewaste.notify.failed",
                failed_after=failed_at.value,
                reason=e.message,
            )
            raise

        log.info(
            "ewaste.notify.sent",
            credentials=self.push.credentials.name,
            user_id=str(user.id),
        )
        return result
