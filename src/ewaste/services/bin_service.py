"""Bin store — reads and writes of bin state.

Learn: sensor_id is indexed but not unique. Provisioning happens out of
band and may create the same sensor twice, so every lookup resolves to
one canonical row: the oldest (created_at, then id). Writes, reads and
the realtime snapshot all use that same row, otherwise two rows would
race for one sensor's value on the dashboard.

Every committed write to the bins table is picked up by the change feed
(NOTIFY trigger on PostgreSQL, ORM session events elsewhere). This service
never talks to the realtime layer directly.
"""

import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ewaste.db.models import Bin
from ewaste.errors import BinNotFoundError

logger = structlog.get_logger()


class BinService:
    """Business logic for bins: lookup, listing, sensor writes, ownership."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Read ────────────────────────────────────────────

    async def find_by_sensor_id(self, sensor_id: str) -> Bin | None:
        """Canonical bin for a sensor, or None.

        populate_existing makes a reused session see rows committed by
        other sessions since it last loaded them.
        """
        q = (
            select(Bin)
            .where(Bin.sensor_id == sensor_id)
            .order_by(Bin.created_at, Bin.id)
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(q)
        return result.scalars().first()

    async def get_by_sensor_id(self, sensor_id: str) -> Bin:
        """Canonical bin for a sensor. Raises BinNotFoundError."""
        bin_ = await self.find_by_sensor_id(sensor_id)
        if bin_ is None:
            raise BinNotFoundError(sensor_id)
        return bin_

    async def list_bins(self) -> list[Bin]:
        """Every bin row, duplicates included, grouped by sensor oldest first."""
        q = select(Bin).order_by(Bin.sensor_id, Bin.created_at, Bin.id)
        result = await self.db.execute(q)
        return list(result.scalars().all())

    async def list_current_bins(self) -> list[Bin]:
        """One canonical bin per sensor id, ordered by sensor id.

        This is what dashboards see: the same row get_by_sensor_id returns.
        """
        current: list[Bin] = []
        for bin_ in await self.list_bins():
            if current and current[-1].sensor_id == bin_.sensor_id:
                continue
            current.append(bin_)
        return current

    # ─── Write ───────────────────────────────────────────

    async def update_fill_level(self, sensor_id: str, percentage: float) -> Bin:
        """Store a sensor reading as given.

        Readings outside 0-100 are logged, not clamped.
        """
        bin_ = await self.get_by_sensor_id(sensor_id)
        if not 0 <= percentage <= 100:
            logger.warning(
                "ewaste.bin.fill_out_of_range",
                sensor_id=sensor_id,
                percentage=percentage,
            )
        bin_.fill_percentage = percentage
        await self.db.commit()
        await self.db.refresh(bin_)

        logger.info("ewaste.bin.fill_updated", sensor_id=sensor_id, percentage=percentage)
        return bin_

    async def assign_user(
        self, sensor_id: str, user_id: uuid.UUID, *, commit: bool = True
    ) -> Bin:
        """Set the bin's owner. Pass commit=False to join a larger transaction."""
        bin_ = await self.get_by_sensor_id(sensor_id)
        bin_.user_id = user_id
        if commit:
            await self.db.commit()
            await self.db.refresh(bin_)
        else:
            await self.db.flush()
        logger.info("ewaste.bin.user_assigned", sensor_id=sensor_id, user_id=str(user_id))
        return bin_

    async def provision(self, sensor_id: str, *, is_active: bool = False) -> Bin:
        """Create a bin row for a newly installed sensor."""
        bin_ = Bin(sensor_id=sensor_id, is_active=is_active, fill_percentage=0.0)
        self.db.add(bin_)
        await self.db.commit()
        await self.db.refresh(bin_)
        logger.info("ewaste.bin.provisioned", sensor_id=sensor_id, bin_id=str(bin_.id))
        return bin_
