"""Pydantic schemas for bins and sensor readings."""

import uuid
from typing import Optional

from pydantic import Field

from ewaste.schemas.base import CamelModel


class FillLevelUpdate(CamelModel):
    sensor_id: str = Field(..., min_length=1, max_length=100)
    # Stored as given; out-of-range readings are logged, not rejected
    percentage: float


class BinRead(CamelModel):
    id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    fill_percentage: float
    sensor_id: str
    is_active: bool

    model_config = {"from_attributes": True}
