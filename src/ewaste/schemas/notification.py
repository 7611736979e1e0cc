"""Pydantic schemas for the notify-user trigger."""

from pydantic import Field

from ewaste.schemas.base import CamelModel


class NotifyRequest(CamelModel):
    sensor_id: str = Field(..., min_length=1, max_length=100)
    fill_percentage: float


class NotifyResponse(CamelModel):
    message: str
    state: str
