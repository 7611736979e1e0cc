"""Notify API — sensor-triggered push alert to the bin's owner."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ewaste.db.engine import get_db
from ewaste.schemas.notification import NotifyRequest, NotifyResponse
from ewaste.services.notification_service import NotificationDispatcher

router = APIRouter()


@router.post("/notify-user", response_model=NotifyResponse)
async def notify_user(
    body: NotifyRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    dispatcher = NotificationDispatcher(db, request.app.state.ctx.push)
    result = await dispatcher.dispatch(body.sensor_id, body.fill_percentage)
    return NotifyResponse(message="Push Notification Sent", state=result.state.value)
