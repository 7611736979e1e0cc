"""API route aggregation.

All routers registered here get mounted in main.py under /api/v1.
Per-route auth lives in the routers themselves: sensor-facing routes are
open, dashboard reads need a bearer token.
"""

from fastapi import APIRouter

from ewaste.api.auth import router as auth_router
from ewaste.api.bins import router as bins_router
from ewaste.api.health import router as health_router
from ewaste.api.notifications import router as notifications_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(bins_router, tags=["bins"])
api_router.include_router(notifications_router, tags=["notifications"])
