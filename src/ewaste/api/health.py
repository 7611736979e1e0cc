"""Health check endpoint — server up, database reachable, feed running."""

from fastapi import APIRouter, Request
from sqlalchemy import text

from ewaste import __version__

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    ctx = request.app.state.ctx
    checks = {"server": "ok", "version": __version__}

    try:
        async with ctx.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    checks["realtime_sessions"] = len(ctx.registry)

    status = "healthy" if checks["database"] == "ok" else "degraded"
    return {"status": status, **checks}
