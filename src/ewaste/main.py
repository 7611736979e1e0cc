"""FastAPI application factory.

create_app() returns a configured FastAPI instance. The lifespan builds
the AppContext (database engine, change feed, realtime registry, push
gateway) unless one is passed in, and tears it down on shutdown.
Middleware, CORS, error mapping and routers are all registered here.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ewaste import __version__
from ewaste.api import api_router
from ewaste.config import Settings, settings as default_settings
from ewaste.context import AppContext
from ewaste.errors import APIError
from ewaste.log import configure_logging

logger = structlog.get_logger()


def _error_body(message: str, error_message: str) -> dict:
    return {"status": "error", "message": message, "errorMessage": error_message}


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        logger.info(
            "ewaste.api_error",
            path=request.url.path,
            status=exc.status_code,
            error=exc.message,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.message, exc.message),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and exc.detail == "Not Found":
            return JSONResponse(
                status_code=404,
                content={
                    "error": ["Path does not exist"],
                    "message": "This route doesn't exist for you!",
                },
            )
        detail = str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(detail, detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("ewaste.unhandled_error", path=request.url.path)
        debug = request.app.state.ctx.settings.debug
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "Something went wrong",
                str(exc) if debug else "Internal server error",
            ),
        )


def create_app(
    settings: Optional[Settings] = None,
    context: Optional[AppContext] = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    Pass `context` to run against pre-built resources (tests); the app
    then neither starts nor closes it.
    """
    settings = settings or (context.settings if context else default_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "ewaste.starting",
            version=__version__,
            environment=settings.environment,
            port=settings.port,
        )
        owned = context is None
        ctx = app.state.ctx if not owned else AppContext.build(settings)
        app.state.ctx = ctx
        if owned:
            await ctx.start()

        yield

        logger.info("ewaste.shutdown")
        if owned:
            await ctx.close()

    configure_logging(settings)

    app = FastAPI(
        title="E-Waste Web API",
        description="Smart waste-bin monitoring: sensor readings, owner alerts, live dashboards",
        version=__version__,
        lifespan=lifespan,
    )
    if context is not None:
        app.state.ctx = context

    # ── Middleware stack ──────────────────────────────────────
    # Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RequestId → Security → handler

    from ewaste.middleware.request_id import RequestIdMiddleware
    from ewaste.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(api_router)

    from ewaste.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: ewaste.main:app)
app = create_app()
