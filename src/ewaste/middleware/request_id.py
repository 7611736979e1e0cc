"""Request ID + request logging middleware.

Every request gets an id, either from the incoming X-Request-ID header or
freshly generated. It is bound to structlog's contextvars so it appears in
all log entries for that request, and returned in the response header.
The request line (method, path, query, a few headers) is logged on entry.
"""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

LOGGED_HEADERS = (
    "host",
    "origin",
    "referer",
    "user-agent",
    "access-control-request-method",
    "access-control-request-headers",
)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Generate and propagate a unique request ID, log the request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.info(
            "ewaste.request",
            method=request.method,
            path=request.url.path,
            query=dict(request.query_params),
            headers={h: request.headers[h] for h in LOGGED_HEADERS if h in request.headers},
            authorized="authorization" in request.headers,
        )

        started = time.perf_counter()
        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "ewaste.response",
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response
