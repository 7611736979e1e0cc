"""FastAPI auth dependencies.

Used as Depends() in route handlers to extract the current user from a
Bearer token in the Authorization header.
"""

from typing import Optional

from fastapi import Depends, Header, Request

from ewaste.auth.jwt import verify_token
from ewaste.errors import AuthenticationError


class CurrentUser:
    """The authenticated user making the request (public projection)."""

    def __init__(self, data: dict):
        self.data = data
        self.id: str = data["id"]
        self.email: str = data.get("email", "")
        self.sensor_id: Optional[str] = data.get("sensorId")


async def get_current_user_optional(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> Optional[CurrentUser]:
    """Soft auth: None without a header, 401 on a bad token."""
    if not authorization:
        return None
    if not authorization.startswith("Bearer "):
        raise AuthenticationError("No Auth Token Provided")
    token = authorization[7:]
    return CurrentUser(verify_token(token, request.app.state.ctx.settings))


async def get_current_user(
    user: Optional[CurrentUser] = Depends(get_current_user_optional),
) -> CurrentUser:
    """Hard auth: 401 when no token is supplied."""
    if user is None:
        raise AuthenticationError("No Auth Token Provided")
    return user
