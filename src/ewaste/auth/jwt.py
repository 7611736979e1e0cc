"""JWT token creation and verification.

The token carries the serialized public user projection in a "user" claim
(a JSON string) plus the user id as "sub". Validity defaults to 24 hours.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from ewaste.config import Settings
from ewaste.errors import TokenExpiredError, TokenInvalidError


def create_access_token(
    public_user: dict,
    settings: Settings,
    expires_hours: Optional[int] = None,
) -> str:
    """Sign an access token for a user's public projection."""
    now = datetime.now(timezone.utc)
    expires = now + timedelta(hours=expires_hours or settings.access_token_expire_hours)
    payload = {
        "sub": public_user["id"],
        "user": json.dumps(public_user),
        "exp": expires,
        "iat": now,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str, settings: Settings) -> dict:
    """Verify a token and return the public user it encodes.

    Raises TokenExpiredError or TokenInvalidError.
    """
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError()
    except jwt.InvalidTokenError:
        raise TokenInvalidError()

    try:
        user = json.loads(payload["user"])
    except (KeyError, TypeError, ValueError):
        raise TokenInvalidError()
    if not isinstance(user, dict) or "id" not in user:
        raise TokenInvalidError()
    return user
