"""Push credential providers.

A CredentialProvider knows how to obtain an Authorization header value and
which FCM wire format goes with it. The dispatcher only ever sees this
interface, so switching strategies is a config change.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx
import jwt
import structlog

from ewaste.config import Settings
from ewaste.errors import UpstreamFailureError

logger = structlog.get_logger()

LEGACY_SEND_URL = "https://fcm.googleapis.com/fcm/send"
V1_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"

# Refresh OAuth2 tokens this long before they actually expire
EXPIRY_MARGIN = timedelta(seconds=60)


@dataclass
class PushNotification:
    title: str
    body: str
    data: dict[str, str] = field(default_factory=dict)


@dataclass
class PushCredential:
    authorization: str
    expires_at: Optional[datetime] = None

    def is_fresh(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return True
        now = now or datetime.now(timezone.utc)
        return now < self.expires_at - EXPIRY_MARGIN


class CredentialProvider(ABC):
    name: str = ""

    @abstractmethod
    async def obtain(self) -> PushCredential:
        """Return a credential usable for one send."""

    @abstractmethod
    def endpoint(self) -> str:
        """URL the message is POSTed to."""

    @abstractmethod
    def build_message(self, device_token: str, notification: PushNotification) -> dict:
        """Request body for one device."""

    def check_response(self, body: dict[str, Any]) -> None:
        """Raise UpstreamFailureError if a 2xx response still reports failure."""


class ServerKeyCredentialProvider(CredentialProvider):
    """Long-lived legacy FCM server key."""

    name = "server_key"

    def __init__(self, server_key: str):
        self.server_key = server_key

    async def obtain(self) -> PushCredential:
        if not self.server_key:
            raise UpstreamFailureError("FCM server key is not configured")
        return PushCredential(authorization=f"key={self.server_key}")

    def endpoint(self) -> str:
        return LEGACY_SEND_URL

    def build_message(self, device_token: str, notification: PushNotification) -> dict:
        return {
            "to": device_token,
            "notification": {
                "title": notification.title,
                "body": notification.body,
            },
            "data": notification.data,
            "priority": "high",
        }

    def check_response(self, body: dict[str, Any]) -> None:
        # Legacy API answers 200 with per-device failures in "results"
        if body.get("failure"):
            errors = [r.get("error") for r in body.get("results", []) if r.get("error")]
            raise UpstreamFailureError(
                f"Push provider rejected message: {', '.join(errors) or 'unknown error'}"
            )


class ServiceAccountCredentialProvider(CredentialProvider):
    """Short-lived OAuth2 access token from a Google service account.

    Signs an RS256 JWT assertion with the account's private key and trades
    it at the token URI for a bearer token scoped to messaging send. The
    token is cached until shortly before it expires.
    """

    name = "service_account"

    def __init__(
        self,
        info: dict[str, Any],
        http: httpx.AsyncClient,
        project_id: Optional[str] = None,
    ):
        self.client_email: str = info["client_email"]
        self.private_key: str = info["private_key"]
        self.private_key_id: Optional[str] = info.get("private_key_id")
        self.token_uri: str = info.get("token_uri", GOOGLE_TOKEN_URI)
        self.project_id: str = project_id or info["project_id"]
        self.http = http
        self._cached: Optional[PushCredential] = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_file(
        cls, path: str, http: httpx.AsyncClient, project_id: Optional[str] = None
    ) -> "ServiceAccountCredentialProvider":
        with open(path, encoding="utf-8") as f:
            info = json.load(f)
        return cls(info, http, project_id=project_id)

    def _assertion(self, now: datetime) -> str:
        claims = {
            "iss": self.client_email,
            "scope": FCM_SCOPE,
            "aud": self.token_uri,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(hours=1)).timestamp()),
        }
        headers = {"kid": self.private_key_id} if self.private_key_id else None
        return jwt.encode(claims, self.private_key, algorithm="RS256", headers=headers)

    async def obtain(self) -> PushCredential:
        async with self._lock:
            if self._cached and self._cached.is_fresh():
                return self._cached

            now = datetime.now(timezone.utc)
            try:
                r = await self.http.post(
                    self.token_uri,
                    data={"grant_type": JWT_BEARER_GRANT, "assertion": self._assertion(now)},
                )
                r.raise_for_status()
                body = r.json()
                access_token = body["access_token"]
            except (httpx.HTTPError, KeyError, ValueError) as e:
                logger.warning("ewaste.push.token_exchange_failed", error=str(e))
                raise UpstreamFailureError(f"OAuth2 token exchange failed: {e}")

            expires_in = int(body.get("expires_in", 3600))
            self._cached = PushCredential(
                authorization=f"Bearer {access_token}",
                expires_at=now + timedelta(seconds=expires_in),
            )
            logger.info("ewaste.push.token_obtained", expires_in=expires_in)
            return self._cached

    def endpoint(self) -> str:
        return V1_SEND_URL.format(project_id=self.project_id)

    def build_message(self, device_token: str, notification: PushNotification) -> dict:
        return {
            "message": {
                "token": device_token,
                "notification": {
                    "title": notification.title,
                    "body": notification.body,
                },
                "data": notification.data,
                "android": {"priority": "high"},
            }
        }


def build_credential_provider(settings: Settings, http: httpx.AsyncClient) -> CredentialProvider:
    """Pick the credential strategy named by EWASTE_PUSH_CREDENTIALS."""
    if settings.push_credentials == "service_account":
        return ServiceAccountCredentialProvider.from_file(
            settings.fcm_service_account_file,
            http,
            project_id=settings.fcm_project_id,
        )
    return ServerKeyCredentialProvider(settings.fcm_server_key)
