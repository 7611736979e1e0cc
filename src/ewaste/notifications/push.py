"""FCM send over HTTPS.

One POST per device, no retries: any transport error or non-2xx answer
becomes UpstreamFailureError and ends the dispatch.
"""

from typing import Any

import httpx
import structlog

from ewaste.errors import UpstreamFailureError
from ewaste.notifications.credentials import (
    CredentialProvider,
    PushCredential,
    PushNotification,
)

logger = structlog.get_logger()


class PushGateway:
    def __init__(self, credentials: CredentialProvider, http: httpx.AsyncClient):
        self.credentials = credentials
        self.http = http

    async def send(
        self,
        credential: PushCredential,
        device_token: str,
        notification: PushNotification,
    ) -> dict[str, Any]:
        url = self.credentials.endpoint()
        message = self.credentials.build_message(device_token, notification)
        try:
            r = await self.http.post(
                url,
                json=message,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": credential.authorization,
                },
            )
        except httpx.HTTPError as e:
            logger.warning("ewaste.push.transport_error", url=url, error=str(e))
            raise UpstreamFailureError(f"Push provider unreachable: {e}")

        if r.status_code >= 400:
            logger.warning("ewaste.push.rejected", status=r.status_code, body=r.text[:500])
            raise UpstreamFailureError(
                f"Push provider returned {r.status_code}"
            )

        try:
            body = r.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            logger.warning("ewaste.push.unexpected_body", status=r.status_code, body=r.text[:500])
            raise UpstreamFailureError("Push provider returned an unexpected response")
        self.credentials.check_response(body)
        return body
