"""Push notifications to bin owners' devices (Firebase Cloud Messaging).

Two credential strategies share one dispatch path:
1. server_key — static legacy server key, legacy /fcm/send endpoint
2. service_account — OAuth2 JWT-bearer exchange, HTTP v1 endpoint
"""

from ewaste.notifications.credentials import (
    CredentialProvider,
    PushCredential,
    PushNotification,
    ServerKeyCredentialProvider,
    ServiceAccountCredentialProvider,
    build_credential_provider,
)
from ewaste.notifications.push import PushGateway

__all__ = [
    "CredentialProvider",
    "PushCredential",
    "PushGateway",
    "PushNotification",
    "ServerKeyCredentialProvider",
    "ServiceAccountCredentialProvider",
    "build_credential_provider",
]
