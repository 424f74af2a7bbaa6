"""ConsentHub Python SDK."""

__version__ = "0.1.0"

from consent_sdk.cache import LocalConsentCache
from consent_sdk.client import ConsentHubClient
from consent_sdk.errors import (
    APIError,
    ConflictError,
    ConsentHubError,
    DocumentMismatchError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from consent_sdk.platforms import DeviceBridge, HeadlessBridge, WebBridge
from consent_sdk.retry import RetryPolicy
from consent_sdk.types import (
    CheckFallback,
    ConsentOptions,
    ConsentType,
    SyncResult,
    UpdateResult,
)

__all__ = [
    "APIError",
    "CheckFallback",
    "ConflictError",
    "ConsentHubClient",
    "ConsentHubError",
    "ConsentOptions",
    "ConsentType",
    "DeviceBridge",
    "DocumentMismatchError",
    "HeadlessBridge",
    "LocalConsentCache",
    "NotFoundError",
    "RetryPolicy",
    "SyncResult",
    "TransportError",
    "UpdateResult",
    "ValidationError",
    "WebBridge",
]
