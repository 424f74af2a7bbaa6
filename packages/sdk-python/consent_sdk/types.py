"""Consent types and result objects exposed by the SDK."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class ConsentType(str, Enum):
    """Consent type catalog (mirrors the server)."""

    COOKIES_ESSENTIAL = "cookies_essential"
    COOKIES_ANALYTICS = "cookies_analytics"
    COOKIES_MARKETING = "cookies_marketing"
    TERMS_OF_SERVICE = "terms_of_service"
    PRIVACY_POLICY = "privacy_policy"
    NEWSLETTER = "newsletter"
    MARKETING_EMAILS = "marketing_emails"
    PUSH_NOTIFICATIONS = "push_notifications"
    DATA_PROCESSING = "data_processing"


# Always granted; never asked over the network
REQUIRED_TYPES = frozenset(
    {
        ConsentType.COOKIES_ESSENTIAL,
        ConsentType.TERMS_OF_SERVICE,
        ConsentType.PRIVACY_POLICY,
    }
)

# Events must reference the policy document in effect
DOCUMENT_TYPES = frozenset(
    {
        ConsentType.MARKETING_EMAILS,
        ConsentType.NEWSLETTER,
        ConsentType.TERMS_OF_SERVICE,
        ConsentType.PRIVACY_POLICY,
        ConsentType.DATA_PROCESSING,
    }
)


class CheckFallback(str, Enum):
    """What check_consent does when the server cannot be reached."""

    FAIL_CLOSED = "fail_closed"
    RAISE = "raise"


def format_timestamp(value: datetime) -> str:
    """ISO-8601 UTC with microseconds, as the server renders it."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


@dataclass
class ConsentOptions:
    """Optional fields for update_consent."""

    version: Optional[str] = None
    document_hash: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    device_info: Optional[dict[str, Any]] = None


@dataclass
class UpdateResult:
    """Outcome of update_consent."""

    event_id: str
    committed: bool
    queued: bool = False
    event: dict[str, Any] = field(default_factory=dict)


@dataclass
class SyncResult:
    """Outcome of sync_consents."""

    applied: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)
    states: dict[str, dict[str, Any]] = field(default_factory=dict)
