"""Consent events, derived states and policy documents."""

import hashlib
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from consent_api.consent.types import ConsentSource, ConsentType, parse_consent_type
from consent_api.errors import ValidationError

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render an aware datetime as ISO-8601 UTC with microseconds."""
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value) -> datetime:
    """Parse an ISO-8601 string or datetime into an aware UTC datetime.

    Naive values are taken to be UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            raise ValidationError(f"Invalid timestamp: {value!r}") from None
    else:
        raise ValidationError(f"Invalid timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _require_text(data: Mapping[str, Any], key: str) -> str:
    value = data[key]
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Consent event field {key!r} must be a non-empty string")
    return value


def _require_bool(data: Mapping[str, Any], key: str) -> bool:
    value = data[key]
    if not isinstance(value, bool):
        raise ValidationError(f"Consent event field {key!r} must be a boolean")
    return value


def hash_content(content: str) -> str:
    """SHA-256 hex digest of a policy document body."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class EventMetadata:
    """Network and client context captured with an event."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    extras: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ConsentEvent:
    """One immutable grant/revoke decision."""

    id: str
    user_id: str
    consent_type: ConsentType
    granted: bool
    timestamp: datetime
    version: str
    source: ConsentSource = ConsentSource.API
    document_hash: Optional[str] = None
    metadata: EventMetadata = field(default_factory=EventMetadata)

    def __post_init__(self):
        # Stored and hashed decision times are always UTC
        if isinstance(self.timestamp, datetime) and self.timestamp.tzinfo is not None:
            object.__setattr__(self, "timestamp", self.timestamp.astimezone(timezone.utc))

    @classmethod
    def create(
        cls,
        user_id: str,
        consent_type,
        granted: bool,
        version: str,
        source: ConsentSource = ConsentSource.API,
        document_hash: Optional[str] = None,
        timestamp: Optional[datetime] = None,
        event_id: Optional[str] = None,
        metadata: Optional[EventMetadata] = None,
    ) -> "ConsentEvent":
        """Build an event, filling in id and timestamp."""
        return cls(
            id=event_id or str(uuid.uuid4()),
            user_id=user_id,
            consent_type=parse_consent_type(consent_type),
            granted=granted,
            timestamp=timestamp or utcnow(),
            version=version,
            source=ConsentSource(source),
            document_hash=document_hash,
            metadata=metadata or EventMetadata(),
        )

    def to_dict(self) -> dict:
        """Wire/export representation."""
        return {
            "id": self.id,
            "userId": self.user_id,
            "type": self.consent_type.value,
            "granted": self.granted,
            "timestamp": format_timestamp(self.timestamp),
            "version": self.version,
            "source": self.source.value,
            "documentHash": self.document_hash,
            "ipAddress": self.metadata.ip_address,
            "userAgent": self.metadata.user_agent,
            "metadata": dict(self.metadata.extras),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ConsentEvent":
        """Inverse of to_dict."""
        try:
            return cls(
                id=_require_text(data, "id"),
                user_id=_require_text(data, "userId"),
                consent_type=parse_consent_type(data["type"]),
                granted=_require_bool(data, "granted"),
                timestamp=parse_timestamp(data["timestamp"]),
                version=_require_text(data, "version"),
                source=ConsentSource(data.get("source", ConsentSource.IMPORT.value)),
                document_hash=data.get("documentHash"),
                metadata=EventMetadata(
                    ip_address=data.get("ipAddress"),
                    user_agent=data.get("userAgent"),
                    extras=dict(data.get("metadata") or {}),
                ),
            )
        except KeyError as e:
            raise ValidationError(f"Consent event is missing field {e.args[0]!r}") from None
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Malformed consent event: {e}") from None

    def same_content(self, other: "ConsentEvent") -> bool:
        """True if both events describe the same decision.

        Capture context (source, network metadata) is not compared: the first
        recorded copy of an event keeps its context.
        """
        return (
            self.id == other.id
            and self.user_id == other.user_id
            and self.consent_type == other.consent_type
            and self.granted == other.granted
            and self.timestamp == other.timestamp
            and self.version == other.version
            and self.document_hash == other.document_hash
        )


@dataclass(frozen=True)
class ConsentState:
    """Derived current status for one (user, type) pair."""

    user_id: str
    consent_type: ConsentType
    granted: bool
    version: Optional[str] = None
    updated_at: Optional[datetime] = None
    required: bool = False

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "type": self.consent_type.value,
            "granted": self.granted,
            "version": self.version,
            "updatedAt": format_timestamp(self.updated_at) if self.updated_at else None,
            "required": self.required,
        }


@dataclass(frozen=True)
class PolicyDocument:
    """A published, versioned legal text."""

    consent_type: ConsentType
    version: str
    content: str
    effective_date: datetime
    hash: str
    url: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        if isinstance(self.effective_date, datetime) and self.effective_date.tzinfo is not None:
            object.__setattr__(self, "effective_date", self.effective_date.astimezone(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.consent_type.value,
            "version": self.version,
            "content": self.content,
            "effectiveDate": format_timestamp(self.effective_date),
            "hash": self.hash,
            "url": self.url,
        }

    def same_content(self, other: "PolicyDocument") -> bool:
        return (
            self.consent_type == other.consent_type
            and self.version == other.version
            and self.content == other.content
            and self.effective_date == other.effective_date
            and self.hash == other.hash
            and self.url == other.url
        )
