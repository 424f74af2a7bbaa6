"""Consent catalog and record types."""

from consent_api.consent.records import (
    ConsentEvent,
    ConsentState,
    EventMetadata,
    PolicyDocument,
    format_timestamp,
    hash_content,
    parse_timestamp,
    utcnow,
)
from consent_api.consent.types import (
    CONSENT_TYPES,
    ConsentCategory,
    ConsentSource,
    ConsentType,
    ConsentTypeInfo,
    parse_consent_type,
    type_info,
)

__all__ = [
    "CONSENT_TYPES",
    "ConsentCategory",
    "ConsentEvent",
    "ConsentSource",
    "ConsentState",
    "ConsentType",
    "ConsentTypeInfo",
    "EventMetadata",
    "PolicyDocument",
    "format_timestamp",
    "hash_content",
    "parse_consent_type",
    "parse_timestamp",
    "type_info",
    "utcnow",
]
