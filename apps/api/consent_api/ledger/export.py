"""Deterministic serialization of consent histories for data portability."""

import json
from typing import Iterable, Union

from consent_api.consent import ConsentEvent
from consent_api.errors import ValidationError


def serialize_events(events: Iterable[ConsentEvent]) -> bytes:
    """Serialize events as a JSON array with stable key order."""
    payload = [event.to_dict() for event in events]
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def parse_events(payload: Union[bytes, str, list]) -> list[ConsentEvent]:
    """Parse an export back into events."""
    if isinstance(payload, (bytes, str)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Export is not valid JSON: {e}") from None
    if not isinstance(payload, list):
        raise ValidationError("Export must be a JSON array of consent events")
    events = []
    for item in payload:
        if not isinstance(item, dict):
            raise ValidationError("Export items must be JSON objects")
        events.append(ConsentEvent.from_dict(item))
    return events
