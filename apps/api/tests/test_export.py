"""Tests for deterministic consent history export."""

import json

import pytest

from consent_api.consent import ConsentSource
from consent_api.errors import ValidationError
from consent_api.ledger.export import parse_events, serialize_events


def test_export_is_byte_reproducible(ledger, make_event, at):
    """Test identical histories export to identical bytes."""
    ledger.append(make_event(consent_type="newsletter", at=at(0), event_id="e1"))
    ledger.append(make_event(consent_type="cookies_analytics", at=at(1), event_id="e2"))

    first = ledger.export_user("user-1")
    second = ledger.export_user("user-1")
    assert first == second
    assert first == serialize_events(ledger.history_for("user-1"))


def test_export_format(ledger, make_event, at):
    """Test compact separators, sorted keys and UTC timestamps."""
    ledger.append(make_event(consent_type="cookies_analytics", at=at(0.5), event_id="e1"))
    payload = ledger.export_user("user-1")

    assert b", " not in payload
    assert b": " not in payload
    data = json.loads(payload)
    assert list(data[0].keys()) == sorted(data[0].keys())
    assert data[0]["timestamp"] == "2024-06-01T12:00:00.500000Z"
    assert data[0]["userId"] == "user-1"
    assert data[0]["ipAddress"] == "203.0.113.7"


def test_export_empty_history(ledger):
    assert ledger.export_user("nobody") == b"[]"


def test_unicode_is_preserved(ledger, make_event, at):
    """Test non-ASCII metadata is exported verbatim."""
    import dataclasses

    event = make_event(consent_type="cookies_analytics", at=at(0))
    event = dataclasses.replace(
        event, metadata=dataclasses.replace(event.metadata, extras={"locale": "día"})
    )
    ledger.append(event)
    assert "día".encode("utf-8") in ledger.export_user("user-1")


class TestParseEvents:
    """Parsing exports back into events."""

    def test_parse_round_trip(self, make_event, at):
        events = [
            make_event(consent_type="cookies_analytics", at=at(0), source=ConsentSource.SDK),
            make_event(consent_type="newsletter", at=at(1)),
        ]
        parsed = parse_events(serialize_events(events))
        assert [e.id for e in parsed] == [e.id for e in events]
        assert parsed[0].source == ConsentSource.SDK
        assert all(p.same_content(e) for p, e in zip(parsed, events))

    @pytest.mark.parametrize(
        "payload",
        [
            b'{"id": "x"}',
            b"[1, 2]",
            b'[{"id": "x"}]',
            b'[{"id": "x", "userId": "u", "type": "bogus", "granted": true, '
            b'"timestamp": "2024-06-01T12:00:00Z", "version": "1.0"}]',
            b'[{"id": "x", "userId": "u", "type": "newsletter", "granted": true, '
            b'"timestamp": "yesterday", "version": "1.0"}]',
            b'[{"id": "x", "userId": "u", "type": "cookies_analytics", "granted": "false", '
            b'"timestamp": "2024-06-01T12:00:00Z", "version": "1.0"}]',
            b'[{"id": "x", "userId": "u", "type": "cookies_analytics", "granted": 0, '
            b'"timestamp": "2024-06-01T12:00:00Z", "version": "1.0"}]',
            b'[{"id": "x", "userId": "u", "type": "cookies_analytics", "granted": false, '
            b'"timestamp": "2024-06-01T12:00:00Z", "version": null}]',
            b'[{"id": "x", "userId": "u", "type": "cookies_analytics", "granted": false, '
            b'"timestamp": "2024-06-01T12:00:00Z", "version": ""}]',
            b'[{"id": 7, "userId": "u", "type": "cookies_analytics", "granted": false, '
            b'"timestamp": "2024-06-01T12:00:00Z", "version": "1.0"}]',
        ],
    )
    def test_malformed_exports(self, payload):
        with pytest.raises(ValidationError):
            parse_events(payload)

    def test_missing_source_defaults_to_import(self):
        events = parse_events(
            [
                {
                    "id": "x",
                    "userId": "u",
                    "type": "cookies_analytics",
                    "granted": True,
                    "timestamp": "2024-06-01T12:00:00Z",
                    "version": "1.0",
                }
            ]
        )
        assert events[0].source == ConsentSource.IMPORT


def test_import_rejects_stringly_revocation(ledger):
    """Test a revocation serialized as a string is refused rather than read as a grant."""
    payload = [
        {
            "id": "r1",
            "userId": "user-1",
            "type": "cookies_analytics",
            "granted": "false",
            "timestamp": "2024-06-01T12:00:00Z",
            "version": "1.0",
        }
    ]
    with pytest.raises(ValidationError):
        ledger.import_user("user-1", payload)
    assert ledger.history_for("user-1") == []
