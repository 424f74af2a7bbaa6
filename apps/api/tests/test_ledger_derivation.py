"""Tests for current-state derivation over consent history."""

from datetime import datetime, timezone

import pytest

from consent_api.consent import ConsentType
from consent_api.db.seed import seed_policy_documents
from consent_api.ledger.service import ConsentLedger, derive_state
from consent_api.ledger.store import MemoryEventStore


class TestRequiredTypes:
    """Required types are always granted."""

    @pytest.mark.parametrize(
        "consent_type",
        [ConsentType.COOKIES_ESSENTIAL, ConsentType.TERMS_OF_SERVICE, ConsentType.PRIVACY_POLICY],
    )
    def test_empty_history_derives_granted(self, ledger, consent_type):
        """Test required types are granted with no history."""
        state = ledger.current_state("nobody", consent_type)
        assert state.granted is True
        assert state.required is True
        assert state.updated_at is None

    def test_cookies_essential_empty_history(self, ledger):
        """Test cookies_essential with no events derives granted."""
        state = ledger.current_state("user-1", "cookies_essential")
        assert state.granted is True
        assert state.version == "1.0"

    def test_recorded_denial_does_not_revoke(self, ledger, make_event, at):
        """Test a stored denial of a required type is overridden."""
        ledger.append(make_event(consent_type="cookies_essential", granted=False, at=at(0)))
        state = ledger.current_state("user-1", ConsentType.COOKIES_ESSENTIAL)
        assert state.granted is True
        assert state.updated_at == at(0)
        assert len(ledger.history_for("user-1")) == 1

    def test_optional_type_defaults_to_denied(self, ledger):
        """Test optional types are not granted without history."""
        state = ledger.current_state("user-1", ConsentType.COOKIES_ANALYTICS)
        assert state.granted is False
        assert state.version is None


class TestLatestTimestampWins:
    """Appending after the latest event changes state; earlier does not."""

    def test_later_event_replaces_state(self, ledger, make_event, at):
        ledger.append(make_event(consent_type="cookies_analytics", granted=True, at=at(0)))
        ledger.append(make_event(consent_type="cookies_analytics", granted=False, at=at(10)))
        assert ledger.current_state("user-1", "cookies_analytics").granted is False

    def test_earlier_event_does_not_change_state(self, ledger, make_event, at):
        ledger.append(make_event(consent_type="cookies_analytics", granted=True, at=at(10)))
        ledger.append(make_event(consent_type="cookies_analytics", granted=False, at=at(5)))
        state = ledger.current_state("user-1", "cookies_analytics")
        assert state.granted is True
        assert state.updated_at == at(10)
        # Both events remain in history
        assert [e.granted for e in ledger.history_for("user-1")] == [True, False]

    def test_types_are_independent(self, ledger, make_event, at):
        ledger.append(make_event(consent_type="cookies_analytics", granted=True, at=at(0)))
        ledger.append(make_event(consent_type="cookies_marketing", granted=False, at=at(1)))
        states = ledger.current_states("user-1")
        assert states[ConsentType.COOKIES_ANALYTICS].granted is True
        assert states[ConsentType.COOKIES_MARKETING].granted is False
        assert set(states) == set(ConsentType)

    def test_users_are_independent(self, ledger, make_event, at):
        ledger.append(make_event(user_id="alice", consent_type="cookies_analytics", at=at(0)))
        assert ledger.current_state("bob", "cookies_analytics").granted is False


class TestNewsletterScenario:
    """Revoke then re-grant across two document versions."""

    def test_newsletter_regrant_uses_later_version(self, ledger, make_event, at):
        ledger.policies.publish(
            ConsentType.NEWSLETTER,
            version="2.0",
            content="Newsletter terms, second edition",
            effective_date=at(1),
        )
        ledger.append(make_event(consent_type="newsletter", granted=False, at=at(0)))
        ledger.append(make_event(consent_type="newsletter", granted=True, at=at(2)))

        state = ledger.current_state("user-1", ConsentType.NEWSLETTER)
        assert state.granted is True
        assert state.version == "2.0"
        assert state.updated_at == at(2)


class TestDeriveState:
    """Direct tests for the pure derivation function."""

    def test_timestamp_tie_goes_to_later_append(self, make_event, at):
        first = make_event(consent_type="cookies_analytics", granted=True, at=at(0))
        second = make_event(consent_type="cookies_analytics", granted=False, at=at(0))
        state = derive_state("user-1", ConsentType.COOKIES_ANALYTICS, [first, second], "1.0")
        assert state.granted is False

    def test_out_of_order_history(self, make_event, at):
        events = [
            make_event(consent_type="cookies_analytics", granted=False, at=at(30)),
            make_event(consent_type="cookies_analytics", granted=True, at=at(10)),
            make_event(consent_type="cookies_analytics", granted=True, at=at(20)),
        ]
        state = derive_state("user-1", ConsentType.COOKIES_ANALYTICS, events, None)
        assert state.granted is False
        assert state.updated_at == at(30)


class TestReplayIdempotence:
    """Appending the identical event twice is a single append."""

    def test_identical_replay_is_noop(self, ledger, make_event, at):
        event = make_event(consent_type="cookies_analytics", at=at(0))
        first = ledger.append(event)
        second = ledger.append(event)
        assert first == second
        assert len(ledger.history_for("user-1")) == 1
        assert ledger.verify_history("user-1") == (True, None)


class TestExportReplay:
    """Export then replay into a fresh ledger reproduces every state."""

    def test_states_survive_round_trip(self, ledger, make_event, at):
        ledger.append(make_event(consent_type="newsletter", granted=True, at=at(0)))
        ledger.append(make_event(consent_type="newsletter", granted=False, at=at(5)))
        ledger.append(make_event(consent_type="cookies_analytics", granted=True, at=at(1)))
        ledger.append(make_event(consent_type="terms_of_service", granted=True, at=at(2)))

        exported = ledger.export_user("user-1")

        fresh = ConsentLedger(MemoryEventStore())
        seed_policy_documents(fresh.policies)
        fresh.import_user("user-1", exported)

        assert fresh.current_states("user-1") == ledger.current_states("user-1")
        assert fresh.export_user("user-1") == exported


class TestPurge:
    """Purge removes the entire history."""

    def test_purge_then_history_is_empty(self, ledger, make_event, at):
        ledger.append(make_event(consent_type="newsletter", at=at(0)))
        ledger.append(make_event(consent_type="cookies_analytics", at=at(1)))
        assert ledger.purge_user("user-1") == 2
        assert ledger.history_for("user-1") == []
        assert ledger.current_state("user-1", "newsletter").granted is False

    def test_purge_unknown_user(self, ledger):
        assert ledger.purge_user("ghost") == 0


def test_naive_timestamps_are_rejected(ledger, make_event):
    """Test events need timezone-aware timestamps."""
    from consent_api.errors import ValidationError

    event = make_event(consent_type="cookies_analytics", at=datetime(2024, 6, 1, 12, 0))
    with pytest.raises(ValidationError):
        ledger.append(event)


def test_utc_normalization_in_state(ledger, make_event):
    """Test derived timestamps come back in UTC."""
    event = make_event(
        consent_type="cookies_analytics",
        at=datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc),
    )
    ledger.append(event)
    assert ledger.current_state("user-1", "cookies_analytics").updated_at.tzinfo is not None


def test_offset_timestamps_are_normalized(ledger, make_event):
    """Test events carry their decision time in UTC whatever offset they arrive with."""
    from datetime import timedelta

    event = make_event(
        consent_type="cookies_analytics",
        at=datetime(2024, 6, 1, 14, 0, tzinfo=timezone(timedelta(hours=2))),
    )
    assert event.timestamp.tzinfo == timezone.utc
    assert event.timestamp == datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    ledger.append(event)
    assert ledger.current_state("user-1", "cookies_analytics").updated_at.hour == 12
