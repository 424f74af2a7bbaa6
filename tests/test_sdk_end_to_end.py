"""SDK against the real API application."""

import pytest
import requests
from fastapi.testclient import TestClient

from consent_api.db.seed import seed_policy_documents
from consent_api.ledger.service import ConsentLedger
from consent_api.ledger.store import MemoryEventStore
from consent_api.main import create_app
from consent_sdk import (
    CheckFallback,
    ConsentHubClient,
    ConsentType,
    HeadlessBridge,
    LocalConsentCache,
    RetryPolicy,
)


class NetworkSwitch:
    """Session wrapper that can simulate losing connectivity."""

    def __init__(self, session):
        self.session = session
        self.headers = session.headers
        self.online = True

    def request(self, method, url, **kwargs):
        if not self.online:
            raise requests.ConnectionError("network unreachable")
        return self.session.request(method, url, **kwargs)


@pytest.fixture
def ledger():
    ledger = ConsentLedger(MemoryEventStore())
    seed_policy_documents(ledger.policies)
    return ledger


@pytest.fixture
def api(ledger):
    with TestClient(create_app(ledger=ledger)) as client:
        yield client


@pytest.fixture
def connect(api):
    """Build SDK clients that talk to the in-process API."""

    def _connect(device_id, user_id="user-1", api_key="dev-consent-key-12345"):
        return ConsentHubClient(
            api_key=api_key,
            client_id=f"app-{device_id}",
            platform="android",
            check_fallback=CheckFallback.FAIL_CLOSED,
            base_url="http://testserver",
            user_id=user_id,
            bridge=HeadlessBridge("android", device_id=device_id, push_granted=True),
            cache=LocalConsentCache(),
            retry_policy=RetryPolicy(max_attempts=2, sleep=lambda _: None),
            session=NetworkSwitch(TestClient(api.app)),
        )

    return _connect


def test_grant_then_check(connect, ledger):
    client = connect("phone")

    result = client.update_consent(ConsentType.NEWSLETTER, True)

    assert result.committed is True
    assert client.check_consent(ConsentType.NEWSLETTER) is True
    assert client.check_consent(ConsentType.COOKIES_ANALYTICS) is False

    stored = ledger.history_for("user-1")[0]
    assert stored.id == result.event_id
    assert stored.document_hash == ledger.policies.get("newsletter").hash


def test_offline_update_syncs_later(connect, ledger):
    client = connect("phone")
    client.session.online = False

    assert client.check_consent("cookies_analytics") is False
    queued = client.update_consent("cookies_analytics", True)
    assert queued.queued is True
    assert ledger.history_for("user-1") == []

    client.session.online = True
    result = client.sync_consents()

    assert result.applied == [queued.event_id]
    assert result.states["cookies_analytics"]["granted"] is True
    assert client.pending_count == 0
    assert client.check_consent("cookies_analytics") is True


def test_latest_decision_wins_across_devices(connect):
    phone = connect("phone")
    tablet = connect("tablet")

    phone.session.online = False
    phone.update_consent("cookies_marketing", True)

    tablet.update_consent("cookies_marketing", False)

    phone.session.online = True
    result = phone.sync_consents()

    assert len(result.applied) == 1
    assert result.states["cookies_marketing"]["granted"] is False
    assert phone.check_consent("cookies_marketing") is False


def test_resync_of_committed_event_is_duplicate(connect):
    """Test an update whose response was lost dedupes on the next sync."""
    client = connect("phone")
    result = client.update_consent("marketing_emails", True)
    client.cache.enqueue(result.event | {"metadata": {"platform": "android"}})

    sync = client.sync_consents()

    assert sync.applied == []
    assert sync.duplicates == [result.event_id]
    assert client.pending_count == 0


def test_required_types_are_always_granted(connect):
    client = connect("phone")
    client.session.online = False
    for consent_type in ("cookies_essential", "terms_of_service", "privacy_policy"):
        assert client.check_consent(consent_type) is True


def test_push_prompt_records_grant(connect):
    client = connect("phone")
    assert client.request_push_notification_consent() is True
    assert client.get_consent_state()["push_notifications"]["granted"] is True


def test_export_and_purge(connect):
    client = connect("phone")
    client.update_consent("newsletter", True)
    client.update_consent("newsletter", False)

    history = client.get_user_consents()
    assert [event["granted"] for event in history] == [True, False]
    assert b'"newsletter"' in client.export_user_consents()

    removed = client.delete_user_consents("user-1", confirm=True)
    assert removed["eventsRemoved"] == 2
    assert client.get_user_consents() == []
