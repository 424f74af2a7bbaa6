"""Pytest fixtures for SDK tests."""

import fakeredis
import pytest

from consent_sdk import CheckFallback, ConsentHubClient, HeadlessBridge, LocalConsentCache, RetryPolicy

BASE_URL = "http://consenthub.test"
DOCUMENT_HASH = "a" * 64


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    """Back the API middleware with in-process Redis when the API is imported."""
    from consent_api.middleware import idempotency, rate_limit

    server = fakeredis.FakeServer()
    monkeypatch.setattr(
        idempotency, "redis_client", fakeredis.FakeRedis(server=server, decode_responses=False)
    )
    monkeypatch.setattr(
        rate_limit, "redis_client", fakeredis.FakeRedis(server=server, decode_responses=True)
    )


@pytest.fixture
def sleeps():
    """Backoff delays requested by the retry policy."""
    return []


@pytest.fixture
def make_client(sleeps):
    """Build SDK clients pointed at the mocked API."""

    def _make(**overrides):
        options = {
            "api_key": "dev-consent-key-12345",
            "client_id": "test-app",
            "platform": "ios",
            "check_fallback": CheckFallback.FAIL_CLOSED,
            "base_url": BASE_URL,
            "user_id": "user-1",
            "bridge": HeadlessBridge("ios", device_id="device-1", push_granted=True),
            "cache": LocalConsentCache(),
            "retry_policy": RetryPolicy(max_attempts=3, backoff_factor=0.5, sleep=sleeps.append),
        }
        options.update(overrides)
        return ConsentHubClient(**options)

    return _make


@pytest.fixture
def newsletter_document():
    return {
        "id": "doc-1",
        "type": "newsletter",
        "version": "1.0",
        "content": "Newsletter terms",
        "effectiveDate": "2024-01-01T00:00:00.000000Z",
        "hash": DOCUMENT_HASH,
        "url": None,
    }


def state(consent_type, granted, version="1.0", required=False, user_id="user-1"):
    return {
        "userId": user_id,
        "type": consent_type,
        "granted": granted,
        "version": version,
        "updatedAt": "2024-06-01T12:00:00Z",
        "required": required,
    }


@pytest.fixture
def states():
    """Remote state payload factory."""
    return state
