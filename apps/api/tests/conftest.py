"""Pytest configuration and fixtures for ledger and API tests."""

import os
from datetime import datetime, timedelta, timezone

import fakeredis
import pytest
from fastapi.testclient import TestClient

from consent_api.consent import ConsentEvent, ConsentSource, EventMetadata, type_info
from consent_api.db.seed import seed_policy_documents
from consent_api.db.session import build_engine
from consent_api.ledger.service import ConsentLedger
from consent_api.ledger.sql_store import SqlEventStore
from consent_api.ledger.store import MemoryEventStore
from consent_api.main import create_app
from consent_api.middleware import idempotency, rate_limit
from consent_api.settings import get_settings

CLIENT_KEY = "dev-consent-key-12345"
ADMIN_KEY = "dev-admin-key-12345"

# After the seeded documents (2024-01-01) take effect
T0 = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

# Use test database URL from environment or default to SQLite in-memory
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite://")


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    """Back the idempotency and rate limit middleware with in-process Redis."""
    server = fakeredis.FakeServer()
    monkeypatch.setattr(
        idempotency, "redis_client", fakeredis.FakeRedis(server=server, decode_responses=False)
    )
    monkeypatch.setattr(
        rate_limit, "redis_client", fakeredis.FakeRedis(server=server, decode_responses=True)
    )
    return server


@pytest.fixture
def ledger() -> ConsentLedger:
    """Ledger over an in-memory store with baseline policy documents."""
    ledger = ConsentLedger(MemoryEventStore())
    seed_policy_documents(ledger.policies)
    return ledger


@pytest.fixture
def empty_ledger() -> ConsentLedger:
    """Ledger with no policy documents published."""
    return ConsentLedger(MemoryEventStore())


@pytest.fixture
def sql_store():
    """SQLAlchemy store on a fresh database."""
    engine = build_engine(TEST_DATABASE_URL)
    store = SqlEventStore(engine)
    yield store
    from consent_api.db.base import Base

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def sql_ledger(sql_store) -> ConsentLedger:
    ledger = ConsentLedger(sql_store)
    seed_policy_documents(ledger.policies)
    return ledger


@pytest.fixture
def make_event(ledger):
    """Build events that reference the policy document in effect at their timestamp."""

    def _make(
        user_id="user-1",
        consent_type="newsletter",
        granted=True,
        at=T0,
        version=None,
        document_hash=None,
        event_id=None,
        source=ConsentSource.API,
        registry=None,
    ):
        registry = registry or ledger.policies
        if type_info(consent_type).requires_document and version is None:
            document = registry.effective_at(consent_type, at)
            if document:
                version = document.version
                document_hash = document_hash or document.hash
        return ConsentEvent.create(
            user_id=user_id,
            consent_type=consent_type,
            granted=granted,
            version=version or "1.0",
            source=source,
            document_hash=document_hash,
            timestamp=at,
            event_id=event_id,
            metadata=EventMetadata(ip_address="203.0.113.7", user_agent="pytest"),
        )

    return _make


@pytest.fixture
def at():
    """Offset from T0 in seconds."""

    def _at(seconds: float) -> datetime:
        return T0 + timedelta(seconds=seconds)

    return _at


@pytest.fixture
def app(ledger):
    return create_app(get_settings(), ledger=ledger)


@pytest.fixture
def client(app):
    """Client authenticated with a client-role key."""
    with TestClient(app, headers={"x-api-key": CLIENT_KEY, "x-client-id": "test-client"}) as c:
        yield c


@pytest.fixture
def admin_client(app):
    """Client authenticated with an admin key."""
    with TestClient(app, headers={"x-api-key": ADMIN_KEY, "x-client-id": "test-admin"}) as c:
        yield c


@pytest.fixture
def anonymous_client(app):
    with TestClient(app) as c:
        yield c
