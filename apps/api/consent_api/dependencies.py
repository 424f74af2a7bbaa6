"""Ledger construction and request dependencies."""

from fastapi import Request

from consent_api.ledger.service import ConsentLedger
from consent_api.ledger.store import EventStore, MemoryEventStore
from consent_api.settings import Settings


def build_store(settings: Settings) -> EventStore:
    """Create the event store selected by LEDGER_BACKEND."""
    if settings.ledger_backend == "database":
        from consent_api.db.session import build_engine
        from consent_api.ledger.sql_store import SqlEventStore

        return SqlEventStore(build_engine(settings.database_url_computed))
    return MemoryEventStore()


def build_ledger(settings: Settings) -> ConsentLedger:
    """Create a ledger for the configured backend."""
    return ConsentLedger(
        build_store(settings),
        default_version=settings.default_policy_version,
    )


def get_ledger(request: Request) -> ConsentLedger:
    """Ledger owned by the running application."""
    return request.app.state.ledger
