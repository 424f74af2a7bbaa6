"""SQLAlchemy-backed event store."""

import logging
from typing import Optional

from sqlalchemy import func, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from consent_api.consent import (
    ConsentEvent,
    ConsentSource,
    ConsentType,
    EventMetadata,
    PolicyDocument,
    parse_timestamp,
)
from consent_api.db.base import Base
from consent_api.db.session import get_engine, get_session_factory
from consent_api.errors import ConflictError
from consent_api.ledger.store import EventStore, LedgerEntry
from consent_api.models import ConsentEventRecord, PolicyDocumentRecord

logger = logging.getLogger(__name__)


def _to_entry(record: ConsentEventRecord) -> LedgerEntry:
    event = ConsentEvent(
        id=record.event_id,
        user_id=record.user_id,
        consent_type=ConsentType(record.consent_type),
        granted=record.granted,
        timestamp=parse_timestamp(record.timestamp),
        version=record.version,
        source=ConsentSource(record.source),
        document_hash=record.document_hash,
        metadata=EventMetadata(
            ip_address=record.ip_address,
            user_agent=record.user_agent,
            extras=dict(record.metadata_json or {}),
        ),
    )
    return LedgerEntry(
        event=event,
        sequence=record.sequence,
        event_hash=record.event_hash,
        previous_hash=record.previous_event_hash,
    )


def _to_record(entry: LedgerEntry) -> ConsentEventRecord:
    event = entry.event
    return ConsentEventRecord(
        event_id=event.id,
        user_id=event.user_id,
        consent_type=event.consent_type.value,
        granted=event.granted,
        timestamp=event.timestamp,
        version=event.version,
        source=event.source.value,
        document_hash=event.document_hash,
        ip_address=event.metadata.ip_address,
        user_agent=event.metadata.user_agent,
        metadata_json=dict(event.metadata.extras),
        sequence=entry.sequence,
        event_hash=entry.event_hash,
        previous_event_hash=entry.previous_hash,
    )


def _to_document(record: PolicyDocumentRecord) -> PolicyDocument:
    return PolicyDocument(
        id=record.document_id,
        consent_type=ConsentType(record.consent_type),
        version=record.version,
        content=record.content,
        effective_date=parse_timestamp(record.effective_date),
        hash=record.hash,
        url=record.url,
    )


class SqlEventStore(EventStore):
    """Event store persisted through SQLAlchemy.

    Each write runs in its own transaction and is rolled back on failure.
    """

    def __init__(self, engine: Optional[Engine] = None, create_tables: bool = True):
        """Initialize store."""
        self.engine = engine or get_engine()
        self.session_factory: sessionmaker = get_session_factory(self.engine)
        if create_tables:
            Base.metadata.create_all(self.engine)

    def entries_for(self, user_id: str) -> list[LedgerEntry]:
        with self.session_factory() as db:
            records = (
                db.query(ConsentEventRecord)
                .filter(ConsentEventRecord.user_id == user_id)
                .order_by(ConsentEventRecord.sequence.asc())
                .all()
            )
            return [_to_entry(record) for record in records]

    def get_entry(self, event_id: str) -> Optional[LedgerEntry]:
        with self.session_factory() as db:
            record = (
                db.query(ConsentEventRecord)
                .filter(ConsentEventRecord.event_id == event_id)
                .first()
            )
            return _to_entry(record) if record else None

    def append_entries(self, entries: list[LedgerEntry]) -> None:
        with self.session_factory() as db:
            try:
                for entry in entries:
                    db.add(_to_record(entry))
                db.commit()
            except IntegrityError:
                # Another writer extended the chain or stored the same event first
                db.rollback()
                event_ids = [entry.event.id for entry in entries]
                logger.warning("Concurrent append rejected", extra={"event_ids": event_ids})
                raise ConflictError(
                    "Consent history changed during append; retry the request",
                    details={"event_ids": event_ids},
                ) from None
            except Exception:
                db.rollback()
                logger.error("Failed to append consent events", exc_info=True)
                raise

    def delete_user(self, user_id: str) -> int:
        with self.session_factory() as db:
            try:
                removed = (
                    db.query(ConsentEventRecord)
                    .filter(ConsentEventRecord.user_id == user_id)
                    .delete(synchronize_session=False)
                )
                db.commit()
                return removed
            except Exception:
                db.rollback()
                logger.error("Failed to purge consent events", exc_info=True, extra={"user_id": user_id})
                raise

    def user_ids(self) -> list[str]:
        with self.session_factory() as db:
            rows = (
                db.query(ConsentEventRecord.user_id)
                .distinct()
                .order_by(ConsentEventRecord.user_id.asc())
                .all()
            )
            return [row[0] for row in rows]

    def count_events(self) -> int:
        with self.session_factory() as db:
            return db.query(func.count(ConsentEventRecord.id)).scalar() or 0

    def add_document(self, document: PolicyDocument) -> None:
        with self.session_factory() as db:
            try:
                db.add(
                    PolicyDocumentRecord(
                        document_id=document.id,
                        consent_type=document.consent_type.value,
                        version=document.version,
                        content=document.content,
                        effective_date=document.effective_date,
                        hash=document.hash,
                        url=document.url,
                    )
                )
                db.commit()
            except Exception:
                db.rollback()
                raise

    def get_document(self, consent_type: ConsentType, version: str) -> Optional[PolicyDocument]:
        with self.session_factory() as db:
            record = (
                db.query(PolicyDocumentRecord)
                .filter(
                    PolicyDocumentRecord.consent_type == consent_type.value,
                    PolicyDocumentRecord.version == version,
                )
                .first()
            )
            return _to_document(record) if record else None

    def documents_for(self, consent_type: ConsentType) -> list[PolicyDocument]:
        with self.session_factory() as db:
            records = (
                db.query(PolicyDocumentRecord)
                .filter(PolicyDocumentRecord.consent_type == consent_type.value)
                .order_by(PolicyDocumentRecord.id.asc())
                .all()
            )
            return [_to_document(record) for record in records]

    def ping(self) -> bool:
        with self.session_factory() as db:
            db.execute(text("SELECT 1"))
        return True
