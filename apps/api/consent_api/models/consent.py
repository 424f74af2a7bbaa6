"""Consent ledger models."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String, UniqueConstraint

from consent_api.db.base import Base


class ConsentEventRecord(Base):
    """Append-only consent history with per-user hash chaining."""

    __tablename__ = "consent_events"
    __table_args__ = (
        UniqueConstraint("user_id", "sequence", name="uq_consent_events_user_sequence"),
    )

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(String(64), nullable=False, unique=True, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    consent_type = Column(String(50), nullable=False, index=True)
    granted = Column(Boolean, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    version = Column(String(50), nullable=False)
    source = Column(String(20), nullable=False)
    document_hash = Column(String(64), nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    metadata_json = Column(JSON, nullable=False, default=dict)
    sequence = Column(Integer, nullable=False)
    event_hash = Column(String(64), nullable=False, unique=True)
    previous_event_hash = Column(String(64), nullable=True)  # NULL for a user's first event
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
