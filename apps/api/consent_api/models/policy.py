"""Policy document models."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint

from consent_api.db.base import Base


class PolicyDocumentRecord(Base):
    """Published policy document; rows are never updated."""

    __tablename__ = "policy_documents"
    __table_args__ = (
        UniqueConstraint("consent_type", "version", name="uq_policy_documents_type_version"),
    )

    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(String(64), nullable=False, unique=True)
    consent_type = Column(String(50), nullable=False, index=True)
    version = Column(String(50), nullable=False)
    content = Column(Text, nullable=False)
    effective_date = Column(DateTime(timezone=True), nullable=False)
    hash = Column(String(64), nullable=False)
    url = Column(String(1024), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
