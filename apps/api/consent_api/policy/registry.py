"""Versioned policy document registry."""

import logging
from datetime import datetime
from typing import Optional

from consent_api.consent import (
    ConsentEvent,
    PolicyDocument,
    hash_content,
    parse_consent_type,
    parse_timestamp,
    type_info,
    utcnow,
)
from consent_api.errors import ConflictError, DocumentMismatchError, NotFoundError, ValidationError
from consent_api.ledger.store import EventStore

logger = logging.getLogger(__name__)


class PolicyRegistry:
    """Publishes and resolves immutable policy documents."""

    def __init__(self, store: EventStore):
        """Initialize registry."""
        self.store = store

    def publish(
        self,
        consent_type,
        version: str,
        content: str,
        effective_date: Optional[datetime] = None,
        document_hash: Optional[str] = None,
        url: Optional[str] = None,
    ) -> PolicyDocument:
        """Publish a new document version.

        Republishing an identical document returns the stored one; any other
        reuse of a (type, version) pair is a conflict.
        """
        consent_type = parse_consent_type(consent_type)
        if not version or not version.strip():
            raise ValidationError("Policy document version must not be empty")
        if not content:
            raise ValidationError("Policy document content must not be empty")

        computed_hash = hash_content(content)
        if document_hash and document_hash != computed_hash:
            raise ValidationError(
                "Policy document hash does not match its content",
                details={"expected": computed_hash, "received": document_hash},
            )

        document = PolicyDocument(
            consent_type=consent_type,
            version=version,
            content=content,
            effective_date=parse_timestamp(effective_date) if effective_date else utcnow(),
            hash=computed_hash,
            url=url,
        )

        existing = self.store.get_document(consent_type, version)
        if existing:
            if existing.same_content(document) or (
                effective_date is None
                and existing.content == content
                and existing.url == url
            ):
                return existing
            raise ConflictError(
                f"Policy document {consent_type.value} v{version} is already published",
                details={"type": consent_type.value, "version": version},
            )

        self.store.add_document(document)
        logger.info(
            "Published policy document",
            extra={
                "consent_type": consent_type.value,
                "version": version,
                "hash": computed_hash,
            },
        )
        return document

    def documents(self, consent_type) -> list[PolicyDocument]:
        """Documents of a type ordered by effective date."""
        consent_type = parse_consent_type(consent_type)
        return sorted(self.store.documents_for(consent_type), key=lambda d: d.effective_date)

    def effective_at(self, consent_type, instant: datetime) -> Optional[PolicyDocument]:
        """Document in force at an instant (greatest effective date not after it)."""
        current = None
        for document in self.documents(consent_type):
            if document.effective_date <= instant:
                current = document
        return current

    def get(self, consent_type, version: Optional[str] = None) -> PolicyDocument:
        """Fetch a specific version, or the one in force now."""
        consent_type = parse_consent_type(consent_type)
        if version:
            document = self.store.get_document(consent_type, version)
        else:
            document = self.effective_at(consent_type, utcnow())
        if not document:
            raise NotFoundError(
                f"No policy document for {consent_type.value}"
                + (f" v{version}" if version else ""),
                details={"type": consent_type.value, "version": version},
            )
        return document

    def latest_version(self, consent_type) -> Optional[str]:
        """Version currently in force, if any."""
        document = self.effective_at(consent_type, utcnow())
        return document.version if document else None

    def verify_reference(self, event: ConsentEvent) -> None:
        """Check an event references the document in force at its timestamp."""
        if not type_info(event.consent_type).requires_document:
            return

        current = self.effective_at(event.consent_type, event.timestamp)
        if current is None:
            raise DocumentMismatchError(
                f"No policy document for {event.consent_type.value} is in effect",
                details={"type": event.consent_type.value, "version": event.version},
            )
        if current.version != event.version:
            raise DocumentMismatchError(
                f"Policy version {event.version} for {event.consent_type.value} "
                f"is not the effective version {current.version}",
                details={
                    "type": event.consent_type.value,
                    "version": event.version,
                    "effective_version": current.version,
                },
            )
        if event.document_hash != current.hash:
            raise DocumentMismatchError(
                f"Document hash does not match {event.consent_type.value} v{current.version}",
                details={"type": event.consent_type.value, "version": event.version},
            )
