"""Event stores backing the consent ledger."""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from consent_api.consent import ConsentEvent, ConsentType, PolicyDocument


@dataclass(frozen=True)
class LedgerEntry:
    """A stored event plus its position in the user's hash chain."""

    event: ConsentEvent
    sequence: int
    event_hash: str
    previous_hash: Optional[str] = None


class EventStore(ABC):
    """Storage for ledger entries and published policy documents.

    Writes are all-or-nothing: a batch either lands completely or not at all.
    """

    @abstractmethod
    def entries_for(self, user_id: str) -> list[LedgerEntry]:
        """Entries for a user in append order."""

    @abstractmethod
    def get_entry(self, event_id: str) -> Optional[LedgerEntry]:
        """Look up an entry by event id."""

    @abstractmethod
    def append_entries(self, entries: list[LedgerEntry]) -> None:
        """Append a batch atomically."""

    @abstractmethod
    def delete_user(self, user_id: str) -> int:
        """Remove every entry of a user atomically; return how many."""

    @abstractmethod
    def user_ids(self) -> list[str]:
        """Users with at least one entry, sorted."""

    @abstractmethod
    def count_events(self) -> int:
        """Total number of stored events."""

    @abstractmethod
    def add_document(self, document: PolicyDocument) -> None:
        """Store a published policy document."""

    @abstractmethod
    def get_document(self, consent_type: ConsentType, version: str) -> Optional[PolicyDocument]:
        """Look up a document by type and version."""

    @abstractmethod
    def documents_for(self, consent_type: ConsentType) -> list[PolicyDocument]:
        """All documents of a type, in publication order."""

    def ping(self) -> bool:
        """Readiness probe."""
        return True


class MemoryEventStore(EventStore):
    """In-process store; state is lost when the process exits."""

    def __init__(self):
        self._entries: dict[str, list[LedgerEntry]] = {}
        self._by_id: dict[str, LedgerEntry] = {}
        self._documents: dict[ConsentType, list[PolicyDocument]] = {}
        self._lock = threading.RLock()

    def entries_for(self, user_id: str) -> list[LedgerEntry]:
        with self._lock:
            return list(self._entries.get(user_id, []))

    def get_entry(self, event_id: str) -> Optional[LedgerEntry]:
        with self._lock:
            return self._by_id.get(event_id)

    def append_entries(self, entries: list[LedgerEntry]) -> None:
        with self._lock:
            for entry in entries:
                if entry.event.id in self._by_id:
                    raise ValueError(f"Duplicate event id {entry.event.id}")
            for entry in entries:
                self._entries.setdefault(entry.event.user_id, []).append(entry)
                self._by_id[entry.event.id] = entry

    def delete_user(self, user_id: str) -> int:
        with self._lock:
            removed = self._entries.pop(user_id, [])
            for entry in removed:
                self._by_id.pop(entry.event.id, None)
            return len(removed)

    def user_ids(self) -> list[str]:
        with self._lock:
            return sorted(user_id for user_id, entries in self._entries.items() if entries)

    def count_events(self) -> int:
        with self._lock:
            return len(self._by_id)

    def add_document(self, document: PolicyDocument) -> None:
        with self._lock:
            self._documents.setdefault(document.consent_type, []).append(document)

    def get_document(self, consent_type: ConsentType, version: str) -> Optional[PolicyDocument]:
        with self._lock:
            for document in self._documents.get(consent_type, []):
                if document.version == version:
                    return document
            return None

    def documents_for(self, consent_type: ConsentType) -> list[PolicyDocument]:
        with self._lock:
            return list(self._documents.get(consent_type, []))
