"""Append-only consent ledger with hash chaining."""

import hashlib
import json
import logging
import threading
from typing import Iterable, Optional, Union

from consent_api.consent import (
    CONSENT_TYPES,
    ConsentEvent,
    ConsentState,
    ConsentType,
    parse_consent_type,
    type_info,
)
from consent_api.errors import ConflictError, ConsentError, ValidationError
from consent_api.ledger.export import parse_events, serialize_events
from consent_api.ledger.store import EventStore, LedgerEntry
from consent_api.policy.registry import PolicyRegistry
from consent_api.utils import metrics

logger = logging.getLogger(__name__)


def derive_state(
    user_id: str,
    consent_type: ConsentType,
    events: list[ConsentEvent],
    default_version: Optional[str],
) -> ConsentState:
    """Current state of one (user, type) pair from its history slice.

    Latest timestamp wins; ties go to the later-appended event. Required
    types are always granted.
    """
    required = type_info(consent_type).is_required
    if not events:
        return ConsentState(
            user_id=user_id,
            consent_type=consent_type,
            granted=required,
            version=default_version if required else None,
            required=required,
        )

    _, latest = max(enumerate(events), key=lambda pair: (pair[1].timestamp, pair[0]))
    return ConsentState(
        user_id=user_id,
        consent_type=consent_type,
        granted=True if required else latest.granted,
        version=latest.version,
        updated_at=latest.timestamp,
        required=required,
    )


class ConsentLedger:
    """Owns the consent event history and answers current-state queries."""

    def __init__(
        self,
        store: EventStore,
        policies: Optional[PolicyRegistry] = None,
        default_version: str = "1.0",
    ):
        """Initialize ledger."""
        self.store = store
        self.policies = policies or PolicyRegistry(store)
        self.default_version = default_version
        self._write_lock = threading.Lock()

    # Hashing

    def _hash_entry(self, event: ConsentEvent, sequence: int, previous_hash: Optional[str]) -> str:
        """Compute hash of a chained entry."""
        entry_data = {
            "event": event.to_dict(),
            "sequence": sequence,
            "previous_hash": previous_hash,
        }
        entry_str = json.dumps(entry_data, sort_keys=True)
        return hashlib.sha256(entry_str.encode()).hexdigest()

    # Writes

    def _validate(self, event: ConsentEvent) -> None:
        if not isinstance(event, ConsentEvent):
            raise ValidationError("Expected a ConsentEvent")
        parse_consent_type(event.consent_type)
        if not isinstance(event.user_id, str) or not event.user_id.strip():
            raise ValidationError("Consent event userId must not be empty")
        if not isinstance(event.id, str) or not event.id.strip():
            raise ValidationError("Consent event id must not be empty")
        if not isinstance(event.granted, bool):
            raise ValidationError("Consent event granted must be a boolean")
        if not isinstance(event.version, str) or not event.version.strip():
            raise ValidationError("Consent event version must not be empty")
        timestamp = event.timestamp
        if not hasattr(timestamp, "tzinfo") or timestamp.tzinfo is None:
            raise ValidationError(
                "Consent event timestamp must be a timezone-aware datetime",
                details={"id": event.id},
            )

    def _prepare(self, events: list[ConsentEvent]) -> tuple[list[LedgerEntry], list[ConsentEvent]]:
        """Validate a batch and build chained entries for the new events.

        Returns the entries to store and the accepted events in input order
        (duplicates resolve to the stored event).
        """
        histories: dict[str, list[LedgerEntry]] = {}
        pending_by_id: dict[str, ConsentEvent] = {}
        new_entries: list[LedgerEntry] = []
        accepted: list[ConsentEvent] = []

        for event in events:
            self._validate(event)

            existing = pending_by_id.get(event.id)
            if existing is None:
                stored = self.store.get_entry(event.id)
                existing = stored.event if stored else None
            if existing is not None:
                if existing.same_content(event):
                    metrics.consent_duplicates.inc()
                    accepted.append(existing)
                    continue
                raise ConflictError(
                    f"Event id {event.id} already exists with different content",
                    details={"event_ids": [event.id]},
                )

            history = histories.get(event.user_id)
            if history is None:
                history = self.store.entries_for(event.user_id)
                histories[event.user_id] = history

            for entry in history:
                if (
                    entry.event.consent_type == event.consent_type
                    and entry.event.timestamp == event.timestamp
                ):
                    raise ConflictError(
                        f"{event.consent_type.value} already has an event at "
                        f"{event.timestamp.isoformat()} for this user",
                        details={"event_ids": [event.id], "existing_id": entry.event.id},
                    )

            self.policies.verify_reference(event)

            if type_info(event.consent_type).is_required and not event.granted:
                logger.warning(
                    "Recorded denial of a required consent type",
                    extra={"user_id": event.user_id, "consent_type": event.consent_type.value},
                )

            previous = history[-1] if history else None
            sequence = previous.sequence + 1 if previous else 1
            previous_hash = previous.event_hash if previous else None
            entry = LedgerEntry(
                event=event,
                sequence=sequence,
                event_hash=self._hash_entry(event, sequence, previous_hash),
                previous_hash=previous_hash,
            )
            history.append(entry)
            new_entries.append(entry)
            pending_by_id[event.id] = event
            accepted.append(event)

        return new_entries, accepted

    def append(self, event: ConsentEvent) -> ConsentEvent:
        """Append one event; an identical replay is a no-op."""
        return self.append_many([event])[0]

    def append_many(self, events: Iterable[ConsentEvent]) -> list[ConsentEvent]:
        """Append a batch all-or-nothing."""
        events = list(events)
        with self._write_lock:
            try:
                entries, accepted = self._prepare(events)
                if entries:
                    self.store.append_entries(entries)
            except ConsentError as e:
                metrics.consent_events_rejected.labels(error_code=e.error_code).inc()
                raise

        for entry in entries:
            event = entry.event
            metrics.consent_events_appended.labels(
                consent_type=event.consent_type.value,
                granted=str(event.granted).lower(),
                source=event.source.value,
            ).inc()
            logger.info(
                "Appended consent event",
                extra={
                    "event_id": event.id,
                    "user_id": event.user_id,
                    "consent_type": event.consent_type.value,
                    "granted": event.granted,
                    "sequence": entry.sequence,
                },
            )
        return accepted

    def purge_user(self, user_id: str) -> int:
        """Irreversibly delete a user's entire history.

        Distinct from revocation, which is a new granted=False event.
        """
        if not isinstance(user_id, str) or not user_id.strip():
            raise ValidationError("userId must not be empty")
        with self._write_lock:
            removed = self.store.delete_user(user_id)
        metrics.user_purges.inc()
        logger.warning(
            "Purged consent history",
            extra={"user_id": user_id, "events_removed": removed},
        )
        return removed

    def import_user(self, user_id: str, payload: Union[bytes, str, list]) -> list[ConsentEvent]:
        """Replay an export into the ledger all-or-nothing."""
        events = parse_events(payload)
        foreign = sorted({event.user_id for event in events if event.user_id != user_id})
        if foreign:
            raise ValidationError(
                "Import contains events for other users",
                details={"user_ids": foreign},
            )
        return self.append_many(events)

    # Reads

    def history_for(self, user_id: str) -> list[ConsentEvent]:
        """Events for a user in append order."""
        return [entry.event for entry in self.store.entries_for(user_id)]

    def _required_version(self, consent_type: ConsentType) -> str:
        return self.policies.latest_version(consent_type) or self.default_version

    def current_state(self, user_id: str, consent_type) -> ConsentState:
        """Derived state of one consent type for a user."""
        consent_type = parse_consent_type(consent_type)
        events = [
            event for event in self.history_for(user_id) if event.consent_type == consent_type
        ]
        return derive_state(user_id, consent_type, events, self._required_version(consent_type))

    def current_states(self, user_id: str) -> dict[ConsentType, ConsentState]:
        """Derived state of every catalog type for a user."""
        history = self.history_for(user_id)
        states = {}
        for consent_type in CONSENT_TYPES:
            events = [event for event in history if event.consent_type == consent_type]
            states[consent_type] = derive_state(
                user_id, consent_type, events, self._required_version(consent_type)
            )
        return states

    def export_user(self, user_id: str) -> bytes:
        """Byte-reproducible JSON export of a user's full history."""
        payload = serialize_events(self.history_for(user_id))
        metrics.user_exports.inc()
        return payload

    def verify_history(self, user_id: str) -> tuple[bool, Optional[str]]:
        """Verify hash chain integrity for a user."""
        previous_hash = None
        expected_sequence = 1
        for entry in self.store.entries_for(user_id):
            if entry.sequence != expected_sequence:
                return False, f"Sequence gap at event {entry.event.id}"
            if entry.previous_hash != previous_hash:
                return False, f"Broken chain link at event {entry.event.id}"
            computed = self._hash_entry(entry.event, entry.sequence, entry.previous_hash)
            if computed != entry.event_hash:
                return False, f"Hash mismatch at event {entry.event.id}"
            previous_hash = entry.event_hash
            expected_sequence += 1
        return True, None

    def user_ids(self) -> list[str]:
        return self.store.user_ids()

    def summary(self) -> dict:
        """Aggregate counts over every user's current state."""
        per_type = {
            consent_type.value: {"granted": 0, "denied": 0} for consent_type in CONSENT_TYPES
        }
        users = self.user_ids()
        for user_id in users:
            for consent_type, state in self.current_states(user_id).items():
                per_type[consent_type.value]["granted" if state.granted else "denied"] += 1
        return {
            "total_users": len(users),
            "total_events": self.store.count_events(),
            "active_consents": sum(counts["granted"] for counts in per_type.values()),
            "by_type": per_type,
        }
