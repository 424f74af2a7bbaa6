"""Reconciliation of device-local consent events against the ledger.

Conflict policy is last-write-wins by event timestamp: every non-conflicting
device event is appended and the ledger's derivation picks the latest one.
Events that collide with the stored history (same id with different content,
or a second event at an occupied instant) cannot be merged automatically and
fail the whole sync.
"""

import logging
from dataclasses import dataclass, field

from consent_api.consent import ConsentEvent, ConsentState, ConsentType
from consent_api.errors import ConflictError, ValidationError
from consent_api.ledger.service import ConsentLedger

logger = logging.getLogger(__name__)


@dataclass
class SyncOutcome:
    """Result of reconciling one device's pending events."""

    user_id: str
    applied: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)
    states: dict[ConsentType, ConsentState] = field(default_factory=dict)


def _find_conflicts(ledger: ConsentLedger, user_id: str, events: list[ConsentEvent]) -> list[str]:
    history = ledger.history_for(user_id)
    by_id = {event.id: event for event in history}
    occupied = {(event.consent_type, event.timestamp): event.id for event in history}
    conflicts = []
    for event in events:
        stored = by_id.get(event.id)
        if stored is None:
            stored_entry = ledger.store.get_entry(event.id)
            stored = stored_entry.event if stored_entry else None
        if stored is not None:
            if not stored.same_content(event):
                conflicts.append(event.id)
            continue
        holder = occupied.get((event.consent_type, event.timestamp))
        if holder is not None and holder != event.id:
            conflicts.append(event.id)
            continue
        occupied[(event.consent_type, event.timestamp)] = event.id
    return conflicts


def reconcile(ledger: ConsentLedger, user_id: str, events: list[ConsentEvent]) -> SyncOutcome:
    """Merge a device's pending events into the ledger all-or-nothing."""
    foreign = sorted({event.user_id for event in events if event.user_id != user_id})
    if foreign:
        raise ValidationError(
            "Sync contains events for other users",
            details={"user_ids": foreign},
        )

    conflicts = _find_conflicts(ledger, user_id, events)
    if conflicts:
        logger.warning(
            "Sync rejected due to divergent history",
            extra={"user_id": user_id, "conflicts": conflicts},
        )
        raise ConflictError(
            "Device history diverges from the ledger",
            details={"event_ids": conflicts},
        )

    known_ids = {event.id for event in ledger.history_for(user_id)}
    outcome = SyncOutcome(user_id=user_id)
    for event in events:
        if event.id in known_ids:
            outcome.duplicates.append(event.id)
        else:
            outcome.applied.append(event.id)
            known_ids.add(event.id)

    ledger.append_many(events)
    outcome.states = ledger.current_states(user_id)

    logger.info(
        "Reconciled device events",
        extra={
            "user_id": user_id,
            "applied": len(outcome.applied),
            "duplicates": len(outcome.duplicates),
        },
    )
    return outcome
