"""Per-user consent history, purge, export and import endpoints."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Header, Response

from consent_api.dependencies import get_ledger
from consent_api.errors import ValidationError
from consent_api.ledger.service import ConsentLedger
from consent_api.schemas import CamelModel, ConsentEventResponse, ConsentStateResponse

router = APIRouter(prefix="/v1/users", tags=["users"])
logger = logging.getLogger(__name__)


class PurgeResponse(CamelModel):
    """Outcome of an irreversible purge."""

    user_id: str
    events_removed: int


class ImportResponse(CamelModel):
    """Outcome of a bulk import."""

    user_id: str
    imported: int


class VerifyResponse(CamelModel):
    """Hash chain verification result."""

    user_id: str
    valid: bool
    error: Optional[str] = None


@router.get("/{user_id}/consents", response_model=list[ConsentEventResponse])
async def get_user_consents(user_id: str, ledger: ConsentLedger = Depends(get_ledger)):
    """Full consent history in append order."""
    return [ConsentEventResponse.from_event(event) for event in ledger.history_for(user_id)]


@router.get("/{user_id}/consents/state", response_model=list[ConsentStateResponse])
async def get_user_consent_state(user_id: str, ledger: ConsentLedger = Depends(get_ledger)):
    """Current derived state of every consent type."""
    return [
        ConsentStateResponse.from_state(state)
        for state in ledger.current_states(user_id).values()
    ]


@router.delete("/{user_id}/consents", response_model=PurgeResponse)
async def delete_user_consents(
    user_id: str,
    ledger: ConsentLedger = Depends(get_ledger),
    x_confirm_purge: Optional[str] = Header(None),
):
    """Irreversibly delete a user's entire consent history.

    The caller must echo the user id in ``x-confirm-purge``; revoking a
    consent is a normal POST /consents with granted=false instead.
    """
    if x_confirm_purge != user_id:
        raise ValidationError(
            "Purge requires confirmation: send x-confirm-purge with the user id",
            details={"user_id": user_id},
        )
    removed = ledger.purge_user(user_id)
    return PurgeResponse(user_id=user_id, events_removed=removed)


@router.get("/{user_id}/consents/export")
async def export_user_consents(user_id: str, ledger: ConsentLedger = Depends(get_ledger)):
    """Portable snapshot of the full history."""
    payload = ledger.export_user(user_id)
    return Response(
        content=payload,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="consents-{user_id}.json"'},
    )


@router.post("/{user_id}/consents/import", response_model=ImportResponse)
async def import_user_consents(
    user_id: str,
    payload: list[dict[str, Any]] = Body(...),
    ledger: ConsentLedger = Depends(get_ledger),
):
    """Replay an export; nothing is stored unless every event is accepted."""
    events = ledger.import_user(user_id, payload)
    logger.info("Imported consent history", extra={"user_id": user_id, "events": len(events)})
    return ImportResponse(user_id=user_id, imported=len(events))


@router.get("/{user_id}/consents/verify", response_model=VerifyResponse)
async def verify_user_consents(user_id: str, ledger: ConsentLedger = Depends(get_ledger)):
    """Check the user's history hash chain."""
    valid, error = ledger.verify_history(user_id)
    return VerifyResponse(user_id=user_id, valid=valid, error=error)
