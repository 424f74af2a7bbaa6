"""Admin routes for aggregate consent records."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from consent_api.auth.api_key import require_admin
from consent_api.consent import ConsentType
from consent_api.dependencies import get_ledger
from consent_api.ledger.service import ConsentLedger
from consent_api.schemas import CamelModel, ConsentEventResponse

router = APIRouter(prefix="/v1/admin", tags=["admin"], dependencies=[Depends(require_admin)])


class TypeCounts(CamelModel):
    """Current-state counts for one consent type."""

    granted: int
    denied: int


class StatsResponse(CamelModel):
    """Aggregate view over every user's current state."""

    total_users: int
    total_events: int
    active_consents: int
    by_type: dict[str, TypeCounts]


@router.get("/stats", response_model=StatsResponse)
async def get_stats(ledger: ConsentLedger = Depends(get_ledger)):
    """Totals for the admin dashboard."""
    return StatsResponse.model_validate(ledger.summary())


@router.get("/consents", response_model=list[ConsentEventResponse])
async def list_consents(
    user_id: Optional[str] = None,
    consent_type: Optional[ConsentType] = Query(None, alias="type"),
    limit: int = Query(100, ge=1, le=1000),
    ledger: ConsentLedger = Depends(get_ledger),
):
    """Consent records across users, newest first."""
    user_ids = [user_id] if user_id else ledger.user_ids()
    events = [event for uid in user_ids for event in ledger.history_for(uid)]
    if consent_type:
        events = [event for event in events if event.consent_type == consent_type]
    events.sort(key=lambda event: event.timestamp, reverse=True)
    return [ConsentEventResponse.from_event(event) for event in events[:limit]]
