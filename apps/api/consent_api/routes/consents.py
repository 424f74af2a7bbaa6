"""Consent recording, checking and device sync endpoints."""

import time
import uuid
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request, status
from pydantic import Field

from consent_api.consent import (
    CONSENT_TYPES,
    ConsentEvent,
    ConsentSource,
    ConsentType,
    EventMetadata,
    parse_timestamp,
    utcnow,
)
from consent_api.dependencies import get_ledger
from consent_api.errors import ConsentError
from consent_api.ledger.service import ConsentLedger
from consent_api.ledger.sync import reconcile
from consent_api.schemas import CamelModel, ConsentEventResponse, ConsentStateResponse
from consent_api.utils import metrics

router = APIRouter(prefix="/v1", tags=["consents"])


class RecordConsentRequest(CamelModel):
    """Consent event submission."""

    id: Optional[str] = Field(None, description="Client-generated event id; reused on retry")
    user_id: str = Field(..., min_length=1, description="Subject user identifier")
    type: ConsentType
    granted: bool
    version: Optional[str] = Field(None, description="Policy version; defaults to the effective one")
    document_hash: Optional[str] = None
    timestamp: Optional[datetime] = Field(None, description="Decision time; defaults to server time")
    source: ConsentSource = ConsentSource.API
    metadata: dict[str, Any] = Field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class CheckConsentRequest(CamelModel):
    """Consent check for a user or device."""

    type: ConsentType
    user_id: Optional[str] = None
    device_id: str = Field(..., min_length=1)
    platform: str = "web"


class CheckConsentResponse(CamelModel):
    """Consent check result."""

    type: ConsentType
    subject: str
    granted: bool
    version: Optional[str] = None
    required: bool = False
    updated_at: Optional[datetime] = None


class SyncEvent(CamelModel):
    """Event recorded on a device while offline."""

    id: str = Field(..., min_length=1)
    type: ConsentType
    granted: bool
    timestamp: datetime
    version: str
    document_hash: Optional[str] = None
    source: ConsentSource = ConsentSource.SDK
    metadata: dict[str, Any] = Field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class SyncRequest(CamelModel):
    """Device sync submission."""

    user_id: Optional[str] = None
    device_id: str = Field(..., min_length=1)
    platform: str = "web"
    device_info: dict[str, Any] = Field(default_factory=dict)
    events: list[SyncEvent] = Field(default_factory=list)


class SyncResponse(CamelModel):
    """Device sync result with the authoritative state of every type."""

    user_id: str
    applied: list[str]
    duplicates: list[str]
    states: list[ConsentStateResponse]


class ConsentTypeResponse(CamelModel):
    """Catalog entry."""

    type: ConsentType
    title: str
    description: str
    category: str
    required: bool
    requires_document: bool


@router.post("/consents", response_model=ConsentEventResponse, status_code=status.HTTP_201_CREATED)
async def record_consent(
    request_data: RecordConsentRequest,
    request: Request,
    ledger: ConsentLedger = Depends(get_ledger),
):
    """Append a consent event to the user's history."""
    timestamp = parse_timestamp(request_data.timestamp) if request_data.timestamp else utcnow()

    document = ledger.policies.effective_at(request_data.type, timestamp)
    version = request_data.version or (document.version if document else ledger.default_version)
    document_hash = request_data.document_hash
    if document_hash is None and document and document.version == version:
        document_hash = document.hash

    event = ConsentEvent(
        id=request_data.id or str(uuid.uuid4()),
        user_id=request_data.user_id,
        consent_type=request_data.type,
        granted=request_data.granted,
        timestamp=timestamp,
        version=version,
        source=request_data.source,
        document_hash=document_hash,
        metadata=EventMetadata(
            ip_address=request_data.ip_address or (request.client.host if request.client else None),
            user_agent=request_data.user_agent or request.headers.get("user-agent"),
            extras=request_data.metadata,
        ),
    )
    stored = ledger.append(event)
    return ConsentEventResponse.from_event(stored)


@router.post("/consents/check", response_model=CheckConsentResponse)
async def check_consent(
    request_data: CheckConsentRequest,
    ledger: ConsentLedger = Depends(get_ledger),
):
    """Current state of one consent type for a user, or a device when no user is known."""
    subject = request_data.user_id or request_data.device_id
    state = ledger.current_state(subject, request_data.type)
    metrics.consent_checks.labels(
        consent_type=request_data.type.value,
        granted=str(state.granted).lower(),
    ).inc()
    return CheckConsentResponse(
        type=state.consent_type,
        subject=subject,
        granted=state.granted,
        version=state.version,
        required=state.required,
        updated_at=state.updated_at,
    )


@router.post("/consents/sync", response_model=SyncResponse)
async def sync_consents(
    request_data: SyncRequest,
    ledger: ConsentLedger = Depends(get_ledger),
):
    """Merge a device's offline events; latest timestamp wins."""
    subject = request_data.user_id or request_data.device_id
    events = [
        ConsentEvent(
            id=item.id,
            user_id=subject,
            consent_type=item.type,
            granted=item.granted,
            timestamp=parse_timestamp(item.timestamp),
            version=item.version,
            source=item.source,
            document_hash=item.document_hash,
            metadata=EventMetadata(
                ip_address=item.ip_address,
                user_agent=item.user_agent,
                extras=item.metadata,
            ),
        )
        for item in request_data.events
    ]

    started = time.perf_counter()
    try:
        outcome = reconcile(ledger, subject, events)
    except ConsentError as e:
        metrics.sync_requests.labels(outcome=e.error_code.lower()).inc()
        raise
    finally:
        metrics.sync_duration.observe(time.perf_counter() - started)
    metrics.sync_requests.labels(outcome="ok").inc()

    return SyncResponse(
        user_id=subject,
        applied=outcome.applied,
        duplicates=outcome.duplicates,
        states=[ConsentStateResponse.from_state(state) for state in outcome.states.values()],
    )


@router.get("/consent-types", response_model=list[ConsentTypeResponse])
async def list_consent_types():
    """Consent type catalog."""
    return [
        ConsentTypeResponse.model_validate({"type": consent_type, **info.to_dict()})
        for consent_type, info in CONSENT_TYPES.items()
    ]
