"""Policy document endpoints."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import Field

from consent_api.auth.api_key import require_admin
from consent_api.consent import ConsentType
from consent_api.dependencies import get_ledger
from consent_api.ledger.service import ConsentLedger
from consent_api.schemas import CamelModel, PolicyDocumentResponse
from consent_api.utils import metrics

router = APIRouter(prefix="/v1/policies", tags=["policies"])


class PublishPolicyRequest(CamelModel):
    """New policy document version."""

    type: ConsentType
    version: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    effective_date: Optional[datetime] = None
    hash: Optional[str] = Field(None, description="Optional SHA-256 of content, verified if present")
    url: Optional[str] = None


@router.get("/{consent_type}", response_model=PolicyDocumentResponse)
async def get_policy_document(
    consent_type: ConsentType,
    version: Optional[str] = None,
    ledger: ConsentLedger = Depends(get_ledger),
):
    """A specific version, or the one in force now."""
    return PolicyDocumentResponse.from_document(ledger.policies.get(consent_type, version))


@router.get("/{consent_type}/versions", response_model=list[PolicyDocumentResponse])
async def list_policy_versions(
    consent_type: ConsentType,
    ledger: ConsentLedger = Depends(get_ledger),
):
    """Every published version ordered by effective date."""
    return [
        PolicyDocumentResponse.from_document(document)
        for document in ledger.policies.documents(consent_type)
    ]


@router.post(
    "",
    response_model=PolicyDocumentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def publish_policy_document(
    request_data: PublishPolicyRequest,
    ledger: ConsentLedger = Depends(get_ledger),
):
    """Publish a new, immutable policy document version."""
    document = ledger.policies.publish(
        request_data.type,
        version=request_data.version,
        content=request_data.content,
        effective_date=request_data.effective_date,
        document_hash=request_data.hash,
        url=request_data.url,
    )
    metrics.policy_documents_published.labels(consent_type=request_data.type.value).inc()
    return PolicyDocumentResponse.from_document(document)
