"""Request and response models shared across routes."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from consent_api.consent import ConsentEvent, ConsentSource, ConsentState, ConsentType, PolicyDocument


class CamelModel(BaseModel):
    """Model exchanged with clients using camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ConsentEventResponse(CamelModel):
    """Consent event as returned to clients."""

    id: str
    user_id: str
    type: ConsentType
    granted: bool
    timestamp: datetime
    version: str
    source: ConsentSource
    document_hash: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_event(cls, event: ConsentEvent) -> "ConsentEventResponse":
        return cls.model_validate(event.to_dict())


class ConsentStateResponse(CamelModel):
    """Derived consent state."""

    user_id: str
    type: ConsentType
    granted: bool
    version: Optional[str] = None
    updated_at: Optional[datetime] = None
    required: bool = False

    @classmethod
    def from_state(cls, state: ConsentState) -> "ConsentStateResponse":
        return cls.model_validate(state.to_dict())


class PolicyDocumentResponse(CamelModel):
    """Published policy document."""

    id: str
    type: ConsentType
    version: str
    content: str
    effective_date: datetime
    hash: str
    url: Optional[str] = None

    @classmethod
    def from_document(cls, document: PolicyDocument) -> "PolicyDocumentResponse":
        return cls.model_validate(document.to_dict())
