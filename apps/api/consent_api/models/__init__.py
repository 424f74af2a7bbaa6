"""Database models - import all models here for metadata discovery."""

from consent_api.models.consent import ConsentEventRecord
from consent_api.models.policy import PolicyDocumentRecord

__all__ = [
    "ConsentEventRecord",
    "PolicyDocumentRecord",
]
