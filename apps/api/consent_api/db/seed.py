"""Seed data for development and testing."""

from datetime import datetime, timezone

from consent_api.consent import CONSENT_TYPES, PolicyDocument
from consent_api.policy.registry import PolicyRegistry

SEED_EFFECTIVE_DATE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def seed_policy_documents(registry: PolicyRegistry, version: str = "1.0") -> list[PolicyDocument]:
    """Publish a baseline document for every type that requires one."""
    documents = []
    for consent_type, info in CONSENT_TYPES.items():
        if not info.requires_document:
            continue
        documents.append(
            registry.publish(
                consent_type,
                version=version,
                content=f"{info.title} (version {version})\n\n{info.description}\n",
                effective_date=SEED_EFFECTIVE_DATE,
            )
        )
    return documents
