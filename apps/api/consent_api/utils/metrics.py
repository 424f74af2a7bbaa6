"""Prometheus metrics."""

from prometheus_client import Counter, Histogram

# Ledger metrics
consent_events_appended = Counter(
    "consenthub_consent_events_appended_total",
    "Consent events appended to the ledger",
    ["consent_type", "granted", "source"],
)

consent_events_rejected = Counter(
    "consenthub_consent_events_rejected_total",
    "Consent events rejected by the ledger",
    ["error_code"],
)

consent_duplicates = Counter(
    "consenthub_consent_duplicates_total",
    "Replayed consent events ignored as duplicates",
)

user_purges = Counter(
    "consenthub_user_purges_total",
    "Irreversible user history purges",
)

user_exports = Counter(
    "consenthub_user_exports_total",
    "User history exports",
)

# API metrics
consent_checks = Counter(
    "consenthub_consent_checks_total",
    "Consent checks",
    ["consent_type", "granted"],
)

sync_requests = Counter(
    "consenthub_sync_requests_total",
    "Device sync requests",
    ["outcome"],
)

sync_duration = Histogram(
    "consenthub_sync_duration_seconds",
    "Device sync reconciliation duration",
)

policy_documents_published = Counter(
    "consenthub_policy_documents_published_total",
    "Policy documents published",
    ["consent_type"],
)
