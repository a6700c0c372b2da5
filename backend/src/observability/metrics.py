"""Prometheus metrics for the webhook work queue."""

from prometheus_client import Counter, Histogram

# Ingestion metrics
webhooks_received_total = Counter(
    "webhook_queue_webhooks_received_total",
    "Total webhook envelopes handed to the ingestion pipeline",
    ["outcome"]  # outcome: success|decryption_error|classification_error|store_unavailable|error
)

documents_classified_total = Counter(
    "webhook_queue_documents_classified_total",
    "Classified documents by kind",
    ["kind"]  # kind: PRODUCT|ORDER|UNRECOGNIZED
)

work_items_created_total = Counter(
    "webhook_queue_work_items_created_total",
    "Work items created by ingestion strategies",
    ["strategy", "scope"]
)

ingestion_duration_seconds = Histogram(
    "webhook_queue_ingestion_duration_seconds",
    "Time spent ingesting one envelope in seconds",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Store metrics
store_retries_total = Counter(
    "webhook_queue_store_retries_total",
    "Transient store failures that were retried",
    ["operation"]
)

work_item_claims_total = Counter(
    "webhook_queue_work_item_claims_total",
    "Conditional claim attempts by the downstream consumer",
    ["result"]  # result: claimed|lost
)
