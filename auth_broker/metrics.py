"""Prometheus metric definitions for the broker.

Single source of truth for all custom metrics. Import from here in API and Celery code.
"""

from prometheus_client import Counter, Histogram

# --- Store / upstream latency ---

store_latency_seconds = Histogram(
    "auth_broker_store_latency_seconds",
    "Latency of store and identity-provider calls in seconds",
    ["operation", "location", "country", "outcome"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# --- Token lifecycle ---

tokens_issued_total = Counter(
    "auth_broker_tokens_issued_total",
    "Total bearer tokens issued by flow",
    ["flow"],
)

token_validations_total = Counter(
    "auth_broker_token_validations_total",
    "Total token validations by token kind and result",
    ["kind", "result"],
)

best_effort_store_failures_total = Counter(
    "auth_broker_best_effort_store_failures_total",
    "Failures of a store whose writes do not fail the request",
    ["store", "operation"],
)

# --- Maintenance ---

cleanup_deleted_total = Counter(
    "auth_broker_cleanup_deleted_total",
    "Rows deleted by the periodic cleanup by record kind",
    ["record"],
)
