"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at the /metrics endpoint.
"""

from fastapi import Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

# Admission metrics
admission_decisions = Counter(
    'admission_decisions_total',
    'Admission decisions by facility and outcome',
    ['facility', 'outcome']  # committed, or the denial kind
)

admission_latency = Histogram(
    'admission_latency_seconds',
    'End-to-end admission decision latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

# Waitlist metrics
waitlist_operations = Counter(
    'waitlist_operations_total',
    'Waitlist operations by kind and result',
    ['operation', 'result']  # join/leave/mark, ok or denial kind
)

# Storage metrics
storage_retries = Counter(
    'storage_retry_attempts_total',
    'Storage attempts retried after a transient failure',
    ['operation']
)

storage_failures = Counter(
    'storage_failures_total',
    'Operations that exhausted their retry budget',
    ['operation']
)

configuration_faults = Counter(
    'configuration_faults_total',
    'Catalog or token registry faults that forced a fail-closed denial',
    ['kind']
)

# Catalog cache metrics
catalog_cache_operations = Counter(
    'catalog_cache_operations_total',
    'Schedule catalog cache lookups',
    ['result']  # hit, miss, error
)

# Notification metrics
notifications_published = Counter(
    'notifications_published_total',
    'Fire-and-forget notifications by result',
    ['result']  # sent, failed, skipped
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_admission(facility: str, outcome: str):
    """Record admission decision. Outcome: committed or a denial kind."""
    admission_decisions.labels(facility=facility, outcome=outcome).inc()


def record_waitlist_operation(operation: str, result: str):
    waitlist_operations.labels(operation=operation, result=result).inc()


def record_storage_retry(operation: str):
    storage_retries.labels(operation=operation).inc()


def record_storage_failure(operation: str):
    storage_failures.labels(operation=operation).inc()


def record_configuration_fault(kind: str):
    configuration_faults.labels(kind=kind).inc()


def record_catalog_cache(result: str):
    catalog_cache_operations.labels(result=result).inc()


def record_notification(result: str):
    notifications_published.labels(result=result).inc()
