"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking attempts',
    ['status']  # success, conflict, rejected, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking request latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

db_retries = Counter(
    'db_retry_attempts_total',
    'Booking retries due to position version conflicts'
)

# Sweeper metrics
sweep_bookings = Counter(
    'sweep_bookings_total',
    'Bookings affected by cleanup sweeps',
    ['step']  # completed, deleted
)

sweep_failures = Counter(
    'sweep_failures_total',
    'Cleanup sweep steps that failed',
    ['step']
)

# External collaborators
notifications = Counter(
    'notifications_total',
    'Booking notifications',
    ['result']  # sent, failed, skipped
)

identity_lookups = Counter(
    'identity_lookups_total',
    'Identity provider lookups',
    ['kind', 'result']  # user/staff, ok/error/cached
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


# Convenience functions for instrumentation
def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, conflict, rejected, error"""
    booking_attempts.labels(status=status).inc()


def record_sweep(step: str, count: int):
    """Record bookings touched by a sweep step. Step: completed, deleted"""
    if count:
        sweep_bookings.labels(step=step).inc(count)


def record_notification(result: str):
    """Record notification outcome. Result: sent, failed, skipped"""
    notifications.labels(result=result).inc()


def record_identity_lookup(kind: str, result: str):
    identity_lookups.labels(kind=kind, result=result).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
