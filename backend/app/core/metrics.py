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
    ['status']  # success, insufficient_capacity, rejected, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking creation latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

booking_cancellations = Counter(
    'booking_cancellations_total',
    'Bookings cancelled and released back to inventory',
    ['format']
)

# Reschedule metrics
reschedule_transitions = Counter(
    'reschedule_transitions_total',
    'Reschedule status changes',
    ['status']  # pending, approved, approved_with_charge, rejected, cancelled, processed
)

# Inventory metrics
inventory_operations = Counter(
    'inventory_operations_total',
    'Conditional inventory counter updates',
    ['operation', 'result']  # decrement/increment, applied/rejected
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Body of GET /metrics in the Prometheus text format."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, insufficient_capacity, rejected, error"""
    booking_attempts.labels(status=status).inc()


def record_cancellation(booking_format: str):
    booking_cancellations.labels(format=booking_format).inc()


def record_reschedule_transition(status: str):
    reschedule_transitions.labels(status=status).inc()


def record_inventory_operation(operation: str, applied: bool):
    """Record a guarded counter update. Operation: decrement, increment"""
    result = "applied" if applied else "rejected"
    inventory_operations.labels(operation=operation, result=result).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
