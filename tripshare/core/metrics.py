"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking lifecycle metrics
booking_transitions = Counter(
    'booking_transitions_total',
    'Booking state machine events',
    ['event', 'result']  # event: create/accept/reject/cancel/...; result: success, rejected
)

booking_latency = Histogram(
    'booking_operation_latency_seconds',
    'Latency of booking-affecting operations',
    ['event'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

seat_conflicts = Counter(
    'seat_conflicts_total',
    'Requests rejected because a requested seat was unavailable',
    ['stage']  # create, edit, accept
)

seat_claim_retries = Counter(
    'seat_claim_retries_total',
    'Seat map version conflicts that forced a retry'
)

# Notification fan-out
notification_deliveries = Counter(
    'notification_deliveries_total',
    'Notification fan-out outcomes',
    ['result']  # persisted, skipped, published, failed
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

# HTTP
http_request_latency = Histogram(
    'http_request_latency_seconds',
    'HTTP request latency',
    ['method', 'status_code'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )

# Convenience functions for instrumentation
def record_transition(event: str, success: bool = True):
    """Record a booking state machine event."""
    booking_transitions.labels(event=event, result="success" if success else "rejected").inc()

def record_seat_conflict(stage: str):
    seat_conflicts.labels(stage=stage).inc()

def record_notification(result: str):
    """Result: persisted, skipped, published, failed"""
    notification_deliveries.labels(result=result).inc()

def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
