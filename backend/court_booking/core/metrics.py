"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking attempts',
    ['status']  # created, conflict, rejected, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking creation latency',
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

booking_status_transitions = Counter(
    'booking_status_transitions_total',
    'Booking status transitions applied',
    ['to_status']
)

# Availability metrics
slot_resolution_latency = Histogram(
    'slot_resolution_latency_seconds',
    'Time to resolve bookable slots for one court and date',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25]
)

# Cancellation / refund metrics
cancellations = Counter(
    'booking_cancellations_total',
    'Cancelled bookings by refund outcome',
    ['refund_status', 'forced']
)

refunded_cents = Counter(
    'booking_refunded_cents_total',
    'Total minor currency units refunded'
)

# Payment provider metrics
payment_provider_errors = Counter(
    'payment_provider_errors_total',
    'Failed payment provider calls',
    ['operation']  # authorize, reverse, cancel, account_status
)

orphaned_authorizations = Counter(
    'payment_orphaned_authorizations_total',
    'Authorizations left behind by a failed booking insert'
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(status: str):
    """Record booking attempt. Status: created, conflict, rejected, error"""
    booking_attempts.labels(status=status).inc()


def record_status_transition(to_status: str):
    booking_status_transitions.labels(to_status=to_status).inc()


def record_cancellation(refund_status: str, forced: bool, amount_cents: int):
    cancellations.labels(refund_status=refund_status, forced=str(forced).lower()).inc()
    if amount_cents > 0:
        refunded_cents.inc(amount_cents)


def record_payment_error(operation: str):
    payment_provider_errors.labels(operation=operation).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()


# HTTP metrics
http_request_latency = Histogram(
    'http_request_duration_seconds',
    'Request latency by route template',
    ['method', 'route', 'status_class'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

requests_in_flight = Gauge(
    'http_requests_in_flight',
    'Requests currently being served'
)


def record_request(method: str, route: str, status_code: int, duration_seconds: float):
    status_class = f"{status_code // 100}xx"
    http_request_latency.labels(method=method, route=route, status_class=status_class).observe(duration_seconds)
