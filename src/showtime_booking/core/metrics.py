"""
Prometheus metrics for monitoring
"""
from prometheus_client import Counter, Histogram, generate_latest
import time
from functools import wraps

# ==================== HTTP Metrics ====================

http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

# ==================== Reservation Metrics ====================

reservations_total = Counter(
    'reservations_total',
    'Reservation attempts by result',
    ['result']  # created, seats_unavailable, invalid, gateway_error
)

reservation_duration_seconds = Histogram(
    'reservation_duration_seconds',
    'Time to reserve seats and open a checkout session',
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 15.0]
)

# ==================== Seat Lock Metrics ====================

seat_lock_results_total = Counter(
    'seat_lock_results_total',
    'Advisory seat lock acquisitions by outcome',
    ['outcome']  # ACQUIRED, CONFLICT, UNAVAILABLE
)

# ==================== Reconciliation Metrics ====================

reconcile_outcomes_total = Counter(
    'reconcile_outcomes_total',
    'Booking reconciliation outcomes',
    ['source', 'outcome']  # source: payment, expiry
)

refunds_issued_total = Counter(
    'refunds_issued_total',
    'Refunds issued for payments that arrived after expiry'
)

webhook_signature_failures_total = Counter(
    'webhook_signature_failures_total',
    'Payment webhooks rejected for a bad signature'
)

payment_gateway_errors_total = Counter(
    'payment_gateway_errors_total',
    'Payment gateway call failures',
    ['operation']  # create_session, refund
)

expiry_worker_fired_total = Counter(
    'expiry_worker_fired_total',
    'Expiry timers processed by the worker'
)

expiry_sweep_duration_seconds = Histogram(
    'expiry_sweep_duration_seconds',
    'Time spent firing one batch of due expiry timers'
)

# ==================== Helper Functions ====================

def track_time(metric: Histogram):
    """Decorator to track execution time"""
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                result = await func(*args, **kwargs)
                return result
            finally:
                duration = time.time() - start_time
                metric.observe(duration)
        return wrapper
    return decorator


def record_reconcile_outcome(source: str, outcome) -> None:
    reconcile_outcomes_total.labels(source=source, outcome=getattr(outcome, 'value', outcome)).inc()


def get_metrics():
    """Get current metrics in Prometheus format"""
    return generate_latest()
