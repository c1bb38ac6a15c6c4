"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Admission metrics
admission_outcomes = Counter(
    'admission_outcomes_total',
    'Registration admission outcomes',
    ['result']  # admitted, or the rejection kind
)

admission_latency = Histogram(
    'admission_latency_seconds',
    'Admission decision latency including the row store write',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

# Waitlist / status metrics
waitlist_actions = Counter(
    'waitlist_actions_total',
    'Waitlist actions',
    ['action']  # requested, approved, rejected, promoted
)

status_transitions = Counter(
    'registration_status_transitions_total',
    'Registration status transitions',
    ['from_status', 'to_status']
)

# Locking
event_lock_wait = Histogram(
    'event_lock_wait_seconds',
    'Time spent waiting for the per-event lock',
    buckets=[0.0001, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5]
)

# Row store
row_store_errors = Counter(
    'row_store_errors_total',
    'Row store operations that raised',
    ['operation']
)

# Notifications
notifications_sent = Counter(
    'notifications_total',
    'Confirmation notifications',
    ['channel', 'result']  # sms/email, sent/failed/skipped
)

# Rate limiting
rate_limit_rejections = Counter(
    'rate_limit_rejections_total',
    'Requests rejected by the rate limiter',
    ['route']
)

rate_limit_store_errors = Counter(
    'rate_limit_store_errors_total',
    'Rate limit store failures (requests fail open)'
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
def record_admission(result: str):
    """Record admission decision. Result: admitted or an error kind."""
    admission_outcomes.labels(result=result).inc()


def record_waitlist_action(action: str):
    waitlist_actions.labels(action=action).inc()


def record_transition(from_status: str, to_status: str):
    status_transitions.labels(from_status=from_status, to_status=to_status).inc()


def record_notification(channel: str, result: str):
    """Record notification dispatch. Result: sent, failed, skipped"""
    notifications_sent.labels(channel=channel, result=result).inc()
