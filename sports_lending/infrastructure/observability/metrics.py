"""Prometheus metrics for loan throughput, return punctuality, suspensions and webhooks"""

from prometheus_client import Counter, Histogram, Gauge

# Loan metrics
loans_created_counter = Counter(
    "lending_loans_created_total",
    "Loans opened",
)

loans_returned_counter = Counter(
    "lending_loans_returned_total",
    "Loans returned",
    ["timeliness"],  # on_time | late
)

borrow_rejections_counter = Counter(
    "lending_borrow_rejections_total",
    "Rejected borrow attempts",
    ["reason"],  # suspended | unavailable | not_found | conflict
)

# Suspension metrics
suspension_counter = Counter(
    "lending_suspensions_total",
    "Suspension state transitions",
    ["action"],  # suspended | unsuspended | expired
)

at_risk_gauge = Gauge(
    "lending_at_risk_students",
    "Students currently flagged at-risk and not dismissed",
)

# Webhook metrics
webhook_latency_histogram = Histogram(
    "notification_webhook_latency_seconds",
    "Notification webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "notification_webhook_failures_total",
    "Failed notification webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_return(late: bool) -> None:
    """Record a returned loan by punctuality"""
    loans_returned_counter.labels(timeliness="late" if late else "on_time").inc()


def record_borrow_rejection(reason: str) -> None:
    borrow_rejections_counter.labels(reason=reason).inc()


def record_suspension(action: str) -> None:
    suspension_counter.labels(action=action).inc()
