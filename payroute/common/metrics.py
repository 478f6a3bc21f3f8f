"""Prometheus metric definitions for the payment routes."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


payment_requests_total = Counter(
    "payment_requests_total",
    "Total payment requests",
    ["service", "method"],
)
payment_success_total = Counter(
    "payment_success_total",
    "Total successful payments",
    ["service", "method"],
)
payment_failure_total = Counter(
    "payment_failure_total",
    "Total failed payments",
    ["service", "method", "error_code"],
)
vendor_latency_seconds = Histogram(
    "vendor_latency_seconds",
    "Vendor call latency seconds",
    ["service", "vendor", "operation"],
)
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)
validation_failures_total = Counter(
    "validation_failures_total",
    "Payment requests rejected before reaching a vendor",
    ["service", "reason"],
)
rate_limited_total = Counter("rate_limited_total", "Requests rejected by the rate limiter", ["service"])
webhook_events_total = Counter(
    "webhook_events_total",
    "Stripe webhook deliveries by event type and outcome",
    ["service", "event_type", "outcome"],
)
order_creation_total = Counter(
    "order_creation_total",
    "Order collaborator calls",
    ["service", "payment_method", "outcome"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
