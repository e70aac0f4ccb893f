"""Prometheus metric definitions for the checkout service."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


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
orders_created_total = Counter("orders_created_total", "Orders created at the gateway", ["service", "currency"])
order_failures_total = Counter("order_failures_total", "Order creation failures", ["service", "error_type"])
verifications_total = Counter(
    "payment_verifications_total",
    "Payment verification outcomes",
    ["service", "outcome"],
)
gateway_request_duration_seconds = Histogram(
    "gateway_request_duration_seconds",
    "Payment gateway call duration seconds",
    ["operation"],
)
gateway_errors_total = Counter("gateway_errors_total", "Payment gateway call errors", ["operation", "error_type"])


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
