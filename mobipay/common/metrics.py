"""Prometheus metric definitions for the payment gateway."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


payment_requests_total = Counter("payment_requests_total", "Total payment requests", ["method"])
payment_outcomes_total = Counter(
    "payment_outcomes_total",
    "Payment responses by terminal status and whether they were simulated",
    ["method", "status", "simulated"],
)
payment_latency_seconds = Histogram("payment_latency_seconds", "Payment initiation latency seconds", ["method"])
status_checks_total = Counter(
    "status_checks_total",
    "Payment status checks by path and resulting status",
    ["path", "status"],
)
simulation_fallbacks_total = Counter(
    "simulation_fallbacks_total",
    "Live provider calls replaced by a simulated outcome",
    ["provider", "kind"],
)
token_exchanges_total = Counter(
    "token_exchanges_total",
    "Provider credential exchanges",
    ["provider", "outcome"],
)
provider_request_duration_seconds = Histogram(
    "provider_request_duration_seconds",
    "Outbound provider HTTP call duration seconds",
    ["provider", "operation"],
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


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
