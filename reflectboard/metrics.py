"""
Prometheus metrics for the reflectboard API.

This module provides:
- HTTP request counter (method, path, status)
- Reflection outcome counter (result)
- Messages created counter
- Request latency histogram (method, path)

Metrics are stored in-memory using prometheus-client.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST


# =============================================================================
# Metric Definitions
# =============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "path", "status"]
)

# result: registered, already_registered, not_found, error
reflection_outcomes_total = Counter(
    "reflection_outcomes_total",
    "Total reflection registration outcomes",
    labelnames=["result"]
)

messages_created_total = Counter(
    "messages_created_total",
    "Total messages submitted"
)

request_latency_seconds = Histogram(
    "request_latency_seconds",
    "Request latency in seconds",
    labelnames=["method", "path"]
)


# =============================================================================
# Helper Functions
# =============================================================================

def record_http_request(method: str, path: str, status: int, latency_seconds: float) -> None:
    """
    Record an HTTP request in metrics.

    Args:
        method: HTTP method (GET, POST, etc.)
        path: Route template (e.g. /reflect/{message_id}) or raw path if unrouted
        status: HTTP status code
        latency_seconds: Request processing time in seconds
    """
    normalized_path = path.split("?")[0]

    http_requests_total.labels(
        method=method,
        path=normalized_path,
        status=str(status)
    ).inc()

    request_latency_seconds.labels(
        method=method,
        path=normalized_path
    ).observe(latency_seconds)


def record_reflection_outcome(result: str) -> None:
    """Record a reflection outcome: registered, already_registered, not_found or error."""
    reflection_outcomes_total.labels(result=result).inc()


def record_message_created() -> None:
    messages_created_total.inc()


def get_metrics() -> bytes:
    """
    Generate Prometheus exposition format metrics.

    Returns:
        Metrics in Prometheus text format as bytes
    """
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
