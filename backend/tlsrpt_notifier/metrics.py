"""
Prometheus metrics for the TLS-RPT notifier

Provides:
- HTTP request latency and counts
- Business metrics (reports received, alert outcomes)
"""
from prometheus_client import Counter, Histogram, Info, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response
import time
import logging

logger = logging.getLogger(__name__)

metrics_router = APIRouter(tags=["metrics"])

# Label for requests that matched no route (404s)
UNMATCHED_ENDPOINT = "unmatched"

# =============================================================================
# HTTP Metrics
# =============================================================================

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status_code"]
)

# =============================================================================
# Business Metrics
# =============================================================================

TLSRPT_REPORTS_RECEIVED = Counter(
    "tlsrpt_reports_received_total",
    "Total number of TLS-RPT reports received",
    ["status"]  # accepted, malformed
)

TLSRPT_ALERTS = Counter(
    "tlsrpt_alerts_total",
    "Total number of TLS-RPT alert dispatch attempts",
    ["outcome"]  # sent, rate_limited, no_recipients, failed
)

APP_INFO = Info(
    "tlsrpt_notifier",
    "TLS-RPT notifier application information"
)

APP_INFO.info({
    "version": "1.0.0",
    "framework": "fastapi"
})


@metrics_router.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus metrics endpoint"""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def _route_template(request) -> str:
    """Matched route path, so labels stay bounded by the number of routes"""
    route = request.scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_ENDPOINT


async def metrics_middleware(request, call_next):
    """
    Middleware to collect HTTP request metrics
    """
    method = request.method
    start_time = time.time()

    try:
        response = await call_next(request)
        status_code = str(response.status_code)
    except Exception:
        status_code = "500"
        raise
    finally:
        endpoint = _route_template(request)
        duration = time.time() - start_time
        HTTP_REQUEST_DURATION.labels(
            method=method,
            endpoint=endpoint,
            status_code=status_code
        ).observe(duration)
        HTTP_REQUESTS_TOTAL.labels(
            method=method,
            endpoint=endpoint,
            status_code=status_code
        ).inc()

    return response


def record_report_received(status: str = "accepted"):
    """Record a TLS-RPT submission"""
    TLSRPT_REPORTS_RECEIVED.labels(status=status).inc()


def record_alert_outcome(outcome: str):
    """Record the outcome of one alert dispatch"""
    TLSRPT_ALERTS.labels(outcome=outcome).inc()
