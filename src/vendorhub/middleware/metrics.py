"""Prometheus metrics middleware and domain counters."""
import time
from typing import Callable

from prometheus_client import Counter, Gauge, Histogram, generate_latest
from prometheus_client import CONTENT_TYPE_LATEST
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


# =============================================================================
# Prometheus Metrics Definitions
# =============================================================================

# Request metrics
REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_requests_active",
    "Number of active HTTP requests",
)

# Domain metrics
ORDER_EVENTS = Counter(
    "order_events_total",
    "Order lifecycle events",
    ["event"],  # created, cancelled, paid, delivered, refunded
)

ESCROW_EVENTS = Counter(
    "escrow_events_total",
    "Wallet and escrow ledger operations",
    ["event"],  # top_up, withdraw, hold, release, refund, dispute
)

GROUP_ORDER_EVENTS = Counter(
    "group_order_events_total",
    "Group-buy lifecycle events",
    ["event"],  # created, joined, contribution, left, closed, cancelled, invitation_*
)

TX_RETRIES = Counter(
    "atomic_unit_retries_total",
    "Atomic unit retries caused by concurrent updates",
    ["unit"],
)


# =============================================================================
# Metrics Middleware
# =============================================================================

class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to collect Prometheus metrics for all HTTP requests."""

    # Endpoints to normalize for metrics (reduce cardinality)
    ENDPOINT_PATTERNS = {
        "/api/v1/orders": "/api/v1/orders",
        "/api/v1/wallet": "/api/v1/wallet",
        "/api/v1/group-orders": "/api/v1/group-orders",
        "/api/v1/products": "/api/v1/products",
        "/api/v1/invitations": "/api/v1/invitations",
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        ACTIVE_REQUESTS.inc()
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception:
            status_code = 500
            raise
        finally:
            ACTIVE_REQUESTS.dec()
            latency = time.perf_counter() - start_time
            endpoint = self._normalize_endpoint(request.url.path)

            REQUEST_COUNT.labels(
                method=request.method,
                endpoint=endpoint,
                status=status_code,
            ).inc()

            REQUEST_LATENCY.labels(
                method=request.method,
                endpoint=endpoint,
            ).observe(latency)

        return response

    def _normalize_endpoint(self, path: str) -> str:
        """Normalize endpoint path to reduce metric cardinality."""
        for pattern, normalized in self.ENDPOINT_PATTERNS.items():
            if path.startswith(pattern):
                return normalized

        if path in ("/health", "/metrics") or path.startswith("/ws"):
            return path

        return "/other"


# =============================================================================
# Metrics Endpoint
# =============================================================================

async def metrics_endpoint(request: Request) -> Response:
    """Prometheus metrics scrape endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


# =============================================================================
# Helper Functions for Manual Metric Recording
# =============================================================================

def record_order_event(event: str, count: int = 1) -> None:
    ORDER_EVENTS.labels(event=event).inc(count)


def record_escrow_event(event: str) -> None:
    ESCROW_EVENTS.labels(event=event).inc()


def record_group_order_event(event: str) -> None:
    GROUP_ORDER_EVENTS.labels(event=event).inc()


def record_tx_retry(unit: str) -> None:
    TX_RETRIES.labels(unit=unit).inc()
