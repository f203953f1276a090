"""Prometheus metrics for the vector subsystem.

Provides metrics instrumentation for:
- HTTP request latency and counts on the diagnostics app
- Embedding requests per provider and outcome
- Vector store operation latency
- Search and recommendation requests
- Indexing outcomes
"""

import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from forum_vectors.logging_config import get_logger

logger = get_logger(__name__)

# HTTP Request Metrics
HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

HTTP_REQUEST_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

# Embedding Metrics
EMBEDDING_REQUEST_DURATION = Histogram(
    "embedding_request_duration_seconds",
    "Embedding request duration in seconds",
    ["provider", "status"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
)

EMBEDDING_REQUEST_TOTAL = Counter(
    "embedding_requests_total",
    "Total embedding attempts per provider",
    ["provider", "status"],  # success, error, rate_limited, skipped
)

# Vector Store Metrics
VECTORSTORE_OPERATION_DURATION = Histogram(
    "vectorstore_operation_duration_seconds",
    "Vector store operation duration",
    ["operation", "status"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0],
)

# Search Metrics
SEARCH_REQUEST_TOTAL = Counter(
    "search_requests_total",
    "Total search requests",
    ["mode", "status"],
)

SEARCH_RESULTS_RETURNED = Histogram(
    "search_results_returned",
    "Number of results returned per search",
    ["mode"],
    buckets=[0, 1, 2, 3, 5, 10, 20, 50, 100],
)

# Indexing Metrics
INDEXING_OPERATION_TOTAL = Counter(
    "indexing_operations_total",
    "Indexing operations by entity type and outcome",
    ["operation", "entity_type", "status"],
)

# Recommendation Metrics
RECOMMENDATION_REQUEST_TOTAL = Counter(
    "recommendation_requests_total",
    "Total recommendation requests",
    ["algorithm", "status"],
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect HTTP request metrics."""

    def __init__(self, app: ASGIApp) -> None:
        """Initialize the middleware."""
        super().__init__(app)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process request and collect metrics."""
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        endpoint = self._normalize_endpoint(request.url.path)

        HTTP_REQUEST_DURATION.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).observe(duration)

        HTTP_REQUEST_TOTAL.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()

        return response

    def _normalize_endpoint(self, path: str) -> str:
        """Normalize endpoint path to reduce cardinality."""
        if path.startswith("/health"):
            return "/health"
        if path.startswith("/status/"):
            return "/status"
        return path


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get the content type for metrics response."""
    return CONTENT_TYPE_LATEST


def track_embedding_request(
    provider: str,
    duration: float,
    status: str = "success",
) -> None:
    """Track one embedding attempt.

    Args:
        provider: Provider name.
        duration: Attempt duration in seconds.
        status: One of success, error, rate_limited, skipped.
    """
    EMBEDDING_REQUEST_TOTAL.labels(provider=provider, status=status).inc()
    if status != "skipped":
        EMBEDDING_REQUEST_DURATION.labels(provider=provider, status=status).observe(
            duration
        )


def track_vectorstore_operation(
    operation: str,
    duration: float,
    success: bool = True,
) -> None:
    """Track a vector store call."""
    status = "success" if success else "error"
    VECTORSTORE_OPERATION_DURATION.labels(operation=operation, status=status).observe(
        duration
    )


def track_search_request(
    mode: str,
    results_returned: int,
    success: bool = True,
) -> None:
    """Track a search request.

    Args:
        mode: Search mode (hybrid, multi_stage, similar, cross_modal).
        results_returned: Number of results returned.
        success: Whether the search succeeded.
    """
    status = "success" if success else "error"
    SEARCH_REQUEST_TOTAL.labels(mode=mode, status=status).inc()
    if success:
        SEARCH_RESULTS_RETURNED.labels(mode=mode).observe(results_returned)


def track_indexing_operation(
    operation: str,
    entity_type: str,
    success: bool = True,
) -> None:
    """Track an indexing operation outcome."""
    status = "success" if success else "error"
    INDEXING_OPERATION_TOTAL.labels(
        operation=operation,
        entity_type=entity_type,
        status=status,
    ).inc()


def track_recommendation_request(algorithm: str, success: bool = True) -> None:
    """Track a recommendation request."""
    status = "success" if success else "error"
    RECOMMENDATION_REQUEST_TOTAL.labels(algorithm=algorithm, status=status).inc()
