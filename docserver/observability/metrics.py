"""Prometheus metrics for the documentation server.

Provides metrics instrumentation for:
- HTTP request latency and counts
- Embedding request latency and batch sizes
- Vector store operation latency
- Document query latency and result counts
"""

import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

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

# Document Query Metrics
QUERY_DURATION = Histogram(
    "docs_query_duration_seconds",
    "Documentation query duration in seconds",
    ["status"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
)

QUERY_RESULTS_RETURNED = Histogram(
    "docs_query_results_returned",
    "Number of results returned per documentation query",
    buckets=[0, 1, 2, 3, 4, 5, 10],
)

QUERY_TOP_SCORE = Histogram(
    "docs_query_top_score",
    "Top similarity score per documentation query",
    buckets=[0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0],
)

# Embedding Metrics
EMBEDDING_REQUEST_DURATION = Histogram(
    "embedding_request_duration_seconds",
    "Embedding request duration in seconds",
    ["model", "status"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

EMBEDDING_REQUEST_TOTAL = Counter(
    "embedding_requests_total",
    "Total embedding requests",
    ["model", "status"],
)

EMBEDDING_BATCH_SIZE = Histogram(
    "embedding_batch_size",
    "Embedding batch size",
    ["model"],
    buckets=[1, 5, 10, 25, 50, 100, 250, 500],
)

# Vector Store Metrics
VECTORSTORE_OPERATION_DURATION = Histogram(
    "vectorstore_operation_duration_seconds",
    "Vector store operation duration",
    ["backend", "operation", "status"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0],
)

VECTORSTORE_DOCUMENTS_ADDED = Counter(
    "vectorstore_documents_added_total",
    "Documents committed to the vector store",
    ["backend"],
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
        # Skip metrics endpoint to avoid recursion
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
        # Package names are unbounded
        if path.startswith("/mcp/packages/") and path.endswith("/versions"):
            return "/mcp/packages/{package}/versions"
        return path


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get the content type for metrics response."""
    return CONTENT_TYPE_LATEST


def track_embedding_request(
    model: str,
    duration: float,
    batch_size: int,
    success: bool = True,
) -> None:
    """Track embedding request metrics.

    Args:
        model: Embedding model name.
        duration: Request duration in seconds.
        batch_size: Number of texts in the batch.
        success: Whether the request succeeded.
    """
    status = "success" if success else "error"

    EMBEDDING_REQUEST_DURATION.labels(model=model, status=status).observe(duration)
    EMBEDDING_REQUEST_TOTAL.labels(model=model, status=status).inc()
    EMBEDDING_BATCH_SIZE.labels(model=model).observe(batch_size)


def track_query_request(
    duration: float,
    results_returned: int,
    top_score: float,
    success: bool = True,
) -> None:
    """Track documentation query metrics.

    Args:
        duration: Query duration in seconds.
        results_returned: Number of results returned.
        top_score: Highest similarity score.
        success: Whether the query succeeded.
    """
    status = "success" if success else "error"

    QUERY_DURATION.labels(status=status).observe(duration)
    if success:
        QUERY_RESULTS_RETURNED.observe(results_returned)
    if top_score > 0:
        QUERY_TOP_SCORE.observe(top_score)


def track_documents_added(backend: str, count: int) -> None:
    """Count documents committed to a backend."""
    if count > 0:
        VECTORSTORE_DOCUMENTS_ADDED.labels(backend=backend).inc(count)


@asynccontextmanager
async def track_vectorstore_operation(backend: str, operation: str) -> AsyncIterator[None]:
    """Time a vector store operation, labelling it by outcome.

    Args:
        backend: Backend name (memory, postgres, qdrant).
        operation: Operation name (search, add_documents, ...).
    """
    start_time = time.perf_counter()
    status = "success"
    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        VECTORSTORE_OPERATION_DURATION.labels(
            backend=backend,
            operation=operation,
            status=status,
        ).observe(time.perf_counter() - start_time)
