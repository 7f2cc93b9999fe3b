"""Observability module for metrics and monitoring."""

from docserver.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    track_documents_added,
    track_embedding_request,
    track_query_request,
    track_vectorstore_operation,
)

__all__ = [
    "MetricsMiddleware",
    "get_metrics",
    "track_documents_added",
    "track_embedding_request",
    "track_query_request",
    "track_vectorstore_operation",
]
