"""Ingestion pipeline module."""

from docserver.ingestion.pipeline import (
    IngestionFailure,
    IngestionPipeline,
    IngestionReport,
    IngestionResult,
)

__all__ = [
    "IngestionFailure",
    "IngestionPipeline",
    "IngestionReport",
    "IngestionResult",
]
