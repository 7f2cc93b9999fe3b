"""Documentation query module."""

from docserver.query.models import (
    ListPackagesResponse,
    ListVersionsResponse,
    QueryDocsRequest,
    QueryDocsResponse,
)
from docserver.query.service import DocumentService

__all__ = [
    "DocumentService",
    "ListPackagesResponse",
    "ListVersionsResponse",
    "QueryDocsRequest",
    "QueryDocsResponse",
]
