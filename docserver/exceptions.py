"""Application exception hierarchy.

All custom exceptions inherit from DocServerError.
Each exception has an error code for structured error handling.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error handling."""

    # General errors (1xxx)
    INTERNAL_ERROR = "DOC-1000"
    CONFIGURATION_ERROR = "DOC-1001"
    VALIDATION_ERROR = "DOC-1002"

    # Document processing errors (2xxx)
    DOCUMENT_NOT_FOUND = "DOC-2000"
    DOCUMENT_PARSE_ERROR = "DOC-2001"

    # Embedding errors (3xxx)
    EMBEDDING_SERVICE_ERROR = "DOC-3000"
    EMBEDDING_DIMENSION_MISMATCH = "DOC-3001"

    # Vector store errors (4xxx)
    VECTOR_STORE_ERROR = "DOC-4000"
    STORE_NOT_READY = "DOC-4001"
    PARTIAL_BATCH = "DOC-4002"
    UNSUPPORTED_BACKEND = "DOC-4003"

    # Lookup errors (5xxx)
    PACKAGE_NOT_FOUND = "DOC-5000"


class DocServerError(Exception):
    """Base exception for all documentation server errors.

    Attributes:
        message: Human-readable error message.
        code: Structured error code.
        details: Additional error context.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
            }
        }


class ConfigurationError(DocServerError):
    """Configuration or environment error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class ValidationError(DocServerError):
    """Input validation error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.VALIDATION_ERROR, details)


class DocumentError(DocServerError):
    """Document loading or chunking error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.DOCUMENT_NOT_FOUND,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class EmbeddingError(DocServerError):
    """Embedding provider error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.EMBEDDING_SERVICE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class VectorStoreError(DocServerError):
    """Vector store operation error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VECTOR_STORE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class PartialBatchError(VectorStoreError):
    """Batch insert failed after some documents were already committed.

    Only raised by backends without transactional batches.

    Attributes:
        committed: Number of documents persisted before the failure.
        total: Number of documents in the batch.
    """

    def __init__(
        self,
        message: str,
        committed: int,
        total: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.committed = committed
        self.total = total
        super().__init__(
            message,
            ErrorCode.PARTIAL_BATCH,
            {"committed": committed, "total": total, **(details or {})},
        )


class NotFoundError(DocServerError):
    """Requested package has no indexed documents."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.PACKAGE_NOT_FOUND, details)
