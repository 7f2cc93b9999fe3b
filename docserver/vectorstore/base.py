"""Vector store interface."""

from abc import ABC, abstractmethod

from docserver.embeddings.service import EmbeddingProvider
from docserver.exceptions import EmbeddingError, ErrorCode, VectorStoreError
from docserver.vectorstore.models import (
    PackageInfo,
    SearchOptions,
    SearchResult,
    VectorDocument,
    VersionInfo,
)


class VectorStore(ABC):
    """Abstract base class for vector stores.

    A store moves through ``uninitialized -> initialized -> closed``.
    Every backend exposes the same external behaviour; the only
    documented difference is batch atomicity, advertised through
    ``atomic_batches``.

    Attributes:
        backend: Short backend name used in logs and metrics.
        atomic_batches: True if ``add_documents`` is all-or-nothing.
            When False a failed batch may leave earlier sub-batches
            committed and raises ``PartialBatchError``.
    """

    backend: str = "abstract"
    atomic_batches: bool = True

    def __init__(self, embedding_provider: EmbeddingProvider) -> None:
        """Initialize shared store state.

        Args:
            embedding_provider: Provider used to vectorize search queries.
                Its dimensions are enforced for every stored document.
        """
        self._embedding_provider = embedding_provider
        self._initialized = False
        self._closed = False

    @property
    def embedding_provider(self) -> EmbeddingProvider:
        """Provider the store embeds queries with."""
        return self._embedding_provider

    @property
    def dimensions(self) -> int:
        """Vector size every stored document must have."""
        return self._embedding_provider.dimensions

    @property
    def is_ready(self) -> bool:
        """Whether the store has been initialized and not closed."""
        return self._initialized and not self._closed

    @abstractmethod
    async def initialize(self) -> None:
        """Create schema or collection if absent. Safe to call repeatedly.

        Raises:
            VectorStoreError: If setup fails.
        """
        ...

    async def add_document(self, document: VectorDocument) -> None:
        """Insert a single document.

        Raises:
            EmbeddingError: If the embedding has the wrong dimensions.
            VectorStoreError: If the insert fails.
        """
        await self.add_documents([document])

    @abstractmethod
    async def add_documents(self, documents: list[VectorDocument]) -> int:
        """Insert documents.

        Args:
            documents: Documents to insert.

        Returns:
            Number of documents committed.

        Raises:
            EmbeddingError: If any embedding has the wrong dimensions.
                Nothing is written in that case.
            VectorStoreError: If the insert fails.
            PartialBatchError: If a non-atomic backend failed after
                committing part of the batch.
        """
        ...

    @abstractmethod
    async def search(self, options: SearchOptions) -> list[SearchResult]:
        """Rank stored documents by cosine similarity to the query.

        Args:
            options: Query text, optional package/version filters, limit.

        Returns:
            Results sorted by descending score, at most ``options.limit``.

        Raises:
            EmbeddingError: If the query cannot be embedded.
            VectorStoreError: If the search fails.
        """
        ...

    @abstractmethod
    async def list_packages(self) -> list[PackageInfo]:
        """List packages sorted by name, with versions newest first."""
        ...

    @abstractmethod
    async def list_versions(self, package: str) -> list[VersionInfo]:
        """List versions of a package with document counts.

        Raises:
            NotFoundError: If the package has no documents.
        """
        ...

    @abstractmethod
    async def delete_package_version(self, package: str, version: str) -> None:
        """Delete every document of a package version. No-op if none match."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release held connections."""
        ...

    def _require_ready(self, operation: str) -> None:
        """Reject operations outside the initialized state."""
        if not self.is_ready:
            state = "closed" if self._closed else "not initialized"
            raise VectorStoreError(
                f"Cannot {operation}: {self.backend} vector store is {state}",
                code=ErrorCode.STORE_NOT_READY,
                details={"backend": self.backend, "operation": operation},
            )

    def _validate_dimensions(self, documents: list[VectorDocument]) -> None:
        """Reject documents whose embedding size differs from the store's."""
        expected = self.dimensions
        for document in documents:
            if len(document.embedding) != expected:
                raise EmbeddingError(
                    f"Document {document.id} has {len(document.embedding)} dimensions, "
                    f"expected {expected}",
                    code=ErrorCode.EMBEDDING_DIMENSION_MISMATCH,
                    details={
                        "id": document.id,
                        "dimensions": len(document.embedding),
                        "expected": expected,
                    },
                )

    async def _embed_query(self, query: str) -> list[float]:
        """Vectorize a search query with the store's provider."""
        return await self._embedding_provider.embed(query)
