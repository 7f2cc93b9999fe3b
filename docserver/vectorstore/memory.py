"""In-process vector store used for tests and local development."""

from dataclasses import dataclass
from datetime import UTC, datetime

import numpy as np

from docserver.embeddings.service import EmbeddingProvider
from docserver.exceptions import NotFoundError
from docserver.logging_config import get_logger
from docserver.observability.metrics import (
    track_documents_added,
    track_vectorstore_operation,
)
from docserver.vectorstore.base import VectorStore
from docserver.vectorstore.models import (
    PackageInfo,
    SearchOptions,
    SearchResult,
    VectorDocument,
    VersionInfo,
)

logger = get_logger(__name__)


@dataclass
class _StoredDocument:
    document: VectorDocument
    vector: np.ndarray
    created_at: datetime
    updated_at: datetime


def cosine_similarity(query: np.ndarray, vectors: np.ndarray) -> np.ndarray:
    """Cosine similarity of one query vector against a matrix of rows.

    Zero-length vectors score 0.
    """
    norms = np.linalg.norm(vectors, axis=1) * np.linalg.norm(query)
    dots = vectors @ query
    return np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)


class InMemoryVectorStore(VectorStore):
    """Brute-force vector store held in a Python list.

    Ranking uses exact cosine similarity, so results match what the
    database backends return for the same data. Batches are atomic:
    every document is validated before any is appended.
    """

    backend = "memory"
    atomic_batches = True

    def __init__(self, embedding_provider: EmbeddingProvider) -> None:
        super().__init__(embedding_provider)
        self._documents: list[_StoredDocument] = []

    async def initialize(self) -> None:
        if self._initialized:
            return
        self._initialized = True
        logger.info("In-memory vector store initialized")

    async def add_documents(self, documents: list[VectorDocument]) -> int:
        self._require_ready("add documents")
        if not documents:
            return 0

        self._validate_dimensions(documents)

        now = datetime.now(UTC)
        positions = {stored.document.id: i for i, stored in enumerate(self._documents)}
        for document in documents:
            stored = _StoredDocument(
                document=document,
                vector=np.asarray(document.embedding, dtype=np.float64),
                created_at=now,
                updated_at=now,
            )
            # Re-adding an id replaces it, like the database upserts
            if document.id in positions:
                existing = self._documents[positions[document.id]]
                stored.created_at = existing.created_at
                self._documents[positions[document.id]] = stored
            else:
                positions[document.id] = len(self._documents)
                self._documents.append(stored)

        track_documents_added(self.backend, len(documents))
        logger.debug(f"Added {len(documents)} documents")
        return len(documents)

    async def search(self, options: SearchOptions) -> list[SearchResult]:
        self._require_ready("search")

        async with track_vectorstore_operation(self.backend, "search"):
            query_vector = np.asarray(await self._embed_query(options.query), dtype=np.float64)

            filters = options.filter.as_dict() if options.filter else {}
            candidates = [
                stored
                for stored in self._documents
                if all(getattr(stored.document.metadata, k) == v for k, v in filters.items())
            ]
            if not candidates:
                return []

            scores = cosine_similarity(query_vector, np.vstack([c.vector for c in candidates]))
            ranked = np.argsort(-scores, kind="stable")[: options.limit]

            return [
                SearchResult(
                    content=candidates[i].document.content,
                    score=float(scores[i]),
                    metadata=candidates[i].document.metadata,
                )
                for i in ranked
            ]

    async def list_packages(self) -> list[PackageInfo]:
        self._require_ready("list packages")

        versions: dict[str, set[str]] = {}
        updated: dict[str, datetime] = {}
        for stored in self._documents:
            package = stored.document.metadata.package
            versions.setdefault(package, set()).add(stored.document.metadata.version)
            updated[package] = max(updated.get(package, stored.updated_at), stored.updated_at)

        return [
            PackageInfo(
                name=name,
                versions=sorted(versions[name], reverse=True),
                last_updated=updated[name],
            )
            for name in sorted(versions)
        ]

    async def list_versions(self, package: str) -> list[VersionInfo]:
        self._require_ready("list versions")

        groups: dict[str, list[_StoredDocument]] = {}
        for stored in self._documents:
            if stored.document.metadata.package == package:
                groups.setdefault(stored.document.metadata.version, []).append(stored)

        if not groups:
            raise NotFoundError(
                f"Package not found: {package}",
                details={"package": package},
            )

        return [
            VersionInfo(
                version=version,
                doc_count=len(groups[version]),
                release_date=min(s.created_at for s in groups[version]),
                last_indexed=max(s.updated_at for s in groups[version]),
            )
            for version in sorted(groups, reverse=True)
        ]

    async def delete_package_version(self, package: str, version: str) -> None:
        self._require_ready("delete documents")

        before = len(self._documents)
        self._documents = [
            stored
            for stored in self._documents
            if not (
                stored.document.metadata.package == package
                and stored.document.metadata.version == version
            )
        ]
        logger.info(
            f"Deleted {before - len(self._documents)} documents for {package}@{version}",
            extra={"package": package, "version": version},
        )

    async def close(self) -> None:
        self._closed = True
        logger.info("In-memory vector store closed")
