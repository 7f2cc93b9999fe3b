"""Pytest configuration and shared fixtures."""

import hashlib
import re
from collections.abc import AsyncGenerator

import numpy as np
import pytest
from httpx import ASGITransport, AsyncClient

from docserver.api.app import app
from docserver.config import EmbeddingSettings
from docserver.embeddings.models import EmbeddingProviderType
from docserver.embeddings.service import EmbeddingProvider
from docserver.vectorstore.factory import VectorStoreFactory
from docserver.vectorstore.memory import InMemoryVectorStore
from docserver.vectorstore.models import DocumentMetadata, VectorDocument

TEST_DIMENSIONS = 64

WORD_PATTERN = re.compile(r"[a-z0-9]+")


class HashingEmbeddingProvider(EmbeddingProvider):
    """Deterministic bag-of-words provider for tests.

    Each word is hashed into one bucket, so texts sharing words have a
    positive cosine similarity and identical texts score 1.0.
    """

    provider_type = EmbeddingProviderType.OLLAMA

    def __init__(self, dimensions: int = TEST_DIMENSIONS) -> None:
        super().__init__(
            model="hashing-test",
            embedding_settings=EmbeddingSettings(),
        )
        self._dimensions = dimensions
        self.calls: list[list[str]] = []

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def _embed_many(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self.vectorize(text) for text in texts]

    def vectorize(self, text: str) -> list[float]:
        vector = np.zeros(self._dimensions)
        for word in WORD_PATTERN.findall(text.lower()):
            digest = hashlib.md5(word.encode()).digest()
            vector[int.from_bytes(digest[:4], "big") % self._dimensions] += 1.0
        return vector.tolist()


def make_document(
    doc_id: str,
    content: str,
    provider: HashingEmbeddingProvider,
    package: str = "react",
    version: str = "18.3.0",
    url: str | None = "https://react.dev/learn",
) -> VectorDocument:
    """Build a stored document whose embedding matches its content."""
    return VectorDocument(
        id=doc_id,
        content=content,
        embedding=provider.vectorize(content),
        metadata=DocumentMetadata(
            package=package,
            version=version,
            url=url,
            title="Learn",
            section="Introduction",
        ),
    )


@pytest.fixture
def embedding_provider() -> HashingEmbeddingProvider:
    """Deterministic embedding provider."""
    return HashingEmbeddingProvider()


@pytest.fixture
async def memory_store(
    embedding_provider: HashingEmbeddingProvider,
) -> AsyncGenerator[InMemoryVectorStore, None]:
    """Initialized in-memory store, closed after the test."""
    store = InMemoryVectorStore(embedding_provider)
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
async def client(memory_store: InMemoryVectorStore) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client for FastAPI app.

    The process-wide store is seeded with the in-memory fixture store.

    Yields:
        AsyncClient configured for testing.
    """
    VectorStoreFactory.reset()
    VectorStoreFactory._instance = memory_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    VectorStoreFactory.reset()


@pytest.fixture
def make_doc(embedding_provider: HashingEmbeddingProvider):
    """Factory for documents embedded with the test provider."""

    def factory(doc_id: str, content: str, **metadata: str | None) -> VectorDocument:
        return make_document(doc_id, content, embedding_provider, **metadata)

    return factory
