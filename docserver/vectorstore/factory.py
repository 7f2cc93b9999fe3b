"""Vector store factory holding the process-wide store instance."""

import asyncio

from docserver.config import Settings, VectorStoreType, get_settings
from docserver.embeddings.service import EmbeddingProvider, create_embedding_provider
from docserver.exceptions import ErrorCode, VectorStoreError
from docserver.logging_config import get_logger
from docserver.vectorstore.base import VectorStore
from docserver.vectorstore.memory import InMemoryVectorStore
from docserver.vectorstore.postgres import PostgresVectorStore
from docserver.vectorstore.qdrant import QdrantVectorStore

logger = get_logger(__name__)


def build_vector_store(
    store_type: VectorStoreType,
    embedding_provider: EmbeddingProvider,
    settings: Settings,
) -> VectorStore:
    """Construct an uninitialized store for the given backend.

    Raises:
        VectorStoreError: If the backend is not supported.
    """
    if store_type == VectorStoreType.POSTGRES:
        return PostgresVectorStore(embedding_provider, settings=settings.postgres)
    if store_type == VectorStoreType.QDRANT:
        return QdrantVectorStore(embedding_provider, settings=settings.qdrant)
    if store_type == VectorStoreType.MEMORY:
        return InMemoryVectorStore(embedding_provider)

    raise VectorStoreError(
        f"Unsupported vector store type: {store_type}",
        code=ErrorCode.UNSUPPORTED_BACKEND,
        details={"type": str(store_type)},
    )


class VectorStoreFactory:
    """Creates and caches the single live vector store of the process.

    The store is built lazily on the first ``create`` call and shared
    afterwards. ``close`` tears it down; ``reset`` forgets it without
    closing, for test isolation.
    """

    _instance: VectorStore | None = None
    _lock: asyncio.Lock | None = None

    @classmethod
    def _get_lock(cls) -> asyncio.Lock:
        if cls._lock is None:
            cls._lock = asyncio.Lock()
        return cls._lock

    @classmethod
    async def create(
        cls,
        store_type: VectorStoreType | None = None,
        settings: Settings | None = None,
        embedding_provider: EmbeddingProvider | None = None,
    ) -> VectorStore:
        """Return the cached store, creating and initializing it if needed.

        Args:
            store_type: Backend override (default from ``DB_TYPE``).
            settings: Application settings.
            embedding_provider: Provider override (default from settings).

        Returns:
            Initialized vector store.
        """
        if cls._instance is not None:
            return cls._instance

        async with cls._get_lock():
            # Another caller may have finished creating it while we waited
            if cls._instance is not None:
                return cls._instance

            settings = settings or get_settings()
            store_type = store_type or settings.database.type
            logger.info(f"Creating vector store of type: {store_type.value}")

            provider = embedding_provider or create_embedding_provider(settings)
            store = build_vector_store(store_type, provider, settings)
            try:
                await store.initialize()
            except Exception:
                if embedding_provider is None:
                    await provider.close()
                raise

            cls._instance = store
            return store

    @classmethod
    def current(cls) -> VectorStore | None:
        """Return the cached store, if one has been created."""
        return cls._instance

    @classmethod
    async def close(cls) -> None:
        """Close and forget the cached store and its embedding provider."""
        if cls._instance is not None:
            store = cls._instance
            cls._instance = None
            await store.close()
            await store.embedding_provider.close()

    @classmethod
    def reset(cls) -> None:
        """Forget the cached store without closing it."""
        cls._instance = None
        cls._lock = None
