"""Embedding provider module."""

from docserver.embeddings.models import EmbeddingProviderType
from docserver.embeddings.service import (
    EmbeddingProvider,
    OllamaEmbeddingProvider,
    OpenAIEmbeddingProvider,
    average_embeddings,
    create_embedding_provider,
    split_for_embedding,
)

__all__ = [
    "EmbeddingProvider",
    "EmbeddingProviderType",
    "OllamaEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "average_embeddings",
    "create_embedding_provider",
    "split_for_embedding",
]
