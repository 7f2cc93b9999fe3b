"""Embedding provider types and known model dimensions."""

from enum import Enum


class EmbeddingProviderType(str, Enum):
    """Available embedding backends."""

    OPENAI = "openai"
    OLLAMA = "ollama"


# Known model dimensions
MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-ada-002": 1536,
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "bge-small-en": 384,
    "bge-small-en-v1.5": 384,
    "all-minilm": 384,
    "bge-base-en": 768,
    "nomic-embed-text": 768,
    "bge-large-en": 1024,
    "mxbai-embed-large": 1024,
}

DEFAULT_DIMENSIONS: dict[EmbeddingProviderType, int] = {
    EmbeddingProviderType.OPENAI: 1536,
    EmbeddingProviderType.OLLAMA: 384,
}


def dimensions_for(provider: EmbeddingProviderType, model: str) -> int:
    """Look up vector dimensions for a model, falling back per provider."""
    # Ollama tags like "bge-small-en:latest" share the base model's size
    base = model.split(":", 1)[0]
    return MODEL_DIMENSIONS.get(model, MODEL_DIMENSIONS.get(base, DEFAULT_DIMENSIONS[provider]))
