"""Embedding provider interface and implementations."""

import asyncio
import time
from abc import ABC, abstractmethod

import httpx
import numpy as np

from docserver.config import (
    EmbeddingSettings,
    OllamaSettings,
    OpenAISettings,
    Settings,
    get_settings,
)
from docserver.documents.chunker import split_sentences
from docserver.embeddings.models import EmbeddingProviderType, dimensions_for
from docserver.exceptions import ConfigurationError, EmbeddingError, ErrorCode
from docserver.logging_config import get_logger
from docserver.observability.metrics import track_embedding_request

logger = get_logger(__name__)

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> float:
    """Rough token estimate used for length limits."""
    return len(text) / CHARS_PER_TOKEN


def split_for_embedding(text: str, max_tokens: int) -> list[str]:
    """Split text into sentence-bounded pieces under the token limit.

    Text already under the limit is returned unchanged as a single
    piece. A single sentence longer than the limit is cut into
    fixed-size character windows.

    Args:
        text: Text to split.
        max_tokens: Estimated token limit per piece.

    Returns:
        Pieces in original order.
    """
    if estimate_tokens(text) <= max_tokens:
        return [text]

    max_chars = max_tokens * CHARS_PER_TOKEN
    pieces: list[str] = []
    current = ""

    for sentence in split_sentences(text):
        if len(sentence) > max_chars:
            if current.strip():
                pieces.append(current.strip())
            current = ""
            pieces.extend(
                window
                for start in range(0, len(sentence), max_chars)
                if (window := sentence[start : start + max_chars].strip())
            )
            continue

        if estimate_tokens(current + sentence) > max_tokens and current:
            pieces.append(current.strip())
            current = sentence
        else:
            current += sentence

    if current.strip():
        pieces.append(current.strip())

    return pieces


def average_embeddings(embeddings: list[list[float]]) -> list[float]:
    """Average vectors element-wise into one representative vector.

    Raises:
        EmbeddingError: If there is nothing to average or sizes differ.
    """
    if not embeddings:
        raise EmbeddingError("No embeddings to average")

    dimensions = {len(embedding) for embedding in embeddings}
    if len(dimensions) != 1:
        raise EmbeddingError(
            "Cannot average embeddings of different dimensions",
            code=ErrorCode.EMBEDDING_DIMENSION_MISMATCH,
            details={"dimensions": sorted(dimensions)},
        )

    return np.mean(np.asarray(embeddings, dtype=np.float64), axis=0).tolist()


class EmbeddingProvider(ABC):
    """Abstract base class for embedding providers.

    Subclasses implement ``_embed_many`` for the raw API call. Text
    longer than the configured token limit is split and its piece
    vectors are averaged, so callers always get one vector per text.
    """

    provider_type: EmbeddingProviderType

    def __init__(
        self,
        model: str,
        embedding_settings: EmbeddingSettings | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ) -> None:
        """Initialize shared provider state.

        Args:
            model: Embedding model name.
            embedding_settings: Length and concurrency limits.
            client: HTTP client. Creates new one if not provided.
            timeout: Timeout for an owned client.
        """
        self._model = model
        self._embedding_settings = embedding_settings or get_settings().embedding
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def model_name(self) -> str:
        """Get the model name."""
        return self._model

    @property
    def dimensions(self) -> int:
        """Get embedding dimensions."""
        return dimensions_for(self.provider_type, self._model)

    @property
    def max_tokens_per_chunk(self) -> int:
        """Estimated token limit before splitting."""
        return self._embedding_settings.max_tokens_per_chunk

    async def embed(self, text: str) -> list[float]:
        """Generate one embedding for a text.

        Args:
            text: Text to embed.

        Returns:
            Embedding vector.

        Raises:
            EmbeddingError: If embedding fails.
        """
        pieces = split_for_embedding(text, self.max_tokens_per_chunk)
        vectors = await self._timed_embed(pieces)

        if len(vectors) == 1:
            return vectors[0]

        logger.debug(
            f"Averaged {len(vectors)} piece embeddings for oversized text",
            extra={"text_length": len(text), "model": self._model},
        )
        return average_embeddings(vectors)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts, preserving order.

        Args:
            texts: List of texts to embed.

        Returns:
            One vector per input text.

        Raises:
            EmbeddingError: If embedding fails.
        """
        if not texts:
            return []

        split = [split_for_embedding(text, self.max_tokens_per_chunk) for text in texts]
        flat = [piece for pieces in split for piece in pieces]
        vectors = await self._timed_embed(flat)

        if len(vectors) != len(flat):
            raise EmbeddingError(
                f"Expected {len(flat)} embeddings, received {len(vectors)}",
                details={"model": self._model},
            )

        results: list[list[float]] = []
        position = 0
        for pieces in split:
            group = vectors[position : position + len(pieces)]
            position += len(pieces)
            results.append(group[0] if len(group) == 1 else average_embeddings(group))

        return results

    async def _timed_embed(self, texts: list[str]) -> list[list[float]]:
        """Call the backend and record request metrics."""
        start_time = time.perf_counter()
        try:
            vectors = await self._embed_many(texts)
        except Exception:
            track_embedding_request(
                self._model, time.perf_counter() - start_time, len(texts), success=False
            )
            raise
        track_embedding_request(self._model, time.perf_counter() - start_time, len(texts))
        return vectors

    @abstractmethod
    async def _embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed texts that are already within the length limit."""
        ...

    async def _post(self, url: str, payload: dict, headers: dict[str, str] | None = None) -> dict:
        """POST JSON and return the decoded body.

        Raises:
            EmbeddingError: On HTTP errors, transport errors or bad JSON.
        """
        client = await self._get_client()

        try:
            response = await client.post(url, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Embedding request failed: {e.response.status_code}",
                extra={"url": url, "status": e.response.status_code},
            )
            raise EmbeddingError(
                f"Embedding service returned {e.response.status_code}",
                code=ErrorCode.EMBEDDING_SERVICE_ERROR,
                details={"status_code": e.response.status_code, "provider": self.provider_type.value},
            ) from e
        except httpx.RequestError as e:
            logger.error(
                f"Embedding request error: {e}",
                extra={"url": url},
            )
            raise EmbeddingError(
                f"Failed to connect to embedding service: {e}",
                code=ErrorCode.EMBEDDING_SERVICE_ERROR,
                details={"url": url, "provider": self.provider_type.value},
            ) from e

        try:
            return response.json()
        except ValueError as e:
            raise EmbeddingError(
                f"Invalid response from embedding service: {e}",
                code=ErrorCode.EMBEDDING_SERVICE_ERROR,
                details={"error": str(e)},
            ) from e


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Cloud embedding provider using the OpenAI embeddings API.

    A batch is submitted as one request.
    """

    provider_type = EmbeddingProviderType.OPENAI

    def __init__(
        self,
        settings: OpenAISettings | None = None,
        embedding_settings: EmbeddingSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the cloud provider.

        Args:
            settings: OpenAI configuration.
            embedding_settings: Length and concurrency limits.
            client: HTTP client. Creates new one if not provided.

        Raises:
            ConfigurationError: If no API key is configured.
        """
        self._settings = settings or get_settings().openai
        if self._settings.api_key is None or not self._settings.api_key.get_secret_value():
            raise ConfigurationError(
                "OpenAI API key is required for the cloud embedding provider",
                details={"env": "OPENAI_API_KEY"},
            )
        super().__init__(
            model=self._settings.embedding_model,
            embedding_settings=embedding_settings,
            client=client,
            timeout=self._settings.timeout,
        )

    async def _embed_many(self, texts: list[str]) -> list[list[float]]:
        url = f"{self._settings.base_url.rstrip('/')}/embeddings"
        api_key = self._settings.api_key.get_secret_value()  # type: ignore[union-attr]

        data = await self._post(
            url,
            {"model": self._model, "input": texts},
            headers={"Authorization": f"Bearer {api_key}"},
        )

        try:
            items = sorted(data["data"], key=lambda item: item.get("index", 0))
            return [list(item["embedding"]) for item in items]
        except (KeyError, TypeError) as e:
            raise EmbeddingError(
                f"Invalid response from embedding service: {e}",
                code=ErrorCode.EMBEDDING_SERVICE_ERROR,
                details={"error": str(e)},
            ) from e


class OllamaEmbeddingProvider(EmbeddingProvider):
    """Local embedding provider using an Ollama server.

    Ollama embeds one prompt per request, so batches run as
    concurrent single requests bounded by ``max_concurrency``.
    """

    provider_type = EmbeddingProviderType.OLLAMA

    def __init__(
        self,
        settings: OllamaSettings | None = None,
        embedding_settings: EmbeddingSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the local provider.

        Args:
            settings: Ollama configuration.
            embedding_settings: Length and concurrency limits.
            client: HTTP client. Creates new one if not provided.
        """
        self._settings = settings or get_settings().ollama
        super().__init__(
            model=self._settings.embedding_model,
            embedding_settings=embedding_settings,
            client=client,
            timeout=self._settings.timeout,
        )

    async def _embed_many(self, texts: list[str]) -> list[list[float]]:
        semaphore = asyncio.Semaphore(self._embedding_settings.max_concurrency)

        async def embed_one(text: str) -> list[float]:
            async with semaphore:
                return await self._embed_single(text)

        return list(await asyncio.gather(*(embed_one(text) for text in texts)))

    async def _embed_single(self, text: str) -> list[float]:
        url = f"{self._settings.base_url.rstrip('/')}/api/embeddings"
        data = await self._post(url, {"model": self._model, "prompt": text})

        embedding = data.get("embedding") if isinstance(data, dict) else None
        if not embedding:
            raise EmbeddingError(
                "Invalid response from embedding service: missing embedding",
                code=ErrorCode.EMBEDDING_SERVICE_ERROR,
                details={"model": self._model},
            )
        return list(embedding)


def create_embedding_provider(
    settings: Settings | None = None,
    client: httpx.AsyncClient | None = None,
) -> EmbeddingProvider:
    """Select the embedding provider from configuration.

    The cloud provider is used if and only if an OpenAI API key is
    configured; otherwise the local Ollama provider is used.

    Args:
        settings: Application settings.
        client: Optional shared HTTP client.

    Returns:
        Configured embedding provider.
    """
    settings = settings or get_settings()

    if settings.openai.api_key is not None and settings.openai.api_key.get_secret_value():
        provider: EmbeddingProvider = OpenAIEmbeddingProvider(
            settings=settings.openai,
            embedding_settings=settings.embedding,
            client=client,
        )
    else:
        provider = OllamaEmbeddingProvider(
            settings=settings.ollama,
            embedding_settings=settings.embedding,
            client=client,
        )

    logger.info(
        f"Using {provider.provider_type.value} embedding provider",
        extra={"model": provider.model_name, "dimensions": provider.dimensions},
    )
    return provider
