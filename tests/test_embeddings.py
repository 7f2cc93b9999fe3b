"""Tests for embedding providers."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from docserver.config import (
    EmbeddingSettings,
    OllamaSettings,
    OpenAISettings,
    Settings,
)
from docserver.embeddings.models import EmbeddingProviderType, dimensions_for
from docserver.embeddings.service import (
    OllamaEmbeddingProvider,
    OpenAIEmbeddingProvider,
    average_embeddings,
    create_embedding_provider,
    estimate_tokens,
    split_for_embedding,
)
from docserver.exceptions import ConfigurationError, EmbeddingError, ErrorCode


def _json_response(payload: dict) -> MagicMock:
    mock_response = MagicMock()
    mock_response.json.return_value = payload
    mock_response.raise_for_status = MagicMock()
    return mock_response


def _openai(client: AsyncMock, max_tokens: int = 8191) -> OpenAIEmbeddingProvider:
    return OpenAIEmbeddingProvider(
        settings=OpenAISettings(api_key="sk-test", base_url="http://test/v1"),
        embedding_settings=EmbeddingSettings(max_tokens_per_chunk=max_tokens),
        client=client,
    )


def _ollama(client: AsyncMock) -> OllamaEmbeddingProvider:
    return OllamaEmbeddingProvider(
        settings=OllamaSettings(base_url="http://ollama:11434"),
        embedding_settings=EmbeddingSettings(max_concurrency=2),
        client=client,
    )


class TestModelDimensions:
    """Tests for model dimension lookup."""

    def test_known_models(self) -> None:
        """Known models return their dimensions."""
        assert dimensions_for(EmbeddingProviderType.OPENAI, "text-embedding-3-small") == 1536
        assert dimensions_for(EmbeddingProviderType.OPENAI, "text-embedding-3-large") == 3072
        assert dimensions_for(EmbeddingProviderType.OLLAMA, "bge-small-en") == 384

    def test_ollama_tag_ignored(self) -> None:
        """A model tag does not change the dimensions."""
        assert dimensions_for(EmbeddingProviderType.OLLAMA, "nomic-embed-text:latest") == 768

    def test_unknown_models_use_provider_default(self) -> None:
        """Unknown models fall back per provider."""
        assert dimensions_for(EmbeddingProviderType.OPENAI, "custom") == 1536
        assert dimensions_for(EmbeddingProviderType.OLLAMA, "custom") == 384


class TestLengthHandling:
    """Tests for token estimation, splitting and averaging."""

    def test_estimate_tokens(self) -> None:
        """Four characters count as one token."""
        assert estimate_tokens("abcd" * 10) == 10

    def test_short_text_not_split(self) -> None:
        """Text under the limit is returned unchanged."""
        assert split_for_embedding("Short text.", 100) == ["Short text."]

    def test_long_text_split_on_sentences(self) -> None:
        """Long text is split into sentence-bounded pieces under the limit."""
        text = " ".join(f"This is sentence {i} of the page." for i in range(20))

        pieces = split_for_embedding(text, 25)

        assert len(pieces) > 1
        assert all(estimate_tokens(piece) <= 25 for piece in pieces)
        assert all(piece.endswith(".") for piece in pieces)
        assert " ".join(pieces).split() == text.split()

    def test_oversized_sentence_cut_into_windows(self) -> None:
        """A single sentence over the limit is cut by characters."""
        pieces = split_for_embedding("x" * 250, 25)
        assert [len(piece) for piece in pieces] == [100, 100, 50]

    def test_average_embeddings(self) -> None:
        """Vectors are averaged element-wise."""
        assert average_embeddings([[1.0, 2.0], [3.0, 4.0]]) == [2.0, 3.0]

    def test_average_empty(self) -> None:
        """Averaging nothing raises EmbeddingError."""
        with pytest.raises(EmbeddingError):
            average_embeddings([])

    def test_average_mismatched_dimensions(self) -> None:
        """Vectors of different sizes cannot be averaged."""
        with pytest.raises(EmbeddingError) as exc_info:
            average_embeddings([[1.0, 2.0], [1.0]])
        assert exc_info.value.code == ErrorCode.EMBEDDING_DIMENSION_MISMATCH


class TestOpenAIEmbeddingProvider:
    """Tests for the cloud embedding provider."""

    def test_requires_api_key(self) -> None:
        """Missing API key is a configuration error."""
        with pytest.raises(ConfigurationError):
            OpenAIEmbeddingProvider(
                settings=OpenAISettings(api_key=None),
                embedding_settings=EmbeddingSettings(),
            )

    def test_model_and_dimensions(self) -> None:
        """Provider reports the configured model and its size."""
        provider = _openai(AsyncMock(spec=httpx.AsyncClient))
        assert provider.model_name == "text-embedding-3-small"
        assert provider.dimensions == 1536

    @pytest.mark.asyncio
    async def test_embed_single(self) -> None:
        """Single text embedding posts to the embeddings endpoint."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.return_value = _json_response(
            {"data": [{"index": 0, "embedding": [0.1, 0.2, 0.3]}]}
        )

        result = await _openai(mock_client).embed("test text")

        assert result == [0.1, 0.2, 0.3]
        args, kwargs = mock_client.post.call_args
        assert args[0] == "http://test/v1/embeddings"
        assert kwargs["json"] == {"model": "text-embedding-3-small", "input": ["test text"]}
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"

    @pytest.mark.asyncio
    async def test_embed_batch_sorted_by_index(self) -> None:
        """Batch results follow input order regardless of response order."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.return_value = _json_response(
            {
                "data": [
                    {"index": 1, "embedding": [0.3, 0.4]},
                    {"index": 0, "embedding": [0.1, 0.2]},
                ]
            }
        )

        results = await _openai(mock_client).embed_batch(["text1", "text2"])

        assert results == [[0.1, 0.2], [0.3, 0.4]]
        mock_client.post.assert_called_once()

    @pytest.mark.asyncio
    async def test_embed_empty_list(self) -> None:
        """Empty list returns empty results without a request."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        assert await _openai(mock_client).embed_batch([]) == []
        mock_client.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_long_text_averaged(self) -> None:
        """Oversized text is embedded in pieces and averaged."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.return_value = _json_response(
            {
                "data": [
                    {"index": 0, "embedding": [1.0, 0.0]},
                    {"index": 1, "embedding": [0.0, 1.0]},
                ]
            }
        )

        result = await _openai(mock_client, max_tokens=6).embed(
            "First sentence here. Second sentence here."
        )

        assert result == [0.5, 0.5]
        sent = mock_client.post.call_args.kwargs["json"]["input"]
        assert sent == ["First sentence here.", "Second sentence here."]

    @pytest.mark.asyncio
    async def test_embed_http_error(self) -> None:
        """HTTP error raises EmbeddingError."""
        mock_response = MagicMock()
        mock_response.status_code = 500
        mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "Server error",
            request=MagicMock(),
            response=mock_response,
        )
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.return_value = mock_response

        with pytest.raises(EmbeddingError) as exc_info:
            await _openai(mock_client).embed("test")

        assert exc_info.value.code == ErrorCode.EMBEDDING_SERVICE_ERROR
        assert exc_info.value.details["status_code"] == 500

    @pytest.mark.asyncio
    async def test_embed_connection_error(self) -> None:
        """Connection error raises EmbeddingError."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.side_effect = httpx.RequestError("Connection failed")

        with pytest.raises(EmbeddingError):
            await _openai(mock_client).embed("test")

    @pytest.mark.asyncio
    async def test_invalid_response(self) -> None:
        """A body without data raises EmbeddingError."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.return_value = _json_response({"error": "nope"})

        with pytest.raises(EmbeddingError):
            await _openai(mock_client).embed("test")

    @pytest.mark.asyncio
    async def test_count_mismatch(self) -> None:
        """Fewer vectors than inputs raises EmbeddingError."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.return_value = _json_response(
            {"data": [{"index": 0, "embedding": [0.1]}]}
        )

        with pytest.raises(EmbeddingError, match="Expected 2 embeddings"):
            await _openai(mock_client).embed_batch(["a", "b"])

    @pytest.mark.asyncio
    async def test_close(self) -> None:
        """Provider closes owned client."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        provider = _openai(mock_client)
        provider._owns_client = True  # Simulate owning the client

        await provider.close()
        mock_client.aclose.assert_called_once()

    @pytest.mark.asyncio
    async def test_close_borrowed_client(self) -> None:
        """A client passed in is left open."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        await _openai(mock_client).close()
        mock_client.aclose.assert_not_called()


class TestOllamaEmbeddingProvider:
    """Tests for the local embedding provider."""

    def test_dimensions(self) -> None:
        """Default local model has 384 dimensions."""
        assert _ollama(AsyncMock(spec=httpx.AsyncClient)).dimensions == 384

    @pytest.mark.asyncio
    async def test_embed_batch_one_request_per_text(self) -> None:
        """Each text is sent as its own prompt, order preserved."""

        def respond(*_args: object, **kwargs: dict) -> MagicMock:
            prompt = kwargs["json"]["prompt"]
            return _json_response({"embedding": [float(len(prompt))]})

        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.side_effect = respond

        results = await _ollama(mock_client).embed_batch(["a", "bbb", "cc"])

        assert results == [[1.0], [3.0], [2.0]]
        assert mock_client.post.call_count == 3
        url = mock_client.post.call_args.args[0]
        assert url == "http://ollama:11434/api/embeddings"
        assert mock_client.post.call_args.kwargs["json"]["model"] == "bge-small-en"

    @pytest.mark.asyncio
    async def test_missing_embedding(self) -> None:
        """A response without an embedding raises EmbeddingError."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.return_value = _json_response({})

        with pytest.raises(EmbeddingError):
            await _ollama(mock_client).embed("test")


class TestCreateEmbeddingProvider:
    """Tests for provider selection."""

    def test_cloud_when_key_present(self) -> None:
        """An API key selects the cloud provider."""
        settings = Settings(openai=OpenAISettings(api_key="sk-test"))
        provider = create_embedding_provider(settings, client=AsyncMock(spec=httpx.AsyncClient))

        assert isinstance(provider, OpenAIEmbeddingProvider)
        assert provider.dimensions == 1536

    def test_local_without_key(self) -> None:
        """Without a key the local provider is used."""
        settings = Settings(openai=OpenAISettings(api_key=None))
        provider = create_embedding_provider(settings, client=AsyncMock(spec=httpx.AsyncClient))

        assert isinstance(provider, OllamaEmbeddingProvider)
        assert provider.dimensions == 384
