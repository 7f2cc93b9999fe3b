"""Tests for the ingestion pipeline."""

from unittest.mock import AsyncMock
from uuid import UUID

import pytest

from docserver.documents.models import ChunkOptions, ScrapedDocument
from docserver.exceptions import EmbeddingError
from docserver.ingestion.pipeline import IngestionPipeline, chunk_id
from docserver.vectorstore.models import SearchFilter, SearchOptions


def _page(url: str, body: str, title: str | None = "Guide") -> ScrapedDocument:
    return ScrapedDocument.from_text(body, url=url, title=title)


class TestIngestionPipeline:
    """Tests for IngestionPipeline."""

    @pytest.mark.asyncio
    async def test_ingest_document(self, embedding_provider, memory_store) -> None:
        """A page is chunked, embedded and stored under its package version."""
        pipeline = IngestionPipeline(
            embedding_provider,
            memory_store,
            ChunkOptions(max_chunk_size=120, overlap=30),
        )
        body = "# Routing\n" + " ".join(f"Route {i} maps a folder to a URL." for i in range(10))

        result = await pipeline.ingest_document("next", "14.2.2", _page("https://nextjs.org/r", body))

        assert result.chunks_created > 1
        versions = await memory_store.list_versions("next")
        assert versions[0].doc_count == result.chunks_created

        hits = await memory_store.search(
            SearchOptions(query="folder URL", filter=SearchFilter(package="next"))
        )
        assert hits[0].metadata.url == "https://nextjs.org/r"
        assert hits[0].metadata.section == "Routing"
        assert hits[0].metadata.title == "Guide"

    @pytest.mark.asyncio
    async def test_title_falls_back_to_section(self, embedding_provider, memory_store) -> None:
        """Pages without a title use the chunk section."""
        pipeline = IngestionPipeline(embedding_provider, memory_store)

        await pipeline.ingest_document("vue", "3.4.0", _page("u", "# Setup\nInstall it.", title=None))

        hits = await memory_store.search(SearchOptions(query="install"))
        assert hits[0].metadata.title == "Setup"

    @pytest.mark.asyncio
    async def test_empty_page(self, embedding_provider, memory_store) -> None:
        """A page with no content stores nothing."""
        pipeline = IngestionPipeline(embedding_provider, memory_store)

        result = await pipeline.ingest_document("vue", "3.4.0", _page("u", "   "))

        assert result.chunks_created == 0
        assert embedding_provider.calls == []

    @pytest.mark.asyncio
    async def test_ingest_many_collects_failures(self, embedding_provider, memory_store) -> None:
        """A failing page is reported while the others are stored."""
        original = embedding_provider.embed_batch

        async def flaky(texts: list[str]) -> list[list[float]]:
            if any("broken" in text for text in texts):
                raise EmbeddingError("service unavailable")
            return await original(texts)

        embedding_provider.embed_batch = flaky
        pipeline = IngestionPipeline(embedding_provider, memory_store)

        report = await pipeline.ingest_many(
            "react",
            "18.3.0",
            [
                _page("https://react.dev/a", "# A\nFirst page."),
                _page("https://react.dev/b", "# B\nThis page is broken."),
                _page("https://react.dev/c", "# C\nThird page."),
            ],
            max_concurrency=2,
        )

        assert report.processed == 2
        assert report.chunks == 2
        assert not report.succeeded
        assert [(e.url, e.error) for e in report.errors] == [
            ("https://react.dev/b", "service unavailable")
        ]

    @pytest.mark.asyncio
    async def test_ingest_many_replace(self, embedding_provider, memory_store, make_doc) -> None:
        """Replace deletes the existing version first."""
        await memory_store.add_document(make_doc("old", "stale content"))
        pipeline = IngestionPipeline(embedding_provider, memory_store)

        report = await pipeline.ingest_many(
            "react",
            "18.3.0",
            [_page("https://react.dev/new", "# New\nFresh content.")],
            replace=True,
        )

        assert report.succeeded
        hits = await memory_store.search(SearchOptions(query="content"))
        assert [h.content for h in hits] == ["# New\nFresh content."]

    @pytest.mark.asyncio
    async def test_ingest_many_without_replace_keeps_existing(self, embedding_provider) -> None:
        """Without replace nothing is deleted."""
        store = AsyncMock()
        store.add_documents.return_value = 1
        pipeline = IngestionPipeline(embedding_provider, store)

        await pipeline.ingest_many("react", "18.3.0", [_page("u", "# A\nText.")])

        store.delete_package_version.assert_not_called()
        store.add_documents.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_ingest_many_reports_unexpected_errors(
        self, embedding_provider, memory_store
    ) -> None:
        """Errors outside the service hierarchy are reported per page."""
        original = embedding_provider.embed_batch

        async def short(texts: list[str]) -> list[list[float]]:
            vectors = await original(texts)
            if any("short" in text for text in texts):
                return vectors[:-1]
            return vectors

        embedding_provider.embed_batch = short
        pipeline = IngestionPipeline(embedding_provider, memory_store)

        report = await pipeline.ingest_many(
            "react",
            "18.3.0",
            [
                _page("https://react.dev/a", "# A\nFirst page."),
                _page("https://react.dev/b", "# B\nThis page comes back short."),
                _page("https://react.dev/c", "# C\nThird page."),
            ],
        )

        assert report.processed == 2
        assert [e.url for e in report.errors] == ["https://react.dev/b"]

    @pytest.mark.asyncio
    async def test_reingest_overwrites_chunks(self, embedding_provider, memory_store) -> None:
        """Ingesting the same page twice keeps one copy of each chunk."""
        pipeline = IngestionPipeline(embedding_provider, memory_store)
        pages = [_page("https://react.dev/a", "# A\nFirst page. Second sentence.")]

        first = await pipeline.ingest_many("react", "18.3.0", pages)
        await pipeline.ingest_many("react", "18.3.0", pages)

        versions = await memory_store.list_versions("react")
        assert versions[0].doc_count == first.chunks


class TestChunkId:
    """Tests for chunk id derivation."""

    def test_stable_and_distinct(self) -> None:
        """Ids repeat for the same chunk and differ across versions and positions."""
        base = chunk_id("react", "18.3.0", "https://react.dev/a", 0)

        assert chunk_id("react", "18.3.0", "https://react.dev/a", 0) == base
        assert chunk_id("react", "18.2.0", "https://react.dev/a", 0) != base
        assert chunk_id("react", "18.3.0", "https://react.dev/a", 1) != base
        UUID(base)
