"""Ingestion pipeline: chunk scraped pages, embed them, store them."""

import asyncio
from uuid import NAMESPACE_URL, uuid5

from pydantic import BaseModel, Field

from docserver.documents.chunker import SectionChunker
from docserver.documents.models import ChunkOptions, ScrapedDocument
from docserver.embeddings.service import EmbeddingProvider
from docserver.exceptions import DocServerError
from docserver.logging_config import get_logger
from docserver.vectorstore.base import VectorStore
from docserver.vectorstore.models import DocumentMetadata, VectorDocument

logger = get_logger(__name__)


def chunk_id(package: str, version: str, url: str, chunk_index: int) -> str:
    """Stable id for a chunk, so re-ingesting a page overwrites its chunks."""
    return str(uuid5(NAMESPACE_URL, f"{package}@{version}:{url}#{chunk_index}"))


class IngestionResult(BaseModel):
    """Outcome of ingesting one page."""

    url: str = Field(description="Source URL")
    chunks_created: int = Field(description="Chunks stored for the page")


class IngestionFailure(BaseModel):
    """A page that could not be ingested."""

    url: str = Field(description="Source URL")
    error: str = Field(description="Error message")


class IngestionReport(BaseModel):
    """Summary of a multi-page ingestion run."""

    package: str = Field(description="Package name")
    version: str = Field(description="Package version")
    processed: int = Field(default=0, description="Pages ingested")
    chunks: int = Field(default=0, description="Chunks stored")
    errors: list[IngestionFailure] = Field(default_factory=list, description="Failed pages")

    @property
    def succeeded(self) -> bool:
        """True when every page was ingested."""
        return not self.errors


class IngestionPipeline:
    """Turns scraped pages into stored, embedded chunks.

    There is no retry here; a failed page is reported and can be
    re-ingested later.
    """

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        vector_store: VectorStore,
        chunk_options: ChunkOptions | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            embedding_provider: Provider for chunk embeddings.
            vector_store: Destination store.
            chunk_options: Chunk size and overlap.
        """
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._chunker = SectionChunker(chunk_options)

    async def ingest_document(
        self,
        package: str,
        version: str,
        document: ScrapedDocument,
    ) -> IngestionResult:
        """Chunk, embed and store one page.

        Args:
            package: Package name.
            version: Package version.
            document: Scraped page.

        Returns:
            Number of chunks stored for the page.
        """
        chunks = self._chunker.chunk(document)
        if not chunks:
            logger.warning(f"No content to index for {document.metadata.url}")
            return IngestionResult(url=document.metadata.url, chunks_created=0)

        embeddings = await self._embedding_provider.embed_batch([c.content for c in chunks])

        documents = [
            VectorDocument(
                id=chunk_id(package, version, document.metadata.url, chunk.metadata.chunk_index),
                content=chunk.content,
                embedding=embedding,
                metadata=DocumentMetadata(
                    package=package,
                    version=version,
                    url=document.metadata.url,
                    title=document.metadata.title or chunk.metadata.section,
                    section=chunk.metadata.section,
                ),
            )
            for chunk, embedding in zip(chunks, embeddings, strict=True)
        ]

        committed = await self._vector_store.add_documents(documents)
        logger.info(
            f"Indexed {committed} chunks from {document.metadata.url}",
            extra={"package": package, "version": version},
        )
        return IngestionResult(url=document.metadata.url, chunks_created=committed)

    async def ingest_many(
        self,
        package: str,
        version: str,
        documents: list[ScrapedDocument],
        max_concurrency: int = 5,
        replace: bool = False,
    ) -> IngestionReport:
        """Ingest pages concurrently, collecting failures per page.

        Args:
            package: Package name.
            version: Package version.
            documents: Scraped pages.
            max_concurrency: Pages processed at the same time.
            replace: Delete the existing package version first.

        Returns:
            Report with processed counts and per-page errors.
        """
        if replace:
            await self._vector_store.delete_package_version(package, version)

        report = IngestionReport(package=package, version=version)
        semaphore = asyncio.Semaphore(max_concurrency)

        async def ingest(document: ScrapedDocument) -> None:
            async with semaphore:
                try:
                    result = await self.ingest_document(package, version, document)
                except DocServerError as e:
                    logger.error(
                        f"Failed to process {document.metadata.url}: {e.message}",
                        extra={"code": e.code.value},
                    )
                    report.errors.append(
                        IngestionFailure(url=document.metadata.url, error=e.message)
                    )
                    return
                except Exception as e:
                    logger.exception(f"Unexpected error processing {document.metadata.url}")
                    report.errors.append(IngestionFailure(url=document.metadata.url, error=str(e)))
                    return
                report.processed += 1
                report.chunks += result.chunks_created

        await asyncio.gather(*(ingest(document) for document in documents))

        logger.info(
            f"Completed: {report.processed} pages processed, {len(report.errors)} errors",
            extra={"package": package, "version": version, "chunks": report.chunks},
        )
        return report
