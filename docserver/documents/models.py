"""Scraped document and chunk data models."""

from typing import Any

from pydantic import BaseModel, Field


class ScrapedMetadata(BaseModel):
    """Metadata the scraper attaches to a page.

    Attributes:
        url: Source URL of the page.
        title: Page title, if known.
        description: Page description, if known.
    """

    url: str = Field(description="Source URL")
    title: str | None = Field(default=None, description="Page title")
    description: str | None = Field(default=None, description="Page description")


class ScrapedDocument(BaseModel):
    """Markdown content of one scraped documentation page."""

    content: str = Field(description="Markdown text of the page")
    metadata: ScrapedMetadata = Field(description="Page metadata")

    @classmethod
    def from_text(
        cls,
        content: str,
        url: str,
        title: str | None = None,
        **extra: Any,
    ) -> "ScrapedDocument":
        """Create a document from markdown text.

        Args:
            content: The markdown content.
            url: Source URL.
            title: Optional page title.
            **extra: Additional metadata (only ``description`` is kept).

        Returns:
            New ScrapedDocument instance.
        """
        return cls(
            content=content,
            metadata=ScrapedMetadata(
                url=url,
                title=title,
                description=extra.get("description"),
            ),
        )


class ChunkOptions(BaseModel):
    """Per-call chunking parameters.

    Attributes:
        max_chunk_size: Target maximum chunk size in characters.
        overlap: Characters carried over from the previous chunk.
    """

    max_chunk_size: int = Field(default=1000, gt=0, description="Maximum chunk size")
    overlap: int = Field(default=200, ge=0, description="Overlap between chunks")

    def model_post_init(self, __context: Any) -> None:
        """Validate overlap is less than chunk size."""
        if self.overlap >= self.max_chunk_size:
            raise ValueError("overlap must be less than max_chunk_size")


class ChunkMetadata(BaseModel):
    """Position and provenance of a chunk.

    Attributes:
        url: Source URL (empty when chunking raw text).
        title: Page title, if known.
        section: Heading of the section the chunk falls under.
        chunk_index: 0-based position within the document.
        total_chunks: Number of chunks produced for the document.
    """

    url: str = Field(default="", description="Source URL")
    title: str | None = Field(default=None, description="Page title")
    section: str = Field(description="Section heading")
    chunk_index: int = Field(ge=0, description="Chunk index in document")
    total_chunks: int = Field(default=0, ge=0, description="Total chunks in document")


class DocumentChunk(BaseModel):
    """A bounded span of document text, the unit that gets embedded."""

    content: str = Field(description="Text content of the chunk")
    metadata: ChunkMetadata = Field(description="Chunk metadata")
