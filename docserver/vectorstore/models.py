"""Vector store data models."""

from datetime import datetime

from pydantic import BaseModel, Field


class DocumentMetadata(BaseModel):
    """Addressing and provenance of a stored chunk.

    Attributes:
        package: Library name, e.g. "next".
        version: Release identifier, e.g. "14.2.2".
        url: Source page URL.
        title: Page or section title.
        section: Heading the chunk falls under.
    """

    package: str = Field(description="Package name")
    version: str = Field(description="Package version")
    url: str | None = Field(default=None, description="Source URL")
    title: str | None = Field(default=None, description="Page title")
    section: str | None = Field(default=None, description="Section heading")


class VectorDocument(BaseModel):
    """A chunk with its embedding, as persisted by a vector store.

    Attributes:
        id: Unique record identifier.
        content: Chunk text.
        embedding: Embedding vector.
        metadata: Package/version addressing and provenance.
    """

    id: str = Field(description="Unique record identifier")
    content: str = Field(description="Chunk text")
    embedding: list[float] = Field(description="Embedding vector")
    metadata: DocumentMetadata = Field(description="Document metadata")


class SearchFilter(BaseModel):
    """Equality filters, AND-combined when both are set."""

    package: str | None = Field(default=None, description="Package to match")
    version: str | None = Field(default=None, description="Version to match")

    def as_dict(self) -> dict[str, str]:
        """Return only the filters that are set."""
        return {k: v for k, v in self.model_dump().items() if v}


class SearchOptions(BaseModel):
    """A similarity search request."""

    query: str = Field(description="Query text")
    filter: SearchFilter | None = Field(default=None, description="Optional filters")
    limit: int = Field(default=5, ge=1, description="Maximum results")


class SearchResult(BaseModel):
    """Result from a similarity search.

    Attributes:
        content: Chunk text.
        score: Similarity, ``1 - cosine_distance`` (higher is more similar).
        metadata: Stored metadata.
        citations: Source URLs, when requested.
    """

    content: str = Field(description="Chunk text")
    score: float = Field(description="Similarity score")
    metadata: DocumentMetadata = Field(description="Document metadata")
    citations: list[str] | None = Field(default=None, description="Source URLs")


class PackageInfo(BaseModel):
    """Aggregate view of one package."""

    name: str = Field(description="Package name")
    versions: list[str] = Field(description="Distinct versions, newest first")
    last_updated: datetime = Field(description="Most recent document update")


class VersionInfo(BaseModel):
    """Aggregate view of one package version."""

    version: str = Field(description="Version string")
    doc_count: int = Field(ge=0, description="Number of stored chunks")
    release_date: datetime = Field(description="When the version was first indexed")
    last_indexed: datetime = Field(description="Most recent document update")
