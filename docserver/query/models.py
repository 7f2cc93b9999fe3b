"""Request and response envelopes for documentation queries."""

from pydantic import BaseModel, Field

from docserver.vectorstore.models import PackageInfo, SearchResult, VersionInfo


class QueryDocsRequest(BaseModel):
    """Input for a documentation query.

    Attributes:
        library: Package name to search.
        version: Package version to search.
        question: Search query or question.
        max_tokens: Per-result content budget in tokens.
        include_citations: Attach source URLs to each result.
    """

    library: str = Field(description='The library/package name (e.g., "next", "react")')
    version: str = Field(description='The specific version (e.g., "14.2.2", "18.3.0")')
    question: str = Field(min_length=1, description="The search query or question")
    max_tokens: int | None = Field(
        default=None,
        gt=0,
        description="Maximum tokens per result",
    )
    include_citations: bool = Field(
        default=False,
        description="Include source URLs in the response",
    )


class QueryDocsResponse(BaseModel):
    """Ranked results for a documentation query."""

    results: list[SearchResult] = Field(default_factory=list, description="Ranked results")
    total_results: int = Field(description="Number of results returned")
    query_time_ms: int = Field(description="Wall-clock query time in milliseconds")


class ListPackagesResponse(BaseModel):
    """All indexed packages."""

    packages: list[PackageInfo] = Field(default_factory=list, description="Packages")


class ListVersionsResponse(BaseModel):
    """Indexed versions of one package."""

    package: str = Field(description="Package name")
    versions: list[VersionInfo] = Field(default_factory=list, description="Versions")
