"""Document query service."""

import time

from docserver.logging_config import get_logger
from docserver.observability.metrics import track_query_request
from docserver.query.models import (
    ListPackagesResponse,
    ListVersionsResponse,
    QueryDocsRequest,
    QueryDocsResponse,
)
from docserver.vectorstore.base import VectorStore
from docserver.vectorstore.models import SearchFilter, SearchOptions, SearchResult

logger = get_logger(__name__)

# Results per query. Callers cannot change it.
SEARCH_LIMIT = 5

# Rough estimate: one token is about four characters.
TOKENS_PER_CHAR = 0.25


def truncate_results(results: list[SearchResult], max_tokens: int) -> list[SearchResult]:
    """Cut each result's content to the character budget of ``max_tokens``.

    The cut is a raw character slice, not sentence aware.
    """
    max_chars = int(max_tokens / TOKENS_PER_CHAR)
    return [
        result.model_copy(update={"content": result.content[:max_chars]})
        for result in results
    ]


def add_citations(results: list[SearchResult]) -> list[SearchResult]:
    """Attach the source URL of each result, or an empty list."""
    return [
        result.model_copy(
            update={"citations": [result.metadata.url] if result.metadata.url else []}
        )
        for result in results
    ]


class DocumentService:
    """Answers documentation queries against one vector store.

    The service only reads from the store; ingestion writes go
    through the store directly.
    """

    def __init__(self, vector_store: VectorStore) -> None:
        """Initialize the service.

        Args:
            vector_store: Store to search and list.
        """
        self._vector_store = vector_store

    async def query_documents(self, request: QueryDocsRequest) -> QueryDocsResponse:
        """Search a package version and post-process the results.

        Args:
            request: Library, version, question and output options.

        Returns:
            Results with total count and elapsed time.
        """
        start_time = time.perf_counter()

        logger.info(
            "Processing documentation query",
            extra={
                "library": request.library,
                "version": request.version,
                "question_length": len(request.question),
            },
        )

        try:
            results = await self._vector_store.search(
                SearchOptions(
                    query=request.question,
                    filter=SearchFilter(package=request.library, version=request.version),
                    limit=SEARCH_LIMIT,
                )
            )
        except Exception:
            track_query_request(time.perf_counter() - start_time, 0, 0.0, success=False)
            raise

        if request.max_tokens:
            results = truncate_results(results, request.max_tokens)

        if request.include_citations:
            results = add_citations(results)

        elapsed = time.perf_counter() - start_time
        track_query_request(
            elapsed,
            len(results),
            results[0].score if results else 0.0,
        )

        return QueryDocsResponse(
            results=results,
            total_results=len(results),
            query_time_ms=int(elapsed * 1000),
        )

    async def list_packages(self) -> ListPackagesResponse:
        """List all indexed packages."""
        packages = await self._vector_store.list_packages()
        return ListPackagesResponse(packages=packages)

    async def list_versions(self, package: str) -> ListVersionsResponse:
        """List the versions of one package.

        Raises:
            NotFoundError: If the package has no documents.
        """
        versions = await self._vector_store.list_versions(package)
        return ListVersionsResponse(package=package, versions=versions)
