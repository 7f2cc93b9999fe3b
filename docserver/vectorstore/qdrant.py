"""Qdrant vector store implementation."""

from datetime import UTC, datetime
from typing import Any
from uuid import NAMESPACE_URL, UUID, uuid5

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    MatchValue,
    PayloadSchemaType,
    PointStruct,
    VectorParams,
)

from docserver.config import QdrantSettings, get_settings
from docserver.embeddings.service import EmbeddingProvider
from docserver.exceptions import (
    ErrorCode,
    NotFoundError,
    PartialBatchError,
    VectorStoreError,
)
from docserver.logging_config import get_logger
from docserver.observability.metrics import (
    track_documents_added,
    track_vectorstore_operation,
)
from docserver.vectorstore.base import VectorStore
from docserver.vectorstore.models import (
    DocumentMetadata,
    PackageInfo,
    SearchOptions,
    SearchResult,
    VectorDocument,
    VersionInfo,
)

logger = get_logger(__name__)

SCROLL_PAGE_SIZE = 1000
LISTING_FIELDS = ["package", "version", "indexed_at"]


def point_id(document_id: str) -> str:
    """Map an opaque document id to a Qdrant point id.

    UUIDs are used as-is; anything else maps to a stable UUID5 so the
    same document id always upserts the same point.
    """
    try:
        return str(UUID(document_id))
    except ValueError:
        return str(uuid5(NAMESPACE_URL, document_id))


def build_filter(**conditions: str | None) -> Filter | None:
    """Build an AND filter from keyword equality conditions.

    Only ``None`` drops a condition; an empty string must match exactly.
    """
    must = [
        FieldCondition(key=key, match=MatchValue(value=value))
        for key, value in conditions.items()
        if value is not None
    ]
    if not must:
        return None
    return Filter(must=must)  # type: ignore[arg-type]


def _parse_timestamp(value: Any) -> datetime:
    """Read the ``indexed_at`` payload field; missing values count as now."""
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            logger.warning(f"Unparseable indexed_at payload: {value!r}")
    return datetime.now(UTC)


class QdrantVectorStore(VectorStore):
    """Qdrant vector store.

    Batches are upserted sequentially in chunks of ``batch_size``.
    Qdrant has no cross-request transaction, so a failure part way
    through leaves earlier chunks committed; this is reported with
    ``PartialBatchError``. Re-adding the same document ids overwrites
    the committed points because they are upserted by id.
    """

    backend = "qdrant"
    atomic_batches = False

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        settings: QdrantSettings | None = None,
        client: AsyncQdrantClient | None = None,
    ) -> None:
        """Initialize Qdrant vector store.

        Args:
            embedding_provider: Provider used for query vectors.
            settings: Qdrant configuration.
            client: Existing client (for testing).
        """
        super().__init__(embedding_provider)
        self._settings = settings or get_settings().qdrant
        self._client = client
        self._owns_client = client is None

    @property
    def collection_name(self) -> str:
        """Collection holding document chunks."""
        return self._settings.collection_name

    async def _get_client(self) -> AsyncQdrantClient:
        """Get or create Qdrant client."""
        if self._client is None:
            api_key = None
            if self._settings.api_key:
                api_key = self._settings.api_key.get_secret_value()

            self._client = AsyncQdrantClient(
                url=self._settings.url,
                api_key=api_key,
            )
        return self._client

    async def initialize(self) -> None:
        client = await self._get_client()

        try:
            if await client.collection_exists(self.collection_name):
                logger.info(f"Qdrant collection already exists: {self.collection_name}")
            else:
                await client.create_collection(
                    collection_name=self.collection_name,
                    vectors_config=VectorParams(
                        size=self.dimensions,
                        distance=Distance.COSINE,
                    ),
                )
                for field in ("package", "version"):
                    await client.create_payload_index(
                        collection_name=self.collection_name,
                        field_name=field,
                        field_schema=PayloadSchemaType.KEYWORD,
                    )
                logger.info(
                    f"Created Qdrant collection: {self.collection_name}",
                    extra={"dimensions": self.dimensions},
                )
        except Exception as e:
            raise VectorStoreError(
                f"Failed to initialize Qdrant collection: {e}",
                code=ErrorCode.VECTOR_STORE_ERROR,
                details={"collection": self.collection_name, "error": str(e)},
            ) from e

        self._initialized = True
        self._closed = False

    async def add_documents(self, documents: list[VectorDocument]) -> int:
        self._require_ready("add documents")
        if not documents:
            return 0

        self._validate_dimensions(documents)
        client = await self._get_client()

        batch_size = self._settings.batch_size
        total_batches = (len(documents) + batch_size - 1) // batch_size
        committed = 0

        for start in range(0, len(documents), batch_size):
            batch = documents[start : start + batch_size]
            indexed_at = datetime.now(UTC).isoformat()
            points = [
                PointStruct(
                    id=point_id(document.id),
                    vector=document.embedding,
                    payload={
                        "doc_id": document.id,
                        "content": document.content,
                        **document.metadata.model_dump(),
                        "indexed_at": indexed_at,
                    },
                )
                for document in batch
            ]

            try:
                async with track_vectorstore_operation(self.backend, "upsert"):
                    await client.upsert(
                        collection_name=self.collection_name,
                        points=points,
                        wait=True,
                    )
            except Exception as e:
                logger.error(
                    f"Failed to upsert batch {start // batch_size + 1} of {total_batches}: {e}",
                    extra={"committed": committed, "total": len(documents)},
                )
                if committed:
                    raise PartialBatchError(
                        f"Upsert failed after {committed} of {len(documents)} documents: {e}",
                        committed=committed,
                        total=len(documents),
                        details={"collection": self.collection_name, "error": str(e)},
                    ) from e
                raise VectorStoreError(
                    f"Failed to upsert records: {e}",
                    code=ErrorCode.VECTOR_STORE_ERROR,
                    details={"collection": self.collection_name, "error": str(e)},
                ) from e

            committed += len(batch)
            track_documents_added(self.backend, len(batch))
            logger.debug(
                f"Added batch {start // batch_size + 1} of {total_batches}",
                extra={"collection": self.collection_name},
            )

        logger.info(f"Added {committed} documents to Qdrant")
        return committed

    async def search(self, options: SearchOptions) -> list[SearchResult]:
        self._require_ready("search")

        query_vector = await self._embed_query(options.query)
        client = await self._get_client()

        query_filter = build_filter(**options.filter.as_dict()) if options.filter else None

        try:
            async with track_vectorstore_operation(self.backend, "search"):
                response = await client.query_points(
                    collection_name=self.collection_name,
                    query=query_vector,
                    limit=options.limit,
                    query_filter=query_filter,
                    with_payload=True,
                )
        except Exception as e:
            raise VectorStoreError(
                f"Failed to search: {e}",
                code=ErrorCode.VECTOR_STORE_ERROR,
                details={"collection": self.collection_name, "error": str(e)},
            ) from e

        results: list[SearchResult] = []
        for point in response.points:
            payload = dict(point.payload) if point.payload else {}
            results.append(
                SearchResult(
                    content=payload.get("content", ""),
                    score=point.score if point.score is not None else 0.0,
                    metadata=DocumentMetadata(
                        package=payload.get("package", ""),
                        version=payload.get("version", ""),
                        url=payload.get("url"),
                        title=payload.get("title"),
                        section=payload.get("section"),
                    ),
                )
            )

        results.sort(key=lambda r: r.score, reverse=True)
        return results

    async def list_packages(self) -> list[PackageInfo]:
        self._require_ready("list packages")

        versions: dict[str, set[str]] = {}
        updated: dict[str, datetime] = {}
        for payload in await self._scroll_payloads(None):
            package = payload["package"]
            timestamp = _parse_timestamp(payload.get("indexed_at"))
            versions.setdefault(package, set()).add(payload["version"])
            updated[package] = max(updated.get(package, timestamp), timestamp)

        return [
            PackageInfo(
                name=name,
                versions=sorted(versions[name], reverse=True),
                last_updated=updated[name],
            )
            for name in sorted(versions)
        ]

    async def list_versions(self, package: str) -> list[VersionInfo]:
        self._require_ready("list versions")

        groups: dict[str, list[datetime]] = {}
        for payload in await self._scroll_payloads(build_filter(package=package)):
            groups.setdefault(payload["version"], []).append(
                _parse_timestamp(payload.get("indexed_at"))
            )

        if not groups:
            raise NotFoundError(
                f"Package not found: {package}",
                details={"package": package},
            )

        return [
            VersionInfo(
                version=version,
                doc_count=len(groups[version]),
                release_date=min(groups[version]),
                last_indexed=max(groups[version]),
            )
            for version in sorted(groups, reverse=True)
        ]

    async def delete_package_version(self, package: str, version: str) -> None:
        self._require_ready("delete documents")
        client = await self._get_client()

        try:
            async with track_vectorstore_operation(self.backend, "delete"):
                await client.delete(
                    collection_name=self.collection_name,
                    points_selector=FilterSelector(
                        filter=build_filter(package=package, version=version)  # type: ignore[arg-type]
                    ),
                    wait=True,
                )
        except Exception as e:
            raise VectorStoreError(
                f"Failed to delete {package}@{version}: {e}",
                code=ErrorCode.VECTOR_STORE_ERROR,
                details={"collection": self.collection_name, "error": str(e)},
            ) from e

        logger.info(
            f"Deleted documents for {package}@{version} from Qdrant",
            extra={"package": package, "version": version},
        )

    async def close(self) -> None:
        """Close the Qdrant client."""
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None
        self._closed = True
        logger.info("Qdrant vector store closed")

    async def _scroll_payloads(self, scroll_filter: Filter | None) -> list[dict[str, Any]]:
        """Page through the collection and return listing payloads."""
        client = await self._get_client()
        payloads: list[dict[str, Any]] = []
        offset = None

        try:
            async with track_vectorstore_operation(self.backend, "scroll"):
                while True:
                    points, offset = await client.scroll(
                        collection_name=self.collection_name,
                        scroll_filter=scroll_filter,
                        limit=SCROLL_PAGE_SIZE,
                        offset=offset,
                        with_payload=LISTING_FIELDS,
                        with_vectors=False,
                    )
                    payloads.extend(dict(point.payload) for point in points if point.payload)
                    if offset is None:
                        break
        except Exception as e:
            raise VectorStoreError(
                f"Failed to scroll collection: {e}",
                code=ErrorCode.VECTOR_STORE_ERROR,
                details={"collection": self.collection_name, "error": str(e)},
            ) from e

        return payloads
