"""PostgreSQL vector store backed by the pgvector extension."""

import asyncpg

from docserver.config import PostgresSettings, get_settings
from docserver.embeddings.service import EmbeddingProvider
from docserver.exceptions import ErrorCode, NotFoundError, VectorStoreError
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

INSERT_SQL = """
    INSERT INTO documents (id, content, embedding, package, version, url, title, section)
    VALUES ($1, $2, $3::vector, $4, $5, $6, $7, $8)
    ON CONFLICT (id) DO UPDATE SET
        content = EXCLUDED.content,
        embedding = EXCLUDED.embedding,
        package = EXCLUDED.package,
        version = EXCLUDED.version,
        url = EXCLUDED.url,
        title = EXCLUDED.title,
        section = EXCLUDED.section,
        updated_at = NOW()
"""

LIST_PACKAGES_SQL = """
    SELECT
        package,
        array_agg(DISTINCT version ORDER BY version DESC) AS versions,
        MAX(updated_at) AS last_updated
    FROM documents
    GROUP BY package
    ORDER BY package
"""

LIST_VERSIONS_SQL = """
    SELECT
        version,
        COUNT(*) AS doc_count,
        MIN(created_at) AS created_at,
        MAX(updated_at) AS updated_at
    FROM documents
    WHERE package = $1
    GROUP BY version
    ORDER BY version DESC
"""

DELETE_SQL = "DELETE FROM documents WHERE package = $1 AND version = $2"


def to_vector_literal(embedding: list[float]) -> str:
    """Format an embedding as pgvector text input, e.g. ``[0.1,0.2]``."""
    return "[" + ",".join(repr(float(value)) for value in embedding) + "]"


def schema_statements(dimensions: int) -> list[str]:
    """DDL for the documents table; every statement is idempotent."""
    return [
        "CREATE EXTENSION IF NOT EXISTS vector",
        f"""
        CREATE TABLE IF NOT EXISTS documents (
            id TEXT PRIMARY KEY,
            content TEXT NOT NULL,
            embedding vector({int(dimensions)}) NOT NULL,
            package VARCHAR(255) NOT NULL,
            version VARCHAR(100) NOT NULL,
            url TEXT,
            title TEXT,
            section TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        """,
        """
        CREATE INDEX IF NOT EXISTS idx_documents_package_version
        ON documents (package, version)
        """,
        """
        CREATE INDEX IF NOT EXISTS idx_documents_embedding
        ON documents USING ivfflat (embedding vector_cosine_ops)
        WITH (lists = 100)
        """,
    ]


class PostgresVectorStore(VectorStore):
    """pgvector store using an asyncpg connection pool.

    Batch inserts run inside a single transaction on one pooled
    connection, so ``add_documents`` is all-or-nothing. Other requests
    borrow different connections from the pool meanwhile.
    """

    backend = "postgres"
    atomic_batches = True

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        settings: PostgresSettings | None = None,
        pool: asyncpg.Pool | None = None,
    ) -> None:
        """Initialize the PostgreSQL store.

        Args:
            embedding_provider: Provider used for query vectors.
            settings: Connection configuration.
            pool: Existing pool (for testing).
        """
        super().__init__(embedding_provider)
        self._settings = settings or get_settings().postgres
        self._pool = pool
        self._owns_pool = pool is None

    async def _get_pool(self) -> asyncpg.Pool:
        """Get or create the connection pool."""
        if self._pool is None:
            self._pool = await asyncpg.create_pool(
                host=self._settings.host,
                port=self._settings.port,
                database=self._settings.db,
                user=self._settings.user,
                password=self._settings.password.get_secret_value(),
                min_size=self._settings.min_pool_size,
                max_size=self._settings.max_pool_size,
                command_timeout=self._settings.command_timeout,
            )
            logger.info(
                "PostgreSQL connection pool created",
                extra={"host": self._settings.host, "database": self._settings.db},
            )
        return self._pool

    async def initialize(self) -> None:
        try:
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                for statement in schema_statements(self.dimensions):
                    await conn.execute(statement)
        except Exception as e:
            logger.error(f"Failed to initialize PostgreSQL vector store: {e}")
            raise VectorStoreError(
                f"Failed to initialize PostgreSQL vector store: {e}",
                details={"backend": self.backend, "error": str(e)},
            ) from e

        self._initialized = True
        self._closed = False
        logger.info(
            "PostgreSQL vector store initialized",
            extra={"dimensions": self.dimensions},
        )

    async def add_documents(self, documents: list[VectorDocument]) -> int:
        self._require_ready("add documents")
        if not documents:
            return 0

        self._validate_dimensions(documents)
        rows = [
            (
                document.id,
                document.content,
                to_vector_literal(document.embedding),
                document.metadata.package,
                document.metadata.version,
                document.metadata.url,
                document.metadata.title,
                document.metadata.section,
            )
            for document in documents
        ]

        pool = await self._get_pool()
        try:
            async with track_vectorstore_operation(self.backend, "add_documents"):
                async with pool.acquire() as conn:
                    async with conn.transaction():
                        await conn.executemany(INSERT_SQL, rows)
        except Exception as e:
            logger.error(
                f"Failed to add documents batch, transaction rolled back: {e}",
                extra={"count": len(documents)},
            )
            raise VectorStoreError(
                f"Failed to add documents: {e}",
                details={"backend": self.backend, "count": len(documents), "error": str(e)},
            ) from e

        track_documents_added(self.backend, len(documents))
        logger.info(f"Added {len(documents)} documents")
        return len(documents)

    async def search(self, options: SearchOptions) -> list[SearchResult]:
        self._require_ready("search")

        query_vector = await self._embed_query(options.query)

        sql = """
            SELECT content, package, version, url, title, section,
                   1 - (embedding <=> $1::vector) AS similarity
            FROM documents
        """
        values: list[object] = [to_vector_literal(query_vector)]
        conditions: list[str] = []

        filters = options.filter.as_dict() if options.filter else {}
        for column in ("package", "version"):
            if column in filters:
                values.append(filters[column])
                conditions.append(f"{column} = ${len(values)}")

        if conditions:
            sql += " WHERE " + " AND ".join(conditions)

        values.append(options.limit)
        sql += f" ORDER BY embedding <=> $1::vector LIMIT ${len(values)}"

        rows = await self._fetch(sql, *values, operation="search")

        return [
            SearchResult(
                content=row["content"],
                score=float(row["similarity"]),
                metadata=DocumentMetadata(
                    package=row["package"],
                    version=row["version"],
                    url=row["url"],
                    title=row["title"],
                    section=row["section"],
                ),
            )
            for row in rows
        ]

    async def list_packages(self) -> list[PackageInfo]:
        self._require_ready("list packages")

        rows = await self._fetch(LIST_PACKAGES_SQL, operation="list_packages")
        return [
            PackageInfo(
                name=row["package"],
                versions=list(row["versions"]),
                last_updated=row["last_updated"],
            )
            for row in rows
        ]

    async def list_versions(self, package: str) -> list[VersionInfo]:
        self._require_ready("list versions")

        rows = await self._fetch(LIST_VERSIONS_SQL, package, operation="list_versions")
        if not rows:
            raise NotFoundError(
                f"Package not found: {package}",
                details={"package": package},
            )

        return [
            VersionInfo(
                version=row["version"],
                doc_count=int(row["doc_count"]),
                release_date=row["created_at"],
                last_indexed=row["updated_at"],
            )
            for row in rows
        ]

    async def delete_package_version(self, package: str, version: str) -> None:
        self._require_ready("delete documents")

        pool = await self._get_pool()
        try:
            async with track_vectorstore_operation(self.backend, "delete"):
                status = await pool.execute(DELETE_SQL, package, version)
        except Exception as e:
            logger.error(f"Failed to delete {package}@{version}: {e}")
            raise VectorStoreError(
                f"Failed to delete {package}@{version}: {e}",
                details={"backend": self.backend, "package": package, "version": version},
            ) from e

        # asyncpg returns the command tag, e.g. "DELETE 12"
        deleted = status.rsplit(" ", 1)[-1] if isinstance(status, str) else "?"
        logger.info(
            f"Deleted {deleted} documents for {package}@{version}",
            extra={"package": package, "version": version},
        )

    async def close(self) -> None:
        if self._owns_pool and self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("PostgreSQL connection pool closed")
        self._closed = True

    async def _fetch(self, sql: str, *args: object, operation: str) -> list:
        """Run a read query, translating driver errors."""
        pool = await self._get_pool()
        try:
            async with track_vectorstore_operation(self.backend, operation):
                return await pool.fetch(sql, *args)
        except Exception as e:
            logger.error(f"{operation} failed: {e}")
            raise VectorStoreError(
                f"Failed to {operation.replace('_', ' ')}: {e}",
                code=ErrorCode.VECTOR_STORE_ERROR,
                details={"backend": self.backend, "error": str(e)},
            ) from e
