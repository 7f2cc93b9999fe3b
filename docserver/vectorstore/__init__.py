"""Vector store module."""

from docserver.vectorstore.base import VectorStore
from docserver.vectorstore.factory import VectorStoreFactory, build_vector_store
from docserver.vectorstore.memory import InMemoryVectorStore
from docserver.vectorstore.models import (
    DocumentMetadata,
    PackageInfo,
    SearchFilter,
    SearchOptions,
    SearchResult,
    VectorDocument,
    VersionInfo,
)
from docserver.vectorstore.postgres import PostgresVectorStore
from docserver.vectorstore.qdrant import QdrantVectorStore

__all__ = [
    "DocumentMetadata",
    "InMemoryVectorStore",
    "PackageInfo",
    "PostgresVectorStore",
    "QdrantVectorStore",
    "SearchFilter",
    "SearchOptions",
    "SearchResult",
    "VectorDocument",
    "VectorStore",
    "VectorStoreFactory",
    "VersionInfo",
    "build_vector_store",
]
