"""Document processing module."""

from docserver.documents.chunker import SectionChunker, chunk_document
from docserver.documents.loader import MarkdownFileLoader
from docserver.documents.models import (
    ChunkMetadata,
    ChunkOptions,
    DocumentChunk,
    ScrapedDocument,
    ScrapedMetadata,
)

__all__ = [
    "ChunkMetadata",
    "ChunkOptions",
    "DocumentChunk",
    "MarkdownFileLoader",
    "ScrapedDocument",
    "ScrapedMetadata",
    "SectionChunker",
    "chunk_document",
]
