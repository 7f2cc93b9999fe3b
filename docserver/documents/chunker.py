"""Section-aware text chunking for documentation pages."""

import re

from pydantic import BaseModel, Field

from docserver.documents.models import (
    ChunkMetadata,
    ChunkOptions,
    DocumentChunk,
    ScrapedDocument,
)

DEFAULT_SECTION = "Introduction"

# Sentence-like units end in terminal punctuation; trailing text is its own unit.
SENTENCE_PATTERN = re.compile(r"[^.!?]+[.!?]+|[^.!?]+$")


class Section(BaseModel):
    """A top-level markdown section: heading line plus body."""

    title: str = Field(description="Heading text without the marker")
    content: str = Field(description="Heading line and following text")


def split_sections(content: str) -> list[Section]:
    """Split markdown into sections at ``# `` heading lines.

    Text before the first heading belongs to an implicit
    "Introduction" section. Blank sections are dropped.
    """
    sections: list[Section] = []
    title = DEFAULT_SECTION
    lines: list[str] = []

    for line in content.split("\n"):
        if line.startswith("# "):
            body = "".join(f"{existing}\n" for existing in lines)
            if body.strip():
                sections.append(Section(title=title, content=body))
            title = line[2:].strip()
            lines = [line]
        else:
            lines.append(line)

    body = "".join(f"{existing}\n" for existing in lines)
    if body.strip():
        sections.append(Section(title=title, content=body))

    return sections


def split_sentences(text: str) -> list[str]:
    """Split text into sentence-like units.

    Returns the whole text as a single unit when no terminal
    punctuation is found.
    """
    units = [unit for unit in SENTENCE_PATTERN.findall(text) if unit.strip()]
    return units or [text]


def overlap_suffix(text: str, overlap: int) -> str:
    """Return the tail of ``text`` used to seed the next chunk.

    The tail is at most ``overlap`` characters and starts after a
    sentence boundary when one is available, otherwise after the
    first word boundary, so words are never cut in half.
    """
    if overlap <= 0:
        return ""
    if len(text) <= overlap:
        return text

    tail = text[-overlap:]

    sentence_end = tail.rfind(". ")
    if sentence_end > 0:
        return tail[sentence_end + 2 :]

    word_boundary = tail.find(" ")
    if word_boundary > 0:
        return tail[word_boundary + 1 :]

    return tail


def split_oversized(unit: str, max_chunk_size: int) -> list[str]:
    """Cut a unit longer than ``max_chunk_size`` into windows.

    Windows end after the last space that fits, or at the hard limit
    when the window has no space.
    """
    windows: list[str] = []
    while len(unit) > max_chunk_size:
        cut = unit.rfind(" ", 0, max_chunk_size) + 1
        if cut <= 1:
            cut = max_chunk_size
        windows.append(unit[:cut])
        unit = unit[cut:]
    if unit:
        windows.append(unit)
    return windows


def chunk_text(text: str, max_chunk_size: int, overlap: int) -> list[str]:
    """Greedily pack sentence units into overlapping chunks.

    Args:
        text: Section text.
        max_chunk_size: Size in characters that closes a chunk.
        overlap: Maximum characters carried into the next chunk.

    Returns:
        Stripped chunk strings in order.
    """
    chunks: list[str] = []
    buffer = ""

    units = [
        window
        for sentence in split_sentences(text)
        for window in split_oversized(sentence, max_chunk_size)
    ]

    for unit in units:
        if len(buffer) + len(unit) > max_chunk_size and buffer:
            chunks.append(buffer.strip())
            buffer = overlap_suffix(buffer, overlap) + unit
        else:
            buffer += unit

    if buffer.strip():
        chunks.append(buffer.strip())

    return chunks


class SectionChunker:
    """Split documentation pages into section-tagged chunks.

    Each chunk records the heading it falls under, its 0-based index
    across the whole page and the total chunk count for the page.
    """

    def __init__(self, options: ChunkOptions | None = None) -> None:
        """Initialize chunker with options.

        Args:
            options: Chunking options. Uses defaults if not provided.
        """
        self.options = options or ChunkOptions()

    def chunk(self, document: ScrapedDocument) -> list[DocumentChunk]:
        """Split a scraped page into chunks carrying its url and title."""
        chunks = chunk_document(document.content, self.options)
        for chunk in chunks:
            chunk.metadata.url = document.metadata.url
            chunk.metadata.title = document.metadata.title
        return chunks


def chunk_document(content: str, options: ChunkOptions) -> list[DocumentChunk]:
    """Split markdown content into overlapping, section-aware chunks.

    Args:
        content: Markdown text.
        options: Chunk size and overlap for this call.

    Returns:
        Chunks in document order with ``total_chunks`` filled in.
    """
    chunks: list[DocumentChunk] = []

    for section in split_sections(content):
        for text in chunk_text(section.content, options.max_chunk_size, options.overlap):
            chunks.append(
                DocumentChunk(
                    content=text,
                    metadata=ChunkMetadata(
                        section=section.title,
                        chunk_index=len(chunks),
                    ),
                )
            )

    # The total is only known once every section has been scanned.
    for chunk in chunks:
        chunk.metadata.total_chunks = len(chunks)

    return chunks
