"""Loader for already-scraped markdown pages on disk."""

from pathlib import Path

from docserver.documents.models import ScrapedDocument
from docserver.exceptions import DocumentError, ErrorCode


class MarkdownFileLoader:
    """Load scraped markdown files as ScrapedDocument instances.

    The page title is taken from the first ``# `` heading.
    """

    SUPPORTED_EXTENSIONS = {".md", ".markdown", ".txt"}

    def __init__(self, encoding: str = "utf-8") -> None:
        """Initialize the loader.

        Args:
            encoding: Text encoding to use when reading files.
        """
        self.encoding = encoding

    def load(self, source: str | Path, url: str | None = None) -> ScrapedDocument:
        """Load a markdown file.

        Args:
            source: Path to the file.
            url: Original page URL. Defaults to a ``file://`` URI.

        Returns:
            ScrapedDocument with the file content.

        Raises:
            DocumentError: If the file cannot be read.
        """
        path = Path(source)

        if not path.exists():
            raise DocumentError(
                f"File not found: {path}",
                code=ErrorCode.DOCUMENT_NOT_FOUND,
                details={"path": str(path)},
            )

        if not path.is_file():
            raise DocumentError(
                f"Not a file: {path}",
                code=ErrorCode.DOCUMENT_PARSE_ERROR,
                details={"path": str(path)},
            )

        try:
            content = path.read_text(encoding=self.encoding)
        except UnicodeDecodeError as e:
            raise DocumentError(
                f"Failed to decode file: {path}",
                code=ErrorCode.DOCUMENT_PARSE_ERROR,
                details={"path": str(path), "encoding": self.encoding, "error": str(e)},
            ) from e
        except OSError as e:
            raise DocumentError(
                f"Failed to read file: {path}",
                code=ErrorCode.DOCUMENT_PARSE_ERROR,
                details={"path": str(path), "error": str(e)},
            ) from e

        return ScrapedDocument.from_text(
            content=content,
            url=url or path.resolve().as_uri(),
            title=_first_heading(content),
        )

    def load_directory(self, directory: str | Path) -> list[ScrapedDocument]:
        """Load every supported file under a directory, sorted by path.

        Raises:
            DocumentError: If the directory does not exist or a file fails.
        """
        root = Path(directory)
        if not root.is_dir():
            raise DocumentError(
                f"Directory not found: {root}",
                code=ErrorCode.DOCUMENT_NOT_FOUND,
                details={"path": str(root)},
            )

        return [
            self.load(path)
            for path in sorted(root.rglob("*"))
            if path.is_file() and self.supports(path)
        ]

    def supports(self, source: str | Path) -> bool:
        """Check if source has a supported extension."""
        return Path(source).suffix.lower() in self.SUPPORTED_EXTENSIONS


def _first_heading(content: str) -> str | None:
    """Return the text of the first top-level heading, if any."""
    for line in content.split("\n"):
        if line.startswith("# "):
            return line[2:].strip() or None
    return None
