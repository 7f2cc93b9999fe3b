#!/usr/bin/env python
"""Index scraped documentation pages for a package version.

Usage:
    python -m scripts.add_source react 18.3.0 ./scraped/react --replace

Pages are read from markdown files, chunked, embedded and written to the
vector store selected by ``DB_TYPE``.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from docserver.config import get_settings
from docserver.documents.loader import MarkdownFileLoader
from docserver.documents.models import ChunkOptions, ScrapedDocument
from docserver.exceptions import DocServerError, ValidationError
from docserver.ingestion.pipeline import IngestionPipeline
from docserver.logging_config import get_logger, setup_logging
from docserver.vectorstore.factory import VectorStoreFactory

logger = get_logger(__name__)


def load_pages(path: Path, loader: MarkdownFileLoader) -> list[ScrapedDocument]:
    """Load one file or every supported file under a directory."""
    if path.is_dir():
        return loader.load_directory(path)
    return [loader.load(path)]


async def add_source(
    package: str,
    version: str,
    path: Path,
    max_chunk_size: int | None = None,
    overlap: int | None = None,
    replace: bool = False,
    dry_run: bool = False,
) -> bool:
    """Index the pages found at ``path``.

    Args:
        package: Package name.
        version: Package version.
        path: Markdown file or directory of files.
        max_chunk_size: Chunk size override.
        overlap: Overlap override.
        replace: Delete the existing package version first.
        dry_run: Only list the pages that would be indexed.

    Returns:
        True if every page was indexed.
    """
    settings = get_settings()
    setup_logging(level=settings.log_level)

    try:
        options = ChunkOptions(
            max_chunk_size=max_chunk_size or settings.ingestion.max_chunk_size,
            overlap=overlap if overlap is not None else settings.ingestion.overlap,
        )
    except ValueError as e:
        raise ValidationError(
            f"Invalid chunk options: {e}",
            details={"max_chunk_size": max_chunk_size, "overlap": overlap},
        ) from e

    pages = load_pages(path, MarkdownFileLoader())
    logger.info(f"Loaded {len(pages)} pages from {path}")

    if dry_run:
        for page in pages:
            print(f"  {page.metadata.url}  ({len(page.content)} chars)")
        print(f"\n{len(pages)} pages would be indexed as {package}@{version}")
        return True

    store = await VectorStoreFactory.create(settings=settings)
    try:
        pipeline = IngestionPipeline(store.embedding_provider, store, chunk_options=options)
        report = await pipeline.ingest_many(
            package,
            version,
            pages,
            max_concurrency=settings.ingestion.max_concurrency,
            replace=replace,
        )
    finally:
        await VectorStoreFactory.close()

    print("\n" + "=" * 60)
    print("INGESTION SUMMARY")
    print("=" * 60)
    print(f"Package: {report.package}")
    print(f"Version: {report.version}")
    print(f"Pages Processed: {report.processed}")
    print(f"Chunks Stored: {report.chunks}")
    print(f"Errors: {len(report.errors)}")
    for failure in report.errors:
        print(f"  {failure.url}: {failure.error}")
    print("=" * 60)

    return report.succeeded


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Index documentation pages for a package version",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("package", help="Package name")
    parser.add_argument("version", help="Package version")
    parser.add_argument("path", type=Path, help="Markdown file or directory")
    parser.add_argument(
        "--max-chunk-size",
        type=int,
        default=None,
        help="Chunk size in characters (default from INGEST_MAX_CHUNK_SIZE)",
    )
    parser.add_argument(
        "--overlap",
        type=int,
        default=None,
        help="Overlap between chunks (default from INGEST_OVERLAP)",
    )
    parser.add_argument(
        "--replace",
        action="store_true",
        help="Delete the existing package version before indexing",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the pages without indexing them",
    )

    args = parser.parse_args()

    try:
        succeeded = asyncio.run(
            add_source(
                package=args.package,
                version=args.version,
                path=args.path,
                max_chunk_size=args.max_chunk_size,
                overlap=args.overlap,
                replace=args.replace,
                dry_run=args.dry_run,
            )
        )
    except DocServerError as e:
        logger.error(f"Indexing failed: {e.message}", extra={"code": e.code.value})
        sys.exit(2)

    sys.exit(0 if succeeded else 1)


if __name__ == "__main__":
    main()
