#!/usr/bin/env python
"""Upload local files through the ingestion pipeline.

Usage:
    python scripts/ingest_files.py docs/*.txt         # Upload files
    python scripts/ingest_files.py docs/ --recursive  # Upload every supported file under docs/
    python scripts/ingest_files.py notes.txt -v       # Show one line per file
"""
import argparse
import asyncio
import mimetypes
import sys
from pathlib import Path
from datetime import datetime
from typing import List

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from docsearch import config
from docsearch.errors import DocSearchError
from docsearch.rag.background import IndexingTasks
from docsearch.rag.extractor import file_extension, get_extractor
from docsearch.rag.ingest import IngestPipeline
from docsearch.storage_client import SupabaseStorageClient
from docsearch.vector_client import PineconeIndexClient
import structlog

logger = structlog.get_logger()


class ProgressReporter:
    """Simple progress reporter for CLI."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.start_time = None

    def start(self, message: str):
        """Start progress reporting."""
        self.start_time = datetime.now()
        print(f"\n{'=' * 60}")
        print(f"  {message}")
        print(f"{'=' * 60}\n")

    def update(self, current: int, total: int, file_path: Path):
        """Update progress."""
        percentage = (current / total) * 100 if total > 0 else 0
        bar_length = 40
        filled = int(bar_length * current / total) if total > 0 else 0
        bar = "█" * filled + "░" * (bar_length - filled)

        print(
            f"\r  [{bar}] {percentage:5.1f}% ({current}/{total}) {file_path.name[:30]:<30}",
            end="",
            flush=True,
        )

        if self.verbose:
            print()

    def finish(self, stats: dict):
        """Finish progress reporting."""
        print("\n")
        elapsed_seconds = (datetime.now() - self.start_time).total_seconds()

        print(f"{'=' * 60}")
        print(f"  Upload Complete!")
        print(f"{'=' * 60}\n")
        print(f"  📁 Files uploaded:       {stats['files_uploaded']}")
        print(f"  ❌ Files failed:         {stats['files_failed']}")
        print(f"  ⚠️  Stored, not indexed:  {stats['files_degraded']}")
        print(f"  📝 Chunks created:       {stats['chunks_created']}")
        print(f"  ⏱️  Time elapsed:         {elapsed_seconds:.1f}s")
        print(f"\n{'=' * 60}\n")

        if stats['files_failed'] > 0 or stats['files_degraded'] > 0:
            print(f"⚠️  Warning: some files were not fully ingested.")
            print(f"   Check logs for details.\n")


def discover_files(paths: List[Path], recursive: bool) -> List[Path]:
    """Expand directories into the supported files they contain."""
    supported = set(get_extractor().supported_extensions)
    files = []
    for path in paths:
        if path.is_dir():
            candidates = path.rglob("*") if recursive else path.glob("*")
            files.extend(
                p for p in sorted(candidates)
                if p.is_file() and file_extension(p.name) in supported
            )
        elif path.is_file():
            files.append(path)
        else:
            raise FileNotFoundError(f"No such file or directory: {path}")
    return files


async def ingest_files(
    files: List[Path], progress: ProgressReporter, pipeline: IngestPipeline = None
) -> dict:
    """Ingest each file, then wait for their background upserts.

    Args:
        files: Files to upload
        progress: Progress reporter
        pipeline: Ingest pipeline (default: one built from config)
    """
    if pipeline is None:
        pipeline = IngestPipeline(
            SupabaseStorageClient(), PineconeIndexClient(), indexing=IndexingTasks()
        )
    indexing = pipeline.indexing

    stats = {
        "files_uploaded": 0,
        "files_failed": 0,
        "files_degraded": 0,
        "chunks_created": 0,
    }

    for idx, file_path in enumerate(files, 1):
        progress.update(idx, len(files), file_path)
        content_type = mimetypes.guess_type(file_path.name)[0]

        try:
            result = await pipeline.ingest(file_path.read_bytes(), file_path.name, content_type)
        except DocSearchError as e:
            logger.error("file_upload_failed", path=str(file_path), kind=e.kind, error=e.message)
            stats["files_failed"] += 1
            continue

        stats["files_uploaded"] += 1
        stats["chunks_created"] += result.chunk_count
        if result.degraded:
            stats["files_degraded"] += 1

    await indexing.drain()
    # Awaited upserts already marked their result degraded
    if not pipeline.await_indexing:
        stats["files_degraded"] += indexing.failed

    return stats


async def main():
    """Main entry point for the upload script."""
    parser = argparse.ArgumentParser(
        description="Upload local files to the document search service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/ingest_files.py docs/*.txt
  python scripts/ingest_files.py docs/ --recursive
        """,
    )

    parser.add_argument("paths", nargs="+", type=Path, help="Files or directories")

    parser.add_argument(
        "--recursive",
        "-r",
        action="store_true",
        help="Descend into subdirectories",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show verbose progress output",
    )

    args = parser.parse_args()

    progress = ProgressReporter(verbose=args.verbose)

    try:
        files = discover_files(args.paths, args.recursive)

        print("\n📋 Configuration:")
        print(f"   Bucket:          {config.STORAGE_BUCKET}")
        print(f"   Namespace:       {config.PINECONE_NAMESPACE}")
        print(f"   Chunk size:      {config.CHUNK_SIZE} chars")
        print(f"   Chunk overlap:   {config.CHUNK_OVERLAP} chars")
        print(f"   Files found:     {len(files)}")

        if not files:
            print("\nNothing to upload.\n")
            return

        progress.start("Uploading Documents")
        stats = await ingest_files(files, progress)
        progress.finish(stats)

        if stats["files_failed"] > 0:
            sys.exit(1)

    except KeyboardInterrupt:
        print("\n\n⚠️  Upload cancelled by user.\n")
        sys.exit(1)

    except FileNotFoundError as e:
        print(f"\n❌ Error: {e}\n")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
