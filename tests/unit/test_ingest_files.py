"""Tests for the bulk upload script."""
import importlib.util
from pathlib import Path

import pytest

from docsearch.rag.background import IndexingTasks
from docsearch.rag.ingest import IngestPipeline

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "ingest_files.py"


@pytest.fixture(scope="module")
def ingest_script():
    spec = importlib.util.spec_from_file_location("ingest_files", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def files(tmp_path):
    paths = []
    for name, content in [("a.txt", "first file"), ("b.md", "# second"), ("c.pdf", "%PDF")]:
        path = tmp_path / name
        path.write_text(content)
        paths.append(path)
    return paths


def test_discover_files_keeps_supported_extensions(ingest_script, files, tmp_path):
    found = ingest_script.discover_files([tmp_path], recursive=False)

    assert [p.name for p in found] == ["a.txt", "b.md"]


@pytest.mark.asyncio
@pytest.mark.parametrize("await_indexing", [True, False])
async def test_failed_upsert_counted_once(ingest_script, storage, index, files, await_indexing):
    index.fail_upsert = True
    pipeline = IngestPipeline(
        storage, index, indexing=IndexingTasks(), await_indexing=await_indexing
    )

    stats = await ingest_script.ingest_files(
        files[:1], ingest_script.ProgressReporter(), pipeline=pipeline
    )

    assert stats["files_uploaded"] == 1
    assert stats["files_degraded"] == 1


@pytest.mark.asyncio
async def test_stats_for_mixed_files(ingest_script, storage, index, files):
    pipeline = IngestPipeline(storage, index, indexing=IndexingTasks(), await_indexing=False)

    stats = await ingest_script.ingest_files(
        files, ingest_script.ProgressReporter(), pipeline=pipeline
    )

    assert stats == {
        "files_uploaded": 2,
        "files_failed": 1,
        "files_degraded": 0,
        "chunks_created": 2,
    }
    assert len(index.records) == 2
