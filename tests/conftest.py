"""Pytest configuration and fixtures: in-memory stand-ins for the hosted services."""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from docsearch.errors import FileNotFound, StorageConflict, UpstreamError


class FakeStorage:
    """Object store keeping blobs in a dict."""

    base_url = "https://storage.test"
    bucket = "rag-search-app"

    def __init__(self):
        self.objects: Dict[str, Dict[str, Any]] = {}
        self.events: List[str] = []
        self.fail_remove = False

    async def upload(self, path, data, content_type="application/octet-stream", upsert=False):
        if path in self.objects and not upsert:
            raise StorageConflict(f"Storage path already exists: {path}")
        self.events.append(f"upload:{path}")
        self.objects[path] = {
            "data": data,
            "content_type": content_type,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }

    async def download(self, path):
        if path not in self.objects:
            raise FileNotFound(f"File not stored: {path}")
        return self.objects[path]["data"]

    def get_public_url(self, path):
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"

    async def list(self, page_size=None):
        return [
            {
                "name": name,
                "id": f"obj-{i}",
                "created_at": obj["created_at"],
                "metadata": {"mimetype": obj["content_type"], "size": len(obj["data"])},
            }
            for i, (name, obj) in enumerate(self.objects.items())
        ]

    async def remove(self, paths):
        if self.fail_remove:
            raise UpstreamError("storage returned HTTP 500: boom", {"service": "storage"})
        removed = [p for p in paths if p in self.objects]
        for path in removed:
            del self.objects[path]
        return removed


class FakeIndex:
    """Vector index keeping records in a dict.

    Search scores come from ``scores`` (by record ID, default 0.8) unless
    ``preset_hits`` is set, in which case those are returned verbatim.
    """

    def __init__(self, events: Optional[List[str]] = None):
        self.records: Dict[str, Dict[str, Any]] = {}
        self.scores: Dict[str, float] = {}
        self.preset_hits: Optional[List[Dict[str, Any]]] = None
        self.search_calls: List[Dict[str, Any]] = []
        self.events = events if events is not None else []
        self.fail_upsert = False
        self.fail_delete = False

    async def upsert_records(self, records):
        if self.fail_upsert:
            raise UpstreamError("vector_index returned HTTP 500: boom", {"service": "vector_index"})
        self.events.append(f"upsert:{len(records)}")
        for record in records:
            self.records[record["_id"]] = dict(record)
        return len(records)

    async def search(self, text, top_k, fields):
        self.search_calls.append({"text": text, "top_k": top_k, "fields": fields})
        if self.preset_hits is not None:
            return list(self.preset_hits)
        hits = [
            {
                "id": record_id,
                "score": self.scores.get(record_id, 0.8),
                "fields": {f: record[f] for f in fields if f in record},
            }
            for record_id, record in self.records.items()
        ]
        hits.sort(key=lambda h: h["score"], reverse=True)
        return hits[:top_k]

    async def delete_by_filter(self, field, value):
        if self.fail_delete:
            raise UpstreamError("vector_index returned HTTP 500: boom", {"service": "vector_index"})
        for record_id in [i for i, r in self.records.items() if r.get(field) == value]:
            del self.records[record_id]

    async def list_ids(self, prefix):
        return [record_id for record_id in self.records if record_id.startswith(prefix)]

    async def fetch(self, ids):
        return {
            record_id: {k: v for k, v in self.records[record_id].items() if k != "_id"}
            for record_id in ids
            if record_id in self.records
        }


class FakeGenerator:
    """Generation client answering "I don't know." without context."""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []

    async def generate(self, query, passages):
        self.calls.append({"query": query, "passages": list(passages)})
        if not passages:
            return "I don't know."
        return f"Answer from {len(passages)} passages."


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def index(storage: FakeStorage) -> FakeIndex:
    # Shares the event log so tests can check call ordering
    return FakeIndex(events=storage.events)


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def notes_text() -> str:
    """600 characters of prose, as in an uploaded notes.txt."""
    sentence = "Refunds are issued within thirty days of purchase. "
    text = (sentence * 12)[:600]
    assert len(text) == 600
    return text
