"""Tests for the HTTP routes, with fake upstream services."""
import io

import pytest
from werkzeug.datastructures import FileStorage

from docsearch import config
from docsearch.main import create_app
from docsearch.rag.background import IndexingTasks
from docsearch.rag.chunker import TextChunker


@pytest.fixture
def indexing() -> IndexingTasks:
    return IndexingTasks()


@pytest.fixture
def app(storage, index, generator, indexing):
    return create_app(
        storage=storage,
        index=index,
        generator=generator,
        indexing=indexing,
        await_indexing=True,
    )


@pytest.fixture
def client(app):
    return app.test_client()


def upload_file(data: bytes, name: str, content_type: str = "text/plain"):
    return {"file": FileStorage(io.BytesIO(data), filename=name, content_type=content_type)}


async def upload(client, data: bytes, name: str, content_type: str = "text/plain") -> dict:
    response = await client.post("/documents", files=upload_file(data, name, content_type))
    assert response.status_code == 200
    return await response.get_json()


@pytest.mark.asyncio
async def test_upload_notes_scenario(client, storage, index, notes_text):
    body = await upload(client, notes_text.encode(), "notes.txt")

    expected = len(TextChunker().chunk_text(notes_text))
    assert body["success"] is True
    assert body["chunks"] == expected >= 2
    assert body["degraded"] is False
    assert body["filePath"] == f"{body['documentID']}.txt"
    assert body["uploadDate"]
    assert body["fileUrl"].endswith(body["filePath"])
    assert body["filePath"] in storage.objects
    assert len(index.records) == expected


@pytest.mark.asyncio
async def test_upload_without_file(client):
    response = await client.post("/documents", form={"other": "field"})

    assert response.status_code == 400
    body = await response.get_json()
    assert body["kind"] == "MissingParameter"


@pytest.mark.asyncio
async def test_upload_unsupported_type(client, storage):
    response = await client.post(
        "/documents", files=upload_file(b"%PDF-1.7", "scan.pdf", "application/pdf")
    )

    assert response.status_code == 415
    body = await response.get_json()
    assert body["kind"] == "UnsupportedFileType"
    assert storage.objects == {}


@pytest.mark.asyncio
async def test_upload_empty_text(client):
    response = await client.post("/documents", files=upload_file(b"  \n ", "blank.txt"))

    assert response.status_code == 400
    assert (await response.get_json())["kind"] == "EmptyContent"


@pytest.mark.asyncio
async def test_upload_degraded_when_indexing_fails(client, storage, index):
    index.fail_upsert = True

    body = await upload(client, b"stored but not indexed", "doc.txt")

    assert body["success"] is True
    assert body["degraded"] is True
    assert body["filePath"] in storage.objects


@pytest.mark.asyncio
async def test_list_documents(client):
    first = await upload(client, b"first document", "first.txt")
    second = await upload(client, b"second document", "second.txt")

    response = await client.get("/documents")

    assert response.status_code == 200
    documents = (await response.get_json())["documents"]
    assert {d["file_name"] for d in documents} == {first["filePath"], second["filePath"]}
    assert {d["id"] for d in documents} == {first["documentID"], second["documentID"]}
    for document in documents:
        assert document["file_type"] == "text/plain"
        assert document["file_url"]


@pytest.mark.asyncio
async def test_get_document_with_full_text(client):
    uploaded = await upload(client, b"The whole text of the file.", "whole.txt")

    response = await client.get(f"/documents?id={uploaded['documentID']}")

    assert response.status_code == 200
    body = await response.get_json()
    assert body["id"] == uploaded["documentID"]
    assert body["file_name"] == "whole.txt"
    assert body["total_chunks"] == 1
    assert body["fullText"] == "The whole text of the file."
    assert body["file_path"] == uploaded["filePath"]


@pytest.mark.asyncio
async def test_get_unknown_document(client):
    response = await client.get("/documents?id=does-not-exist")

    assert response.status_code == 404
    assert (await response.get_json())["kind"] == "DocumentNotFound"


@pytest.mark.asyncio
async def test_download_file_as_attachment(client):
    uploaded = await upload(client, b"raw bytes here", "raw.txt")

    response = await client.get(f"/documents?id={uploaded['documentID']}&file=true&view=true")

    assert response.status_code == 200
    assert await response.get_data() == b"raw bytes here"
    assert response.headers["Content-Type"].startswith("text/plain")
    assert response.headers["Content-Disposition"] == 'attachment; filename="raw.txt"'
    assert "X-Content-Type-Options" not in response.headers


@pytest.mark.asyncio
async def test_view_pdf_inline(client, storage, index):
    await storage.upload("pdf-1.pdf", b"%PDF-1.7 body", "application/pdf")
    index.records["pdf-1-0"] = {
        "_id": "pdf-1-0",
        "chunk_text": "text",
        "document": "pdf-1.pdf",
        "document_id": "pdf-1",
        "chunk_index": 0,
        "file_name": "report.pdf",
        "file_type": "application/pdf",
    }

    viewed = await client.get("/documents?id=pdf-1&file=true&view=true")
    downloaded = await client.get("/documents?id=pdf-1&file=true")

    assert viewed.headers["Content-Disposition"] == 'inline; filename="report.pdf"'
    assert viewed.headers["X-Content-Type-Options"] == "nosniff"
    assert downloaded.headers["Content-Disposition"] == 'attachment; filename="report.pdf"'


@pytest.mark.asyncio
async def test_download_with_missing_blob(client, storage):
    uploaded = await upload(client, b"will vanish", "vanish.txt")
    del storage.objects[uploaded["filePath"]]

    response = await client.get(f"/documents?id={uploaded['documentID']}&file=true")

    assert response.status_code == 404
    assert (await response.get_json())["kind"] == "FileNotFound"


@pytest.mark.asyncio
async def test_delete_document(client, storage, index):
    uploaded = await upload(client, b"delete me", "delete.txt")

    response = await client.delete(f"/documents?name={uploaded['filePath']}")

    assert response.status_code == 200
    assert await response.get_json() == {
        "success": True,
        "fileDeleted": True,
        "embeddingsDeleted": True,
    }
    assert storage.objects == {}
    assert index.records == {}


@pytest.mark.asyncio
async def test_delete_requires_name(client):
    response = await client.delete("/documents")

    assert response.status_code == 400
    assert (await response.get_json())["kind"] == "MissingParameter"


@pytest.mark.asyncio
async def test_partial_delete_is_reported(client, index):
    uploaded = await upload(client, b"half deleted", "half.txt")
    index.fail_delete = True

    response = await client.delete(f"/documents?name={uploaded['filePath']}")

    assert response.status_code == 502
    body = await response.get_json()
    assert body["kind"] == "PartialDeleteFailure"
    assert body["fileDeleted"] is True
    assert body["embeddingsDeleted"] is False


@pytest.mark.asyncio
async def test_search_scenario_below_threshold(client, index, generator):
    index.preset_hits = [
        {"id": "d-0", "score": 0.4, "fields": {"chunk_text": "Shipping info", "document": "d.txt"}},
    ]

    response = await client.post(
        "/search", json={"query": "What is the refund policy?", "score": 0.9}
    )

    assert response.status_code == 200
    body = await response.get_json()
    assert body["sources"] == []
    assert body["answer"] == "I don't know."
    assert generator.calls[0]["passages"] == []


@pytest.mark.asyncio
async def test_search_returns_used_sources(client):
    await upload(client, b"Refunds are issued within thirty days.", "refunds.txt")

    response = await client.post("/search", json={"query": "refunds?", "score": 0.5})

    body = await response.get_json()
    assert body["answer"] == "Answer from 1 passages."
    assert len(body["sources"]) == 1
    source = body["sources"][0]
    assert source["chunk_text"] == "Refunds are issued within thirty days."
    assert source["score"] == 0.8
    assert set(source) == {"id", "score", "chunk_text", "document", "persona"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [{"query": ""}, {"query": "   "}, {"score": 0.5}, {"query": "q", "score": "high"}, ["query"]],
)
async def test_search_invalid_requests(client, payload):
    response = await client.post("/search", json=payload)

    assert response.status_code == 400
    assert (await response.get_json())["kind"] == "InvalidQuery"


@pytest.mark.asyncio
async def test_search_non_json_body(client):
    response = await client.post("/search", data="not json")

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_health_live(client):
    response = await client.get("/health/live")

    assert response.status_code == 200
    assert await response.get_json() == {"status": "alive"}


@pytest.mark.asyncio
async def test_health_ready_reports_missing_settings(client, monkeypatch):
    monkeypatch.setattr(config, "SUPABASE_URL", "")
    monkeypatch.setattr(config, "PINECONE_API_KEY", "pc-key")

    response = await client.get("/health/ready")

    assert response.status_code == 503
    body = await response.get_json()
    assert "SUPABASE_URL" in body["missing"]
    assert "PINECONE_API_KEY" not in body["missing"]


@pytest.mark.asyncio
async def test_health_ready_when_configured(client, monkeypatch):
    for name in (
        "SUPABASE_URL",
        "SUPABASE_SERVICE_ROLE_KEY",
        "PINECONE_API_KEY",
        "PINECONE_INDEX_HOST",
        "LLM_API_KEY",
    ):
        monkeypatch.setattr(config, name, "set")

    response = await client.get("/health/ready")

    assert response.status_code == 200
    assert (await response.get_json())["status"] == "healthy"


@pytest.mark.asyncio
async def test_unknown_route(client):
    response = await client.get("/nope")

    assert response.status_code == 404
