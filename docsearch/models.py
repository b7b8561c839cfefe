"""Data types passed between the pipelines and the HTTP layer."""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from docsearch import config


@dataclass
class Document:
    """An uploaded file as seen by the catalog."""

    id: str
    file_name: str
    file_type: str
    file_size: int
    upload_date: str
    file_path: str
    file_url: str
    total_chunks: int = 0
    full_text: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "file_name": self.file_name,
            "file_type": self.file_type,
            "file_size": self.file_size,
            "upload_date": self.upload_date,
            "file_path": self.file_path,
            "file_url": self.file_url,
        }
        if self.full_text is not None:
            data["total_chunks"] = self.total_chunks
            data["fullText"] = self.full_text
        return data


@dataclass
class ChunkRecord:
    """One chunk as submitted to the vector index.

    The index embeds ``text``; every other field is stored as metadata.
    """

    document_id: str
    chunk_index: int
    text: str
    persona: str
    document: str
    file_name: str
    file_type: str
    file_size: int
    upload_date: str
    file_url: str

    @property
    def id(self) -> str:
        return f"{self.document_id}-{self.chunk_index}"

    def to_record(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "text": self.text,
            "chunk_text": self.text,
            "persona": self.persona,
            "document": self.document,
            "document_id": self.document_id,
            "chunk_index": self.chunk_index,
            "file_name": self.file_name,
            "file_type": self.file_type,
            "file_size": self.file_size,
            "upload_date": self.upload_date,
            "file_url": self.file_url,
        }


@dataclass
class SearchHit:
    """A candidate chunk returned by a similarity search."""

    id: str
    score: float
    chunk_text: str
    document: str
    persona: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "score": self.score,
            "chunk_text": self.chunk_text,
            "document": self.document,
            "persona": self.persona,
        }


@dataclass
class QueryResult:
    answer: str
    sources: List[SearchHit]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answer": self.answer,
            "sources": [hit.to_dict() for hit in self.sources],
        }


@dataclass
class IngestionResult:
    """Outcome of a single upload.

    ``indexing`` is the background upsert task when one was dispatched;
    ``degraded`` means the file is stored but has no (or failed) embeddings.
    """

    document_id: str
    upload_date: str
    storage_path: str
    public_url: str
    chunk_count: int
    degraded: bool = False
    indexing: Optional[asyncio.Task] = field(default=None, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "documentID": self.document_id,
            "uploadDate": self.upload_date,
            "filePath": self.storage_path,
            "fileUrl": self.public_url,
            "chunks": self.chunk_count,
            "degraded": self.degraded,
        }


@dataclass
class DeleteOutcome:
    name: str
    file_deleted: bool
    embeddings_deleted: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "fileDeleted": self.file_deleted,
            "embeddingsDeleted": self.embeddings_deleted,
        }


class SearchRequest(BaseModel):
    """Body of ``POST /search``."""

    query: str = Field(..., description="Natural-language question")
    score: float = Field(
        default=config.DEFAULT_MIN_SCORE,
        description="Minimum similarity score a hit needs to be used as context",
    )
