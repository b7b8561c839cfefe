"""Document catalog: list, read and delete uploaded documents.

A document lives in two places, the object store (original bytes) and the
vector index (its chunks, whose metadata also describes the document), so
every operation here coordinates both.
"""
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any, Dict, List

import structlog

from docsearch.errors import (
    DocSearchError,
    DocumentNotFound,
    PartialDeleteFailure,
    UpstreamError,
)
from docsearch.models import DeleteOutcome, Document
from docsearch.rag.extractor import file_extension
from docsearch.storage_client import SupabaseStorageClient
from docsearch.vector_client import PineconeIndexClient

logger = structlog.get_logger()

PARAGRAPH_SEPARATOR = "\n\n"


@dataclass
class StoredFile:
    """Raw bytes of a document plus what is needed to serve them."""

    data: bytes
    file_name: str
    file_type: str

    @property
    def is_pdf(self) -> bool:
        return self.file_type == "application/pdf" or self.file_name.lower().endswith(".pdf")


def _chunk_index(record_id: str, metadata: Dict[str, Any]) -> int:
    if "chunk_index" in metadata:
        return int(metadata["chunk_index"])
    return int(record_id.rsplit("-", 1)[-1])


def _document_from_metadata(
    document_id: str, metadata: Dict[str, Any], storage: SupabaseStorageClient
) -> Document:
    file_name = metadata.get("file_name") or "Unknown"
    file_path = metadata.get("document") or (
        f"{document_id}.{file_extension(file_name) or 'bin'}"
    )
    return Document(
        id=document_id,
        file_name=file_name,
        file_type=metadata.get("file_type") or "unknown",
        file_size=int(metadata.get("file_size") or 0),
        upload_date=metadata.get("upload_date") or "",
        file_path=file_path,
        file_url=metadata.get("file_url") or storage.get_public_url(file_path),
    )


class DocumentCatalog:
    """Reads and deletes documents across the object store and the index."""

    def __init__(self, storage: SupabaseStorageClient, index: PineconeIndexClient):
        self.storage = storage
        self.index = index

    async def list_documents(self) -> List[Document]:
        """All stored files, in the store's order."""
        objects = await self.storage.list()

        documents = []
        for obj in objects:
            name = obj["name"]
            metadata = obj.get("metadata") or {}
            documents.append(
                Document(
                    id=PurePath(name).stem,
                    file_name=name,
                    file_type=metadata.get("mimetype") or "application/octet-stream",
                    file_size=int(metadata.get("size") or 0),
                    upload_date=obj.get("created_at") or obj.get("updated_at") or "",
                    file_path=name,
                    file_url=self.storage.get_public_url(name),
                )
            )

        logger.info("documents_listed", count=len(documents))
        return documents

    async def get_document(self, document_id: str) -> Document:
        """Document metadata plus its full text rebuilt from its chunks.

        Chunks are joined in sequence order with a blank line between them;
        the overlap between neighbouring chunks is kept.

        Raises:
            DocumentNotFound: If no chunk belongs to exactly this ID
        """
        ids = await self.index.list_ids(prefix=f"{document_id}-")
        fetched = await self.index.fetch(ids)

        # IDs contain hyphens, so the prefix also matches longer IDs
        records = {
            record_id: metadata
            for record_id, metadata in fetched.items()
            if metadata.get("document_id") == document_id
        }

        if not records:
            raise DocumentNotFound(
                f"Document not found: {document_id}", {"document_id": document_id}
            )

        ordered = sorted(records.items(), key=lambda item: _chunk_index(*item))
        first_metadata = ordered[0][1]

        document = _document_from_metadata(document_id, first_metadata, self.storage)
        document.total_chunks = len(ordered)
        document.full_text = PARAGRAPH_SEPARATOR.join(
            metadata.get("chunk_text") or metadata.get("text") or ""
            for _, metadata in ordered
        )

        logger.info("document_loaded", document_id=document_id, chunk_count=len(ordered))
        return document

    async def get_file(self, document_id: str) -> StoredFile:
        """Download the original bytes of a document.

        The storage path comes from the first chunk's metadata. Metadata can
        outlive the blob, in which case the store's ``FileNotFound`` is raised.

        Raises:
            DocumentNotFound: If the index holds no metadata for the ID
            FileNotFound: If the blob is missing from the object store
            UpstreamError: If the stored blob is empty
        """
        first_id = f"{document_id}-0"
        records = await self.index.fetch([first_id])
        if records.get(first_id, {}).get("document_id") != document_id:
            raise DocumentNotFound(
                f"Document not found: {document_id}", {"document_id": document_id}
            )

        document = _document_from_metadata(document_id, records[first_id], self.storage)
        data = await self.storage.download(document.file_path)

        if not data:
            logger.error("stored_file_empty", document_id=document_id, path=document.file_path)
            raise UpstreamError("File is empty", {"path": document.file_path})

        file_type = document.file_type
        if file_type == "unknown":
            file_type = "application/octet-stream"

        return StoredFile(data=data, file_name=document.file_name, file_type=file_type)

    async def delete_document(self, name: str) -> DeleteOutcome:
        """Remove a stored file and every chunk pointing at it.

        Both removals are attempted even when the first one fails.

        Raises:
            PartialDeleteFailure: If exactly one removal failed
            UpstreamError: If both failed
        """
        file_error = index_error = None
        file_deleted = False

        try:
            removed = await self.storage.remove([name])
            file_deleted = name in removed
        except DocSearchError as e:
            file_error = e
            logger.error("storage_delete_failed", name=name, error=e.message)

        try:
            await self.index.delete_by_filter("document", name)
        except DocSearchError as e:
            index_error = e
            logger.error("vector_delete_failed", name=name, error=e.message)

        if file_error and index_error:
            raise UpstreamError(
                f"Could not delete '{name}': storage: {file_error.message}; "
                f"index: {index_error.message}",
                {"fileDeleted": False, "embeddingsDeleted": False},
            )

        if file_error or index_error:
            failed = "storage" if file_error else "vector index"
            cause = file_error or index_error
            raise PartialDeleteFailure(
                f"Partially deleted '{name}': {failed} removal failed: {cause.message}",
                {
                    "fileDeleted": file_deleted,
                    "embeddingsDeleted": index_error is None,
                },
            )

        logger.info("document_deleted", name=name, file_deleted=file_deleted)
        return DeleteOutcome(name=name, file_deleted=file_deleted, embeddings_deleted=True)
