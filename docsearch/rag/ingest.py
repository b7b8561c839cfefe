"""Ingest pipeline for uploaded documents.

Orchestrates:
- Text extraction
- Object storage of the original bytes
- Text chunking
- Vector index upsert (in the background by default)
"""
import random
import uuid
from datetime import datetime, timezone
from typing import List, Optional

import structlog

from docsearch import config
from docsearch.models import ChunkRecord, IngestionResult
from docsearch.rag.background import IndexingTasks
from docsearch.rag.chunker import TextChunker, get_chunker
from docsearch.rag.extractor import TextExtractor, file_extension, get_extractor
from docsearch.storage_client import SupabaseStorageClient
from docsearch.vector_client import PineconeIndexClient

logger = structlog.get_logger()

PERSONAS = ("developer", "business owner", "agency")


class PersonaAssigner:
    """Picks the persona tag for each chunk.

    Round-robin over ``PERSONAS`` by chunk index unless a random source is
    given, in which case each pick is ``rng.choice``.
    """

    def __init__(self, rng: Optional[random.Random] = None, personas=PERSONAS):
        self.rng = rng
        self.personas = tuple(personas)

    def assign(self, chunk_index: int) -> str:
        if self.rng is not None:
            return self.rng.choice(self.personas)
        return self.personas[chunk_index % len(self.personas)]


def storage_path_for(document_id: str, file_name: str) -> str:
    """Storage path of a document: ``{id}.{extension or "bin"}``."""
    return f"{document_id}.{file_extension(file_name) or 'bin'}"


class IngestPipeline:
    """Pipeline for ingesting one uploaded file into storage and the index."""

    def __init__(
        self,
        storage: SupabaseStorageClient,
        index: PineconeIndexClient,
        indexing: Optional[IndexingTasks] = None,
        extractor: Optional[TextExtractor] = None,
        chunker: Optional[TextChunker] = None,
        personas: Optional[PersonaAssigner] = None,
        await_indexing: Optional[bool] = None,
        id_factory=None,
    ):
        """Initialize the ingest pipeline.

        Args:
            storage: Object store client
            index: Vector index client
            indexing: Tracker for background upserts
            extractor: Text extractor (default: shared instance)
            chunker: Text chunker (default: shared instance)
            personas: Persona assignment for chunk records
            await_indexing: Wait for the upsert before returning (default from config)
            id_factory: Callable returning new document IDs (default: uuid4)
        """
        self.storage = storage
        self.index = index
        self.indexing = indexing or IndexingTasks()
        self.extractor = extractor or get_extractor()
        self.chunker = chunker or get_chunker()
        self.personas = personas or PersonaAssigner()
        self.await_indexing = (
            config.AWAIT_INDEXING if await_indexing is None else await_indexing
        )
        self.id_factory = id_factory or (lambda: str(uuid.uuid4()))

    def build_records(
        self,
        text: str,
        document_id: str,
        storage_path: str,
        file_name: str,
        file_type: str,
        file_size: int,
        upload_date: str,
        file_url: str,
    ) -> List[ChunkRecord]:
        """Chunk ``text`` and wrap each chunk as an index record."""
        return [
            ChunkRecord(
                document_id=document_id,
                chunk_index=chunk.chunk_index,
                text=chunk.content,
                persona=self.personas.assign(chunk.chunk_index),
                document=storage_path,
                file_name=file_name,
                file_type=file_type,
                file_size=file_size,
                upload_date=upload_date,
                file_url=file_url,
            )
            for chunk in self.chunker.chunk_text(text)
        ]

    async def ingest(
        self, data: bytes, file_name: str, content_type: Optional[str] = None
    ) -> IngestionResult:
        """Ingest a single uploaded file.

        Extraction errors happen before anything is written. Once the file is
        stored the upload counts as a success; if its chunks cannot be
        indexed the result is flagged ``degraded`` instead.

        Args:
            data: Raw file bytes
            file_name: Original file name
            content_type: Declared MIME type

        Returns:
            IngestionResult for the new document

        Raises:
            UnsupportedFileType, UnreadableFile, EmptyContent: On extraction
            StorageConflict: If the generated storage path already exists
            UpstreamError, UpstreamTimeout: If the storage write fails
        """
        content_type = content_type or "application/octet-stream"

        logger.info("ingesting_file", file_name=file_name, byte_size=len(data))

        text = self.extractor.extract(data, file_name)

        document_id = self.id_factory()
        upload_date = datetime.now(timezone.utc).isoformat()
        storage_path = storage_path_for(document_id, file_name)

        await self.storage.upload(storage_path, data, content_type, upsert=False)
        public_url = self.storage.get_public_url(storage_path)

        result = IngestionResult(
            document_id=document_id,
            upload_date=upload_date,
            storage_path=storage_path,
            public_url=public_url,
            chunk_count=0,
        )

        try:
            records = self.build_records(
                text,
                document_id=document_id,
                storage_path=storage_path,
                file_name=file_name,
                file_type=content_type,
                file_size=len(data),
                upload_date=upload_date,
                file_url=public_url,
            )
            result.chunk_count = len(records)
            result.indexing = self.indexing.dispatch(
                self.index.upsert_records([r.to_record() for r in records]),
                document_id=document_id,
            )
        except Exception as e:
            logger.error(
                "document_stored_without_embeddings",
                document_id=document_id,
                storage_path=storage_path,
                error=str(e),
                error_type=type(e).__name__,
            )
            result.chunk_count = 0
            result.degraded = True
            return result

        if self.await_indexing:
            try:
                await result.indexing
            except Exception:
                # Already logged by the indexing tracker
                result.degraded = True

        logger.info(
            "file_ingested",
            document_id=document_id,
            storage_path=storage_path,
            chunks_created=result.chunk_count,
            degraded=result.degraded,
        )

        return result
