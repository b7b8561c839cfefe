"""Main Quart application for document upload, browsing and search."""
import logging

from pydantic import ValidationError
from quart import Quart, Response, jsonify, request
from werkzeug.exceptions import HTTPException
import structlog

from docsearch import config
from docsearch.errors import DocSearchError, InvalidQuery, MissingParameter
from docsearch.llm_client import GenerationClient
from docsearch.models import SearchRequest
from docsearch.rag.background import IndexingTasks
from docsearch.rag.catalog import DocumentCatalog
from docsearch.rag.ingest import IngestPipeline
from docsearch.rag.query import QueryPipeline
from docsearch.storage_client import SupabaseStorageClient
from docsearch.vector_client import PineconeIndexClient

# Configure structured logging
logging.basicConfig(level=config.LOG_LEVEL, format="%(message)s")
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger()


def _missing_settings() -> list[str]:
    required = {
        "SUPABASE_URL": config.SUPABASE_URL,
        "SUPABASE_SERVICE_ROLE_KEY": config.SUPABASE_SERVICE_ROLE_KEY,
        "PINECONE_API_KEY": config.PINECONE_API_KEY,
        "PINECONE_INDEX_HOST": config.PINECONE_INDEX_HOST,
        "LLM_API_KEY": config.LLM_API_KEY,
    }
    return [name for name, value in required.items() if not value]


def _content_disposition(disposition: str, file_name: str) -> str:
    safe_name = file_name.replace('"', "").replace("\r", "").replace("\n", "")
    return f'{disposition}; filename="{safe_name}"'


def create_app(
    storage: SupabaseStorageClient = None,
    index: PineconeIndexClient = None,
    generator: GenerationClient = None,
    indexing: IndexingTasks = None,
    await_indexing: bool = None,
) -> Quart:
    """Build the application around the given service clients.

    Clients default to ones configured from the environment.
    """
    app = Quart(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.MAX_UPLOAD_BYTES

    storage = storage or SupabaseStorageClient()
    index = index or PineconeIndexClient()
    generator = generator or GenerationClient()
    indexing = indexing or IndexingTasks()

    ingest_pipeline = IngestPipeline(
        storage, index, indexing=indexing, await_indexing=await_indexing
    )
    query_pipeline = QueryPipeline(index, generator)
    catalog = DocumentCatalog(storage, index)

    app.extensions["docsearch"] = {
        "indexing": indexing,
        "ingest": ingest_pipeline,
        "query": query_pipeline,
        "catalog": catalog,
    }

    @app.route("/documents", methods=["POST"])
    async def upload_document():
        """Upload a file (multipart field ``file``) and index it.

        Returns JSON:
        {
            "success": true,
            "documentID": "uuid",
            "uploadDate": "iso timestamp",
            "filePath": "uuid.txt",
            "fileUrl": "public url",
            "chunks": 3,
            "degraded": false
        }
        """
        files = await request.files
        upload = files.get("file")

        if upload is None or not upload.filename:
            raise MissingParameter("No file uploaded")

        data = upload.read()
        result = await ingest_pipeline.ingest(data, upload.filename, upload.mimetype or None)

        return jsonify(result.to_dict())

    @app.route("/documents", methods=["GET"])
    async def get_documents():
        """List documents, or fetch one by ``id``.

        Query parameters:
            id: document ID; returns metadata and full text
            file: "true" with ``id`` streams the original file
            view: "true" with ``file`` shows PDFs inline instead of downloading
        """
        document_id = request.args.get("id")
        want_file = request.args.get("file") == "true"
        view = request.args.get("view") == "true"

        if document_id and want_file:
            stored = await catalog.get_file(document_id)
            inline = view and stored.is_pdf

            headers = {
                "Content-Disposition": _content_disposition(
                    "inline" if inline else "attachment", stored.file_name
                ),
                "Content-Length": str(len(stored.data)),
            }
            if inline:
                headers["X-Content-Type-Options"] = "nosniff"

            logger.info(
                "document_file_served",
                document_id=document_id,
                size=len(stored.data),
                inline=inline,
            )
            return Response(stored.data, headers=headers, content_type=stored.file_type)

        if document_id:
            document = await catalog.get_document(document_id)
            return jsonify(document.to_dict())

        documents = await catalog.list_documents()
        return jsonify({"documents": [d.to_dict() for d in documents]})

    @app.route("/documents", methods=["DELETE"])
    async def delete_document():
        """Delete a stored file (``name`` = storage path) and its chunks.

        Returns JSON:
        {
            "success": true,
            "fileDeleted": true,
            "embeddingsDeleted": true
        }
        """
        name = request.args.get("name")
        if not name:
            raise MissingParameter("Document name required")

        outcome = await catalog.delete_document(name)
        return jsonify(outcome.to_dict())

    @app.route("/search", methods=["POST"])
    async def search():
        """Answer a question from the indexed documents.

        Expects JSON body:
        {
            "query": "What is the refund policy?",
            "score": 0.5  // optional minimum similarity score
        }

        Returns JSON:
        {
            "answer": "...",
            "sources": [{"id", "score", "chunk_text", "document", "persona"}, ...]
        }
        """
        data = await request.get_json(silent=True)

        if not isinstance(data, dict):
            raise InvalidQuery("Request body must be a JSON object")

        try:
            body = SearchRequest(**data)
        except ValidationError as e:
            raise InvalidQuery(
                "Invalid search request",
                {"fields": [".".join(map(str, err["loc"])) for err in e.errors()]},
            ) from e

        result = await query_pipeline.answer(body.query, min_score=body.score)
        return jsonify(result.to_dict())

    @app.route("/health/ready")
    async def health_ready():
        """Readiness probe - check that every upstream service is configured."""
        missing = _missing_settings()
        if missing:
            return jsonify({"status": "unhealthy", "missing": missing}), 503
        return jsonify({"status": "healthy", "pending_indexing": indexing.pending}), 200

    @app.route("/health/live")
    async def health_live():
        """Liveness probe - check if app is running."""
        return jsonify({"status": "alive"}), 200

    @app.after_serving
    async def drain_indexing():
        """Let in-flight upserts finish before shutdown."""
        if indexing.pending:
            logger.info("draining_indexing_tasks", pending=indexing.pending)
        await indexing.drain()

    @app.errorhandler(DocSearchError)
    async def handle_docsearch_error(error: DocSearchError):
        """Return the structured error body with its status code."""
        log = logger.error if error.status_code >= 500 else logger.warning
        log("request_failed", kind=error.kind, error=error.message, status=error.status_code)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    async def not_found(error):
        """Handle 404 errors."""
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(413)
    async def too_large(error):
        """Handle uploads over MAX_UPLOAD_BYTES."""
        return jsonify({
            "error": f"File too large (max {config.MAX_UPLOAD_BYTES} bytes)"
        }), 413

    @app.errorhandler(Exception)
    async def internal_error(error):
        """Handle anything unexpected without exposing internals."""
        if isinstance(error, HTTPException):
            return jsonify({"error": error.description}), error.code
        logger.error("internal_server_error", error=str(error), error_type=type(error).__name__)
        return jsonify({"error": "Internal server error"}), 500

    return app


app = create_app()


if __name__ == "__main__":
    # For development - use hypercorn in production
    app.run(host="0.0.0.0", port=5000, debug=True)
