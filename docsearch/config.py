"""Application configuration with sensible defaults."""
import os

# Object store (Supabase Storage)
SUPABASE_URL = os.getenv("SUPABASE_URL", "").rstrip("/")
SUPABASE_SERVICE_ROLE_KEY = os.getenv(
    "SUPABASE_SERVICE_ROLE_KEY", os.getenv("SUPABASE_ANON_KEY", "")
)
STORAGE_BUCKET = os.getenv("STORAGE_BUCKET", "rag-search-app")
STORAGE_LIST_PAGE_SIZE = int(os.getenv("STORAGE_LIST_PAGE_SIZE", "100"))

# Vector index (Pinecone, integrated embedding)
PINECONE_API_KEY = os.getenv("PINECONE_API_KEY", "")
PINECONE_INDEX_HOST = os.getenv("PINECONE_INDEX_HOST", "").rstrip("/")
PINECONE_NAMESPACE = os.getenv("PINECONE_NAMESPACE", "__default__")
PINECONE_API_VERSION = os.getenv("PINECONE_API_VERSION", "2025-01")
UPSERT_BATCH_SIZE = int(os.getenv("UPSERT_BATCH_SIZE", "96"))  # service max for records

# Generation (any OpenAI-compatible chat completions endpoint)
LLM_BASE_URL = os.getenv("LLM_BASE_URL", "https://api.openai.com/v1").rstrip("/")
LLM_API_KEY = os.getenv("LLM_API_KEY", os.getenv("OPENAI_API_KEY", ""))
CHAT_MODEL = os.getenv("CHAT_MODEL", "gpt-4o-mini")

# RAG parameters (character-based to avoid tokenizer inconsistencies)
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "512"))
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "50"))
SEARCH_TOP_K = int(os.getenv("SEARCH_TOP_K", "50"))
DEFAULT_MIN_SCORE = float(os.getenv("DEFAULT_MIN_SCORE", "0.5"))

# Upstream calls
UPSTREAM_TIMEOUT = float(os.getenv("UPSTREAM_TIMEOUT", "30.0"))

# When true, uploads wait for the vector upsert instead of returning early
AWAIT_INDEXING = os.getenv("AWAIT_INDEXING", "false").lower() in ("1", "true", "yes")

# Request limits
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
MAX_QUERY_LENGTH = int(os.getenv("MAX_QUERY_LENGTH", "2000"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
