"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Plain-text extraction from uploads
- Document chunking with overlap
- Ingestion into object storage and the vector index
- Scored retrieval and answer generation
- The document catalog (list, read, delete)
"""
