"""Text chunking with overlap for the ingestion pipeline.

Implements character-based chunking to avoid tokenizer dependencies.
Consecutive chunks share exactly ``chunk_overlap`` characters, so the
original text is recovered by ``merge_chunks``.
"""
from typing import List
from dataclasses import dataclass
import structlog

from docsearch import config

logger = structlog.get_logger()

# Preferred break points, best first, with how far into the window they must lie
_BOUNDARIES = [
    ([". ", "! ", "? ", ".\n", "!\n", "?\n"], 0.7),
    (["\n\n"], 0.7),
    (["\n"], 0.7),
    ([" "], 0.8),
]


@dataclass
class TextChunk:
    """Represents a chunk of text with position information."""

    content: str
    char_start: int
    char_end: int
    chunk_index: int


class TextChunker:
    """Character-based text chunker with overlap support."""

    def __init__(
        self,
        chunk_size: int = None,
        chunk_overlap: int = None,
    ):
        """Initialize the text chunker.

        Args:
            chunk_size: Maximum size of each chunk in characters (default from config)
            chunk_overlap: Overlap between chunks in characters (default from config)
        """
        self.chunk_size = config.CHUNK_SIZE if chunk_size is None else chunk_size
        self.chunk_overlap = config.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap

        # Validate parameters
        if self.chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {self.chunk_size}")
        if self.chunk_overlap < 0:
            raise ValueError(f"Overlap must not be negative, got {self.chunk_overlap}")
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"Overlap ({self.chunk_overlap}) must be less than "
                f"chunk size ({self.chunk_size})"
            )

    def chunk_text(self, text: str) -> List[TextChunk]:
        """Split text into overlapping chunks.

        Every chunk is at most ``chunk_size`` characters; each chunk after
        the first starts ``chunk_overlap`` characters before the previous
        one ends. The chunk that reaches the end of the text is the last.

        Args:
            text: Text to chunk

        Returns:
            List of TextChunk objects (empty only for empty text)
        """
        if not text:
            return []

        text_length = len(text)
        chunks = []
        start = 0

        while True:
            end = min(start + self.chunk_size, text_length)

            # Try to break at sentence or word boundary (not mid-word)
            if end < text_length:
                end = start + self._adjusted_length(text[start:end])

            chunks.append(
                TextChunk(
                    content=text[start:end],
                    char_start=start,
                    char_end=end,
                    chunk_index=len(chunks),
                )
            )

            if end >= text_length:
                break

            # Move to next chunk with overlap
            start = end - self.chunk_overlap

        logger.debug(
            "text_chunked",
            text_length=text_length,
            chunk_count=len(chunks),
            avg_chunk_size=sum(len(c.content) for c in chunks) // len(chunks),
        )

        return chunks

    def _adjusted_length(self, window: str) -> int:
        """Length to keep of a full window so it ends on a natural boundary.

        A boundary only counts if it lies far enough into the window and the
        kept part is longer than the overlap, so chunking always advances.
        Falls back to the whole window.
        """
        for separators, min_fraction in _BOUNDARIES:
            for separator in separators:
                last_break = window.rfind(separator)
                if last_break > len(window) * min_fraction:
                    keep = last_break + len(separator)
                    if keep > self.chunk_overlap:
                        return keep

        return len(window)


def merge_chunks(chunks: List[TextChunk], overlap: int) -> str:
    """Rebuild the chunked text by dropping each chunk's overlapping prefix."""
    if not chunks:
        return ""
    return chunks[0].content + "".join(c.content[overlap:] for c in chunks[1:])


# Singleton instance for convenience
_chunker_instance = None


def get_chunker() -> TextChunker:
    """Get a singleton text chunker instance.

    Returns:
        TextChunker instance with default config
    """
    global _chunker_instance
    if _chunker_instance is None:
        _chunker_instance = TextChunker()
    return _chunker_instance
