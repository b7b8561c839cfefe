"""Plain-text extraction from uploaded files.

Handles:
- Plain text and markdown (UTF-8 decode)
- Word documents (.docx) via python-docx, formatting discarded
"""
import io
import zipfile
from pathlib import PurePath
from typing import Callable, Dict

import structlog
from docx import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError

from docsearch.errors import EmptyContent, UnreadableFile, UnsupportedFileType

logger = structlog.get_logger()


def file_extension(file_name: str) -> str:
    """Lower-cased extension without the dot, or "" when there is none."""
    return PurePath(file_name).suffix.lower().lstrip(".")


class TextExtractor:
    """Turns raw upload bytes into plain text based on the file extension."""

    def __init__(self):
        self._readers: Dict[str, Callable[[bytes], str]] = {
            "txt": self._read_plain,
            "md": self._read_plain,
            "docx": self._read_docx,
        }

    @property
    def supported_extensions(self) -> list[str]:
        return sorted(self._readers)

    def extract(self, data: bytes, file_name: str) -> str:
        """Extract plain text from a file.

        Args:
            data: Raw file bytes
            file_name: Declared file name, used for its extension

        Returns:
            Extracted text

        Raises:
            UnsupportedFileType: If the extension has no reader
            UnreadableFile: If a rich document cannot be opened
            EmptyContent: If the extracted text is empty or whitespace
        """
        extension = file_extension(file_name)
        reader = self._readers.get(extension)

        if reader is None:
            supported = ", ".join(f".{ext}" for ext in self.supported_extensions)
            raise UnsupportedFileType(
                f"Unsupported file type '{file_name}'. Please upload {supported} files.",
                {"file_name": file_name},
            )

        text = reader(data)

        if not text.strip():
            raise EmptyContent(
                f"Could not extract text from file '{file_name}'",
                {"file_name": file_name},
            )

        logger.info(
            "text_extracted",
            file_name=file_name,
            extension=extension,
            byte_size=len(data),
            text_length=len(text),
        )

        return text

    def _read_plain(self, data: bytes) -> str:
        return data.decode("utf-8", errors="replace")

    def _read_docx(self, data: bytes) -> str:
        try:
            doc = DocxDocument(io.BytesIO(data))
        except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as e:
            logger.warning("docx_open_failed", error=str(e), error_type=type(e).__name__)
            raise UnreadableFile(f"Could not read Word document: {e}") from e

        lines = [paragraph.text for paragraph in doc.paragraphs]

        # Table text follows the body paragraphs, one cell per line
        for table in doc.tables:
            for row in table.rows:
                for cell in row.cells:
                    if cell.text:
                        lines.append(cell.text)

        return "\n".join(lines)


# Singleton instance for convenience
_extractor_instance = None


def get_extractor() -> TextExtractor:
    """Get a singleton text extractor instance."""
    global _extractor_instance
    if _extractor_instance is None:
        _extractor_instance = TextExtractor()
    return _extractor_instance
