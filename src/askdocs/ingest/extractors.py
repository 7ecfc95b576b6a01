"""Extractors for supported document types."""
from __future__ import annotations

import io
import logging
from typing import List

from docx import Document as load_docx
from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

LOGGER = logging.getLogger(__name__)


class ExtractionError(ValueError):
    """Raised when a file claims a supported format but cannot be parsed."""


class PDFExtractor:
    """Extract text from PDF documents page by page."""

    def extract(self, data: bytes) -> str:
        try:
            reader = PdfReader(io.BytesIO(data))
        except (PdfReadError, ValueError, OSError) as error:
            raise ExtractionError(f"Could not read PDF: {error}") from error

        pages: List[str] = []
        for index, page in enumerate(reader.pages, start=1):
            try:
                text = page.extract_text() or ""
            except Exception as error:  # pragma: no cover - depends on PDF internals
                LOGGER.warning("Failed to extract text from PDF page %s: %s", index, error)
                text = ""
            if text.strip():
                pages.append(text)
        return "\n\n".join(pages)


class DocxExtractor:
    """Extract text from Microsoft Word documents."""

    def extract(self, data: bytes) -> str:
        try:
            document = load_docx(io.BytesIO(data))
        except Exception as error:
            raise ExtractionError(f"Could not read DOCX: {error}") from error

        paragraphs = [paragraph.text for paragraph in document.paragraphs if paragraph.text]
        return "\n\n".join(paragraphs)


class TextExtractor:
    """Extract text from plaintext documents."""

    def extract(self, data: bytes, encoding: str = "utf-8") -> str:
        if data.startswith(b"\xef\xbb\xbf"):
            data = data[3:]
        return data.decode(encoding, errors="replace")


__all__ = ["DocxExtractor", "ExtractionError", "PDFExtractor", "TextExtractor"]
