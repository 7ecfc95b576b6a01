"""Turn uploaded bytes into normalised document text."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .extractors import DocxExtractor, ExtractionError, PDFExtractor, TextExtractor
from .format_detection import DocumentFormat, UnsupportedDocumentError, detect_format
from .language import detect_language
from .normalization import normalize_text

LOGGER = logging.getLogger(__name__)


class DocumentTooLargeError(ValueError):
    """Raised when an upload exceeds the configured size limit."""


@dataclass(slots=True)
class ExtractedDocument:
    text: str
    format: DocumentFormat
    language: Optional[str]


def _format_limit(max_bytes: int) -> str:
    megabytes = max_bytes / (1024 * 1024)
    if megabytes >= 1 and megabytes == int(megabytes):
        return f"{int(megabytes)}MB"
    return f"{max_bytes} bytes"


class DocumentExtractor:
    """Detect the format of an upload and extract its text."""

    def __init__(self, max_bytes: int = 5 * 1024 * 1024) -> None:
        self.max_bytes = max_bytes
        self.pdf_extractor = PDFExtractor()
        self.docx_extractor = DocxExtractor()
        self.text_extractor = TextExtractor()

    def extract(self, data: bytes, file_name: str, mime_type: Optional[str] = None) -> ExtractedDocument:
        if len(data) > self.max_bytes:
            raise DocumentTooLargeError(f"File too large (max {_format_limit(self.max_bytes)})")

        document_format = detect_format(file_name, mime_type, data[:8])
        if document_format is DocumentFormat.PDF:
            raw_text = self.pdf_extractor.extract(data)
        elif document_format is DocumentFormat.DOCX:
            raw_text = self.docx_extractor.extract(data)
        else:
            raw_text = self.text_extractor.extract(data)

        text = normalize_text(raw_text)
        language = detect_language(text)
        LOGGER.info(
            "Extracted %s characters from %s (%s, language=%s)",
            len(text),
            file_name,
            document_format.value,
            language,
        )
        return ExtractedDocument(text=text, format=document_format, language=language)


__all__ = [
    "DocumentExtractor",
    "DocumentFormat",
    "DocumentTooLargeError",
    "ExtractedDocument",
    "ExtractionError",
    "UnsupportedDocumentError",
    "detect_format",
    "detect_language",
    "normalize_text",
]
