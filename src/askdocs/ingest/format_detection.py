"""Work out which extractor an upload needs."""
from __future__ import annotations

import mimetypes
from enum import Enum
from pathlib import PurePath
from typing import Optional


class UnsupportedDocumentError(ValueError):
    """Raised when an upload is not plain text, PDF or DOCX."""


class DocumentFormat(str, Enum):
    PDF = "pdf"
    DOCX = "docx"
    TXT = "txt"


_FORMAT_BY_MIME = {
    "application/pdf": DocumentFormat.PDF,
    "application/x-pdf": DocumentFormat.PDF,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": DocumentFormat.DOCX,
    "text/plain": DocumentFormat.TXT,
    "text/markdown": DocumentFormat.TXT,
}

# DOCX is a zip container; an arbitrary zip only reaches the DOCX reader when
# nothing else identifies the upload, and fails there with an ExtractionError.
_SIGNATURES = (
    (b"%PDF-", DocumentFormat.PDF),
    (b"PK\x03\x04", DocumentFormat.DOCX),
)


def _from_suffix(file_name: str) -> Optional[DocumentFormat]:
    suffix = PurePath(file_name).suffix.lower().lstrip(".")
    try:
        return DocumentFormat(suffix)
    except ValueError:
        return None


def _from_mime(mime_type: Optional[str]) -> Optional[DocumentFormat]:
    if not mime_type:
        return None
    return _FORMAT_BY_MIME.get(mime_type.partition(";")[0].strip().lower())


def _from_content(head: bytes) -> Optional[DocumentFormat]:
    for signature, document_format in _SIGNATURES:
        if head.startswith(signature):
            return document_format
    return None


def detect_format(file_name: str, mime_type: Optional[str] = None, head: bytes = b"") -> DocumentFormat:
    """Return the format of an upload.

    The file extension wins when it names a supported format, as users expect
    ``notes.txt`` to be read as text whatever the browser reports. Otherwise the
    declared MIME type, the leading bytes of the file and finally a guess from
    the file name are tried in that order.
    """

    detected = (
        _from_suffix(file_name)
        or _from_mime(mime_type)
        or _from_content(head)
        or _from_mime(mimetypes.guess_type(file_name)[0])
    )
    if detected is None:
        suffix = PurePath(file_name).suffix.lower().lstrip(".")
        raise UnsupportedDocumentError(f"Unsupported file type: {suffix or 'unknown'}")
    return detected
