"""Translate domain exceptions into HTTP errors."""
from __future__ import annotations

from typing import Tuple, Type

from fastapi import HTTPException

from askdocs.documents import DocumentNotFoundError
from askdocs.embeddings import EmbeddingError
from askdocs.ingest import DocumentTooLargeError, ExtractionError, UnsupportedDocumentError
from askdocs.llm import LLMGenerationError, LLMNotConfiguredError
from askdocs.references import MissingQueryInputError, WebSearchError, WebSearchNotConfiguredError
from askdocs.vectorstore import VectorStoreUnavailableError

# Checked in order; subclasses must come before their bases.
_STATUS_BY_ERROR: Tuple[Tuple[Tuple[Type[Exception], ...], int], ...] = (
    (
        (
            MissingQueryInputError,
            UnsupportedDocumentError,
            DocumentTooLargeError,
            ExtractionError,
        ),
        400,
    ),
    ((DocumentNotFoundError,), 404),
    ((LLMNotConfiguredError, WebSearchNotConfiguredError), 500),
    ((LLMGenerationError, WebSearchError, EmbeddingError), 502),
    ((VectorStoreUnavailableError,), 503),
)

HANDLED_ERRORS: Tuple[Type[Exception], ...] = tuple(
    error_type for error_types, _ in _STATUS_BY_ERROR for error_type in error_types
)


def to_http_exception(error: Exception) -> HTTPException:
    for error_types, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_types):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


__all__ = ["HANDLED_ERRORS", "to_http_exception"]
