"""Vector index backends and the chunk-level operations built on them."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Sequence

from .base import Filters, VectorIndex, VectorMatch, VectorRecord, matches_filters
from .errors import VectorStoreUnavailableError
from .mock_store import InMemoryVectorIndex, PersistentInMemoryVectorIndex

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from askdocs.config import Settings


UPSERT_BATCH_SIZE = 100
METADATA_TEXT_LIMIT = 1000


def chunk_vector_id(chunk_id: int) -> str:
    return f"chunk_{chunk_id}"


def chunk_metadata(
    *,
    chunk_id: int,
    document_id: int,
    session_id: str,
    text: str,
) -> Dict[str, Any]:
    return {
        "chunk_id": chunk_id,
        "document_id": document_id,
        "session_id": session_id,
        "text": text[:METADATA_TEXT_LIMIT],
        "chunk_length": len(text),
    }


def upsert_in_batches(
    index: VectorIndex,
    records: Sequence[VectorRecord],
    batch_size: int = UPSERT_BATCH_SIZE,
) -> int:
    """Upsert *records* in slices of *batch_size* and return how many were sent."""

    sent = 0
    for offset in range(0, len(records), batch_size):
        batch = records[offset : offset + batch_size]
        index.upsert(batch)
        sent += len(batch)
    return sent


def build_vector_index(settings: "Settings") -> VectorIndex:
    """Return the vector index selected by ``settings.vector_store``."""

    backend = settings.vector_store
    if backend == "mock":
        return InMemoryVectorIndex(settings.collection_name)
    if backend == "file":
        return PersistentInMemoryVectorIndex(settings.chroma_persist_dir, settings.collection_name)
    if backend == "chroma":
        from .chroma_store import ChromaVectorIndex

        return ChromaVectorIndex(settings.chroma_persist_dir, collection_name=settings.collection_name)
    raise ValueError(f"Unsupported VECTOR_STORE backend: {backend!r}")


__all__ = [
    "Filters",
    "InMemoryVectorIndex",
    "METADATA_TEXT_LIMIT",
    "PersistentInMemoryVectorIndex",
    "UPSERT_BATCH_SIZE",
    "VectorIndex",
    "VectorMatch",
    "VectorRecord",
    "VectorStoreUnavailableError",
    "build_vector_index",
    "chunk_metadata",
    "chunk_vector_id",
    "matches_filters",
    "upsert_in_batches",
]
