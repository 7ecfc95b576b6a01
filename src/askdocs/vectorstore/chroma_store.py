"""Chroma-backed vector index."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

import chromadb

from .base import Filters, VectorIndex, VectorMatch, VectorRecord
from .errors import VectorStoreUnavailableError

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from chromadb.api import ClientAPI

LOGGER = logging.getLogger(__name__)

DEFAULT_DISTANCE_METRIC = "cosine"


def _where(filters: Optional[Filters]) -> Optional[Dict[str, Any]]:
    if not filters:
        return None
    clauses = [{key: value} for key, value in filters.items()]
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _clean_metadata(metadata: Dict[str, Any]) -> Dict[str, Any]:
    # Chroma only accepts scalar metadata values.
    return {
        key: value
        for key, value in metadata.items()
        if isinstance(value, (str, int, float, bool))
    }


class ChromaVectorIndex(VectorIndex):
    """Adapter around a persistent Chroma collection using cosine distance."""

    backend_name = "chroma"

    def __init__(
        self,
        persist_dir: str | Path,
        *,
        collection_name: str = "askdocs_chunks",
        client: Optional["ClientAPI"] = None,
    ) -> None:
        self.persist_dir = Path(persist_dir)
        self.collection_name = collection_name
        try:
            if client is None:
                self.persist_dir.mkdir(parents=True, exist_ok=True)
                client = chromadb.PersistentClient(path=str(self.persist_dir))
            self._client = client
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": DEFAULT_DISTANCE_METRIC},
            )
        except Exception as exc:  # pragma: no cover - depends on chromadb runtime
            raise VectorStoreUnavailableError("Failed to initialise Chroma collection", cause=exc) from exc

    def upsert(self, records: Sequence[VectorRecord]) -> None:
        if not records:
            return
        try:
            self._collection.upsert(
                ids=[record.id for record in records],
                embeddings=[[float(value) for value in record.vector] for record in records],
                metadatas=[_clean_metadata(record.metadata) for record in records],
            )
        except Exception as exc:
            raise VectorStoreUnavailableError("Failed to upsert vectors into Chroma", cause=exc) from exc

    def query(
        self,
        vector: Sequence[float],
        *,
        filters: Optional[Filters] = None,
        top_k: int = 5,
    ) -> List[VectorMatch]:
        if top_k <= 0:
            return []
        try:
            available = self._collection.count()
            if available == 0:
                return []
            result = self._collection.query(
                query_embeddings=[[float(value) for value in vector]],
                n_results=min(top_k, available),
                where=_where(filters),
                include=["metadatas", "distances"],
            )
        except Exception as exc:
            raise VectorStoreUnavailableError("Chroma query failed", cause=exc) from exc

        ids = (result.get("ids") or [[]])[0]
        metadatas = (result.get("metadatas") or [[]])[0]
        distances = (result.get("distances") or [[]])[0]

        matches: List[VectorMatch] = []
        for match_id, metadata, distance in zip(ids, metadatas, distances):
            score = 1.0 - float(distance) if distance is not None else 0.0
            matches.append(VectorMatch(id=str(match_id), score=score, metadata=dict(metadata or {})))
        return matches

    def delete(self, *, filters: Filters) -> int:
        try:
            existing = self._collection.get(where=_where(filters), include=[])
            ids = list(existing.get("ids") or [])
            if ids:
                self._collection.delete(ids=ids)
        except Exception as exc:
            raise VectorStoreUnavailableError("Failed to delete vectors from Chroma", cause=exc) from exc
        LOGGER.debug("Deleted %s vectors from %s", len(ids), self.collection_name)
        return len(ids)

    def count(self) -> int:
        try:
            return int(self._collection.count())
        except Exception as exc:
            raise VectorStoreUnavailableError("Chroma count failed", cause=exc) from exc


__all__ = ["ChromaVectorIndex"]
