"""In-memory vector index for development and tests."""
from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np

from .base import Filters, VectorIndex, VectorMatch, VectorRecord, matches_filters
from .errors import VectorStoreUnavailableError

LOGGER = logging.getLogger(__name__)


class InMemoryVectorIndex(VectorIndex):
    """Brute-force cosine similarity over vectors held in a dict."""

    backend_name = "mock"

    def __init__(self, collection_name: str = "askdocs_chunks") -> None:
        self.collection_name = collection_name
        self._records: Dict[str, VectorRecord] = {}
        self._lock = threading.Lock()

    def upsert(self, records: Sequence[VectorRecord]) -> None:
        with self._lock:
            for record in records:
                self._records[record.id] = VectorRecord(
                    id=record.id,
                    vector=[float(value) for value in record.vector],
                    metadata=dict(record.metadata),
                )

    def query(
        self,
        vector: Sequence[float],
        *,
        filters: Optional[Filters] = None,
        top_k: int = 5,
    ) -> List[VectorMatch]:
        if top_k <= 0:
            return []

        with self._lock:
            candidates = [record for record in self._records.values() if matches_filters(record.metadata, filters)]
        if not candidates:
            return []

        mismatched = {len(record.vector) for record in candidates} - {len(vector)}
        if mismatched:
            raise VectorStoreUnavailableError(
                f"Query vector has {len(vector)} dimensions but the index holds "
                f"{sorted(mismatched)}; re-upload documents after changing the embedding backend"
            )

        query_vector = np.asarray(vector, dtype=float)
        matrix = np.asarray([record.vector for record in candidates], dtype=float)

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query_vector)
        dots = matrix @ query_vector
        scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms != 0)

        order = np.argsort(-scores, kind="stable")[:top_k]
        return [
            VectorMatch(id=candidates[index].id, score=float(scores[index]), metadata=dict(candidates[index].metadata))
            for index in order
        ]

    def delete(self, *, filters: Filters) -> int:
        with self._lock:
            doomed = [key for key, record in self._records.items() if matches_filters(record.metadata, filters)]
            for key in doomed:
                del self._records[key]
        return len(doomed)

    def count(self) -> int:
        with self._lock:
            return len(self._records)


class PersistentInMemoryVectorIndex(InMemoryVectorIndex):
    """In-memory index that mirrors its state to a JSON file."""

    def __init__(self, persist_dir: Path, collection_name: str = "askdocs_chunks") -> None:
        super().__init__(collection_name)
        self.persist_dir = Path(persist_dir)
        self.persist_dir.mkdir(parents=True, exist_ok=True)
        self._data_path = self.persist_dir / f"{collection_name}.json"
        self._load()

    def upsert(self, records: Sequence[VectorRecord]) -> None:
        super().upsert(records)
        self._save()

    def delete(self, *, filters: Filters) -> int:
        removed = super().delete(filters=filters)
        if removed:
            self._save()
        return removed

    def _load(self) -> None:
        if not self._data_path.exists():
            return
        try:
            payload = json.loads(self._data_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            LOGGER.warning("Failed to load vector index from %s", self._data_path)
            return

        for record in payload:
            self._records[str(record["id"])] = VectorRecord(
                id=str(record["id"]),
                vector=[float(value) for value in record.get("vector", [])],
                metadata=dict(record.get("metadata", {})),
            )

    def _save(self) -> None:
        # Snapshot, write and rename under one lock: concurrent uploads share the tmp file.
        with self._lock:
            payload = [
                {"id": record.id, "vector": record.vector, "metadata": record.metadata}
                for record in self._records.values()
            ]
            tmp_path = self._data_path.with_suffix(".tmp")
            try:
                tmp_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
                tmp_path.replace(self._data_path)
            except OSError as exc:
                raise VectorStoreUnavailableError(
                    f"Failed to persist vector index to {self._data_path}", cause=exc
                ) from exc


__all__ = ["InMemoryVectorIndex", "PersistentInMemoryVectorIndex"]
