"""Records and the abstract contract shared by vector index backends."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

Filters = Mapping[str, Any]


@dataclass(slots=True)
class VectorRecord:
    id: str
    vector: List[float]
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class VectorMatch:
    """A search hit. Higher ``score`` means more similar."""

    id: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)


class VectorIndex(ABC):
    """Store vectors with metadata and search them by similarity."""

    backend_name: str = "unknown"
    collection_name: str = "unknown"

    @abstractmethod
    def upsert(self, records: Sequence[VectorRecord]) -> None:
        """Insert or replace *records* keyed by id."""

    @abstractmethod
    def query(
        self,
        vector: Sequence[float],
        *,
        filters: Optional[Filters] = None,
        top_k: int = 5,
    ) -> List[VectorMatch]:
        """Return up to *top_k* matches whose metadata equals every filter value."""

    @abstractmethod
    def delete(self, *, filters: Filters) -> int:
        """Remove every record matching *filters* and return how many went."""

    @abstractmethod
    def count(self) -> int:
        """Number of stored records."""


def matches_filters(metadata: Mapping[str, Any], filters: Optional[Filters]) -> bool:
    if not filters:
        return True
    return all(metadata.get(key) == value for key, value in filters.items())


__all__ = ["Filters", "VectorIndex", "VectorMatch", "VectorRecord", "matches_filters"]
