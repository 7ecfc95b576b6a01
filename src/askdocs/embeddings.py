"""Embedding backends turning chunk and query text into vectors."""
from __future__ import annotations

import hashlib
import logging
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List, Optional, Sequence

import numpy as np
import requests
from requests.exceptions import RequestException

from askdocs.telemetry import emit_embeddings_event

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from askdocs.config import Settings

LOGGER = logging.getLogger(__name__)

DEFAULT_DIMENSION = 384
COHERE_DIMENSION = 1024


class EmbeddingError(RuntimeError):
    """Raised when an embedding backend cannot produce vectors."""


class EmbeddingModel(ABC):
    """Produce one fixed-dimension vector per input text."""

    model_name: str = "unknown"

    def embed_documents(self, texts: Sequence[str]) -> List[List[float]]:
        return self._timed(texts, "search_document")

    def embed_query(self, text: str) -> List[float]:
        vectors = self._timed([text], "search_query")
        if not vectors:
            raise EmbeddingError("Embedding backend returned no vector for the query")
        return vectors[0]

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Length of every vector produced by this model."""

    @abstractmethod
    def _embed(self, texts: Sequence[str], input_type: str) -> List[List[float]]:
        ...

    def _timed(self, texts: Sequence[str], input_type: str) -> List[List[float]]:
        if not texts:
            return []
        started = time.perf_counter()
        try:
            embeddings = self._embed(list(texts), input_type)
        except Exception as error:
            emit_embeddings_event(
                model=self.model_name,
                count=len(texts),
                duration_ms=(time.perf_counter() - started) * 1000.0,
                error=error,
            )
            if isinstance(error, EmbeddingError):
                raise
            raise EmbeddingError(f"Embedding backend {self.model_name} failed: {error}") from error

        emit_embeddings_event(
            model=self.model_name,
            count=len(texts),
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return embeddings


class HashEmbeddingModel(EmbeddingModel):
    """Deterministic vectors seeded from the SHA-256 of each text.

    Identical texts always map to identical unit vectors, which is enough for
    development and tests but carries no semantic meaning.
    """

    model_name = "deterministic-hash"

    def __init__(self, dimension: int = DEFAULT_DIMENSION) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be a positive integer")
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    def _embed(self, texts: Sequence[str], input_type: str) -> List[List[float]]:
        del input_type
        return [self._deterministic_embedding(str(text)) for text in texts]

    def _deterministic_embedding(self, text: str) -> List[float]:
        seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:8], "big")
        rng = np.random.default_rng(seed)
        vector = rng.uniform(-1.0, 1.0, self._dimension)
        norm = np.linalg.norm(vector)
        if norm:
            vector = vector / norm
        return vector.tolist()


class SentenceTransformerEmbeddingModel(EmbeddingModel):
    """Wrapper around a local sentence-transformers model."""

    def __init__(self, model_name_or_path: str, *, device: Optional[str] = None) -> None:
        try:
            from sentence_transformers import SentenceTransformer  # type: ignore import-not-found
        except ImportError as error:
            raise EmbeddingError(
                "EMBEDDING_BACKEND=sentence-transformers requires the 'sentence-transformers' package"
            ) from error

        try:
            self._model = SentenceTransformer(model_name_or_path, device=device)
        except Exception as error:  # pragma: no cover - depends on model files
            raise EmbeddingError(f"Failed to load embedding model '{model_name_or_path}': {error}") from error
        self.model_name = model_name_or_path
        self._dimension = int(self._model.get_sentence_embedding_dimension())
        LOGGER.info("Loaded embedding model %s (%s dims)", model_name_or_path, self._dimension)

    @property
    def dimension(self) -> int:
        return self._dimension

    def _embed(self, texts: Sequence[str], input_type: str) -> List[List[float]]:
        del input_type
        embeddings = self._model.encode(
            list(texts),
            convert_to_numpy=True,
            show_progress_bar=False,
            normalize_embeddings=True,
        )
        return embeddings.tolist()


class CohereEmbeddingModel(EmbeddingModel):
    """Call the Cohere ``/embed`` endpoint."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        api_base: str = "https://api.cohere.ai/v1",
        model: str = "embed-english-v3.0",
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_key = api_key
        self._url = f"{api_base.rstrip('/')}/embed"
        self.model_name = model
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def dimension(self) -> int:
        return COHERE_DIMENSION

    def _embed(self, texts: Sequence[str], input_type: str) -> List[List[float]]:
        if not self._api_key:
            raise EmbeddingError("COHERE_API_KEY is not configured")

        payload = {"model": self.model_name, "texts": list(texts), "input_type": input_type}
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = self._session.post(self._url, json=payload, headers=headers, timeout=self._timeout)
        except RequestException as error:
            raise EmbeddingError(f"Cohere embed request failed: {error}") from error

        if not response.ok:
            raise EmbeddingError(f"Cohere embed API error ({response.status_code}): {response.text}")

        embeddings = response.json().get("embeddings") or []
        if len(embeddings) != len(texts):
            raise EmbeddingError(
                f"Cohere returned {len(embeddings)} embeddings for {len(texts)} texts"
            )
        return [[float(value) for value in vector] for vector in embeddings]


def build_embedding_model(settings: "Settings") -> EmbeddingModel:
    backend = settings.embedding_backend
    if backend == "hash":
        return HashEmbeddingModel(settings.embedding_dimension)
    if backend == "sentence-transformers":
        return SentenceTransformerEmbeddingModel(settings.embedding_model)
    if backend == "cohere":
        return CohereEmbeddingModel(
            settings.cohere_api_key,
            api_base=settings.cohere_api_base,
            model=settings.cohere_embed_model,
            timeout=settings.http_timeout,
        )
    raise ValueError(f"Unsupported EMBEDDING_BACKEND: {backend!r}")


__all__ = [
    "CohereEmbeddingModel",
    "EmbeddingError",
    "EmbeddingModel",
    "HashEmbeddingModel",
    "SentenceTransformerEmbeddingModel",
    "build_embedding_model",
]
