"""Shared fixtures wiring a fully in-memory document service."""
from __future__ import annotations

from pathlib import Path
from typing import List

import pytest
from fastapi.testclient import TestClient

from askdocs.config import Settings, get_settings
from askdocs.documents import DocumentRepository
from askdocs.embeddings import HashEmbeddingModel
from askdocs.llm import MockChatClient
from askdocs.main import app
from askdocs.references import WebReference
from askdocs.services.rag import DocumentQAService, get_service
from askdocs.vectorstore import InMemoryVectorIndex


class FakeSearchClient:
    """Web-search stand-in that records queries and returns canned references."""

    def __init__(self, references: List[WebReference] | None = None) -> None:
        self.calls: list[tuple[str, int]] = []
        self.references = references
        self.error: Exception | None = None

    def search(self, query: str, limit: int) -> List[WebReference]:
        self.calls.append((query, limit))
        if self.error is not None:
            raise self.error
        if self.references is not None:
            return self.references[:limit]
        return [
            WebReference(
                title=f"Result {index}",
                url=f"https://www.example.com/{index}",
                snippet=f"Snippet about {query}",
                source="example.com",
                fetched_at="2024-01-01T00:00:00Z",
            )
            for index in range(limit)
        ]


class FakeResponse:
    """Minimal stand-in for :class:`requests.Response`."""

    def __init__(self, status_code: int = 200, payload: object = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> object:
        return self._payload


class FakeSession:
    """Records POST calls and replays a queued response."""

    def __init__(self, response: FakeResponse | None = None, error: Exception | None = None) -> None:
        self.response = response or FakeResponse()
        self.error = error
        self.calls: list[dict[str, object]] = []

    def post(self, url: str, **kwargs: object) -> FakeResponse:
        self.calls.append({"url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        data_dir=tmp_path / "data",
        chroma_persist_dir=tmp_path / "chroma",
        chunk_size=200,
        chunk_overlap=40,
        min_chunk_size=20,
    )


@pytest.fixture
def chat_client() -> MockChatClient:
    return MockChatClient()


@pytest.fixture
def search_client() -> FakeSearchClient:
    return FakeSearchClient()


@pytest.fixture
def vector_index() -> InMemoryVectorIndex:
    return InMemoryVectorIndex()


@pytest.fixture
def service(
    settings: Settings,
    chat_client: MockChatClient,
    search_client: FakeSearchClient,
    vector_index: InMemoryVectorIndex,
) -> DocumentQAService:
    return DocumentQAService(
        settings=settings,
        repository=DocumentRepository(),
        embedding_model=HashEmbeddingModel(dimension=32),
        vector_index=vector_index,
        chat_client=chat_client,
        search_client=search_client,
    )


@pytest.fixture
def client(service: DocumentQAService, settings: Settings):
    app.dependency_overrides[get_service] = lambda: service
    app.dependency_overrides[get_settings] = lambda: settings
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
