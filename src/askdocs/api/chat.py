"""Question answering and semantic search over a session's documents."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from askdocs.api.errors import HANDLED_ERRORS, to_http_exception
from askdocs.prompting import RetrievedChunk
from askdocs.services.rag import DocumentQAService, SearchHit, get_service

router = APIRouter(prefix="/sessions", tags=["chat"])

NO_RESULTS_MESSAGE = "No relevant content found in your documents."


class ChatRequest(BaseModel):
    """Request body accepted by the chat endpoint."""

    message: str = Field(..., min_length=1, description="Question to ask about the uploaded documents.")
    document_id: Optional[int] = Field(None, description="Restrict retrieval to a single document.")
    top_k: Optional[int] = Field(None, ge=1, le=20, description="How many chunks should be considered.")


class ChatSource(BaseModel):
    chunk_id: Optional[int] = None
    document_id: Optional[int] = None
    document: str
    score: float
    content: str


class ChatResponse(BaseModel):
    reply: str
    sources: list[ChatSource]
    used_fallback: bool


class SearchRequest(BaseModel):
    query: str = Field(..., description="Text to search for.")
    top_k: int = Field(5, ge=1, le=50, description="Number of results to return.")
    document_id: Optional[int] = None


class SearchResultItem(BaseModel):
    chunk_id: int
    content: str
    score: float
    relevance_score: float
    document: dict[str, object]


class SearchResponse(BaseModel):
    results: list[SearchResultItem]
    total_found: int
    message: Optional[str] = None


def _serialise_sources(chunks: list[RetrievedChunk]) -> list[ChatSource]:
    return [
        ChatSource(
            chunk_id=chunk.chunk_id,
            document_id=chunk.document_id,
            document=chunk.document_label,
            score=chunk.score,
            content=chunk.text,
        )
        for chunk in chunks
    ]


def _serialise_hit(hit: SearchHit) -> SearchResultItem:
    return SearchResultItem(
        chunk_id=hit.chunk_id,
        content=hit.text,
        score=hit.score,
        relevance_score=hit.relevance_score,
        document=hit.document,
    )


@router.post("/{session_id}/chat", response_model=ChatResponse)
def chat(
    session_id: str,
    request: ChatRequest,
    service: DocumentQAService = Depends(get_service),
) -> ChatResponse:
    """Answer a question using the most relevant chunks of the session's documents."""

    if not request.message.strip():
        raise HTTPException(status_code=422, detail="Message must not be empty")

    try:
        result = service.answer(
            session_id,
            request.message,
            document_id=request.document_id,
            top_k=request.top_k,
        )
    except HANDLED_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return ChatResponse(
        reply=result.answer,
        sources=_serialise_sources(result.sources),
        used_fallback=result.used_fallback,
    )


@router.post("/{session_id}/search", response_model=SearchResponse)
def search(
    session_id: str,
    request: SearchRequest,
    service: DocumentQAService = Depends(get_service),
) -> SearchResponse:
    if not request.query.strip():
        raise HTTPException(status_code=400, detail="Query is required and must be a non-empty string")

    try:
        hits = service.search(
            session_id,
            request.query,
            top_k=request.top_k,
            document_id=request.document_id,
        )
    except HANDLED_ERRORS as exc:
        raise to_http_exception(exc) from exc

    if not hits:
        return SearchResponse(results=[], total_found=0, message=NO_RESULTS_MESSAGE)
    return SearchResponse(results=[_serialise_hit(hit) for hit in hits], total_found=len(hits))
