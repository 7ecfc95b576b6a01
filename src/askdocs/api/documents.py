"""Upload, list, delete and web-reference endpoints for session documents."""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from askdocs.api.errors import HANDLED_ERRORS, to_http_exception
from askdocs.documents import DocumentRecord
from askdocs.services.rag import DocumentQAService, IngestResult, get_service

router = APIRouter(prefix="/sessions", tags=["documents"])


class DocumentSummary(BaseModel):
    id: int
    title: str
    file_name: str
    file_type: str
    language: Optional[str] = None
    created_at: str
    chunk_count: int


class UploadResponse(BaseModel):
    """Response body returned once an upload has been processed."""

    message: str
    document: DocumentSummary
    chunk_count: int
    embedded_count: int
    embedding_error: Optional[str] = None
    content_preview: str
    duration_seconds: float


class DocumentListResponse(BaseModel):
    documents: list[DocumentSummary]


class DeleteResponse(BaseModel):
    message: str
    document_id: int
    chunks_deleted: int
    embeddings_deleted: Optional[bool] = None


class ReferencesRequest(BaseModel):
    """Optional explicit query and result limit for the reference search."""

    query: Optional[str] = Field(None, description="Search query; derived from the document when omitted.")
    limit: Any = Field(None, description="Number of references to return, clamped to 1-8.")


class ReferenceItem(BaseModel):
    title: str
    url: str
    snippet: str
    source: Optional[str] = None
    fetched_at: str
    score: Optional[float] = None


class ReferencesResponse(BaseModel):
    document_id: int
    query_used: str
    query_summary: str
    summary_used: bool
    references: list[ReferenceItem]


def _summarise(document: DocumentRecord) -> DocumentSummary:
    return DocumentSummary(
        id=document.id,
        title=document.title,
        file_name=document.file_name,
        file_type=document.file_type,
        language=document.language,
        created_at=document.created_at,
        chunk_count=document.chunk_count,
    )


def _upload_response(result: IngestResult) -> UploadResponse:
    message = "File processed successfully"
    if result.embedding_error:
        message = "File stored but embedding failed"
    return UploadResponse(
        message=message,
        document=_summarise(result.document),
        chunk_count=result.chunk_count,
        embedded_count=result.embedded_count,
        embedding_error=result.embedding_error,
        content_preview=result.content_preview,
        duration_seconds=result.duration_seconds,
    )


@router.post("/{session_id}/documents", response_model=UploadResponse)
async def upload_document(
    session_id: str,
    file: UploadFile = File(...),
    service: DocumentQAService = Depends(get_service),
) -> UploadResponse:
    """Extract, chunk and index a single uploaded file."""

    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="No file uploaded")

    try:
        result = await run_in_threadpool(
            service.ingest,
            session_id,
            file.filename or "",
            data,
            file.content_type,
        )
    except HANDLED_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return _upload_response(result)


@router.get("/{session_id}/documents", response_model=DocumentListResponse)
def list_documents(
    session_id: str,
    service: DocumentQAService = Depends(get_service),
) -> DocumentListResponse:
    return DocumentListResponse(documents=[_summarise(doc) for doc in service.list_documents(session_id)])


@router.delete("/{session_id}/documents/{document_id}", response_model=DeleteResponse)
def delete_document(
    session_id: str,
    document_id: int,
    service: DocumentQAService = Depends(get_service),
) -> DeleteResponse:
    try:
        result = service.delete_document(session_id, document_id)
    except HANDLED_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return DeleteResponse(
        message="Document deleted",
        document_id=result.document_id,
        chunks_deleted=result.chunks_deleted,
        embeddings_deleted=result.embeddings_deleted,
    )


@router.post("/{session_id}/documents/{document_id}/references", response_model=ReferencesResponse)
def find_document_references(
    session_id: str,
    document_id: int,
    request: Optional[ReferencesRequest] = None,
    service: DocumentQAService = Depends(get_service),
) -> ReferencesResponse:
    """Search the web for pages related to the document."""

    request = request or ReferencesRequest()
    try:
        result = service.find_references(session_id, document_id, request.query, request.limit)
    except HANDLED_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return ReferencesResponse(
        document_id=document_id,
        query_used=result.query_used,
        query_summary=result.query_summary,
        summary_used=result.summary_used,
        references=[
            ReferenceItem(
                title=item.title,
                url=item.url,
                snippet=item.snippet,
                source=item.source,
                fetched_at=item.fetched_at,
                score=item.score,
            )
            for item in result.references
        ],
    )
