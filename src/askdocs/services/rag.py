"""Orchestration of upload, question answering, search and web references."""
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from functools import lru_cache, partial
from pathlib import Path
from typing import Any, Dict, List, Optional

from askdocs.chunking import ChunkingConfig, chunk_text
from askdocs.config import Settings, get_settings
from askdocs.documents import ChunkRecord, DocumentRecord, DocumentRepository
from askdocs.embeddings import EmbeddingError, EmbeddingModel, build_embedding_model
from askdocs.ingest import DocumentExtractor
from askdocs.llm import ChatClient, LLMError, build_chat_client
from askdocs.logging_config import audit
from askdocs.prompting import RetrievedChunk, build_grounded_prompt
from askdocs.references import (
    ReferenceResult,
    TavilySearchClient,
    WebSearchClient,
    find_references,
    summarize_document_one_liner,
)
from askdocs.storage import remove_upload, save_upload
from askdocs.telemetry import (
    emit_answer_request,
    emit_answer_result,
    emit_exception,
    emit_ingest_event,
    emit_retrieval_event,
    emit_vectorstore_event,
    traced_duration,
)
from askdocs.vectorstore import (
    VectorIndex,
    VectorMatch,
    VectorRecord,
    VectorStoreUnavailableError,
    build_vector_index,
    chunk_metadata,
    chunk_vector_id,
    upsert_in_batches,
)

LOGGER = logging.getLogger(__name__)

CONTENT_PREVIEW_CHARS = 300
DEFAULT_SEARCH_TOP_K = 5


@dataclass(slots=True)
class IngestResult:
    """Outcome of one upload.

    The document and its chunks are stored before embedding starts, so a
    failure while embedding or indexing leaves them in place and is reported
    through ``embedding_error`` with ``embedded_count`` showing how far it got.
    """

    document: DocumentRecord
    chunk_count: int
    embedded_count: int
    duration_seconds: float
    embedding_error: Optional[str] = None

    @property
    def content_preview(self) -> str:
        return self.document.content[:CONTENT_PREVIEW_CHARS]


@dataclass(slots=True)
class AnswerResult:
    session_id: str
    question: str
    answer: str
    sources: List[RetrievedChunk] = field(default_factory=list)
    used_fallback: bool = False


@dataclass(slots=True)
class SearchHit:
    chunk_id: int
    score: float
    text: str
    document: Dict[str, Any]

    @property
    def relevance_score(self) -> float:
        return round(self.score, 2)


@dataclass(slots=True)
class DeleteResult:
    document_id: int
    chunks_deleted: int
    embeddings_deleted: Optional[bool]


@dataclass(slots=True)
class _ResolvedMatch:
    match: VectorMatch
    chunk_id: int
    text: str
    document: DocumentRecord


class DocumentQAService:
    """High level orchestration for the document Q&A workflow."""

    def __init__(
        self,
        *,
        settings: Settings,
        repository: DocumentRepository,
        embedding_model: EmbeddingModel,
        vector_index: VectorIndex,
        chat_client: ChatClient,
        search_client: WebSearchClient,
        extractor: Optional[DocumentExtractor] = None,
        chunking: Optional[ChunkingConfig] = None,
    ) -> None:
        self.settings = settings
        self.repository = repository
        self.embedding_model = embedding_model
        self.vector_index = vector_index
        self.chat_client = chat_client
        self.search_client = search_client
        self.extractor = extractor or DocumentExtractor(max_bytes=settings.max_upload_bytes)
        self.chunking = chunking or settings.chunking_config()

    # ------------------------------------------------------------------ ingest
    def ingest(
        self,
        session_id: str,
        file_name: str,
        data: bytes,
        mime_type: Optional[str] = None,
    ) -> IngestResult:
        started = time.perf_counter()
        display_name = Path(file_name or "").name.strip() or "Untitled"
        emit_ingest_event(
            "ingest.file.start",
            session_id=session_id,
            file_name=display_name,
            size_bytes=len(data),
        )

        with traced_duration("ingest.extract", logger=LOGGER, session_id=session_id, file=display_name):
            extracted = self.extractor.extract(data, display_name, mime_type)

        destination = save_upload(self.settings.data_dir, session_id, display_name, data)
        LOGGER.info("Saved upload %s for session %s to %s", display_name, session_id, destination)

        document = self.repository.add_document(
            session_id=session_id,
            title=display_name,
            file_name=display_name,
            file_type=extracted.format.value,
            content=extracted.text,
            language=extracted.language,
            stored_path=str(destination),
        )
        chunks = chunk_text(extracted.text, self.chunking)
        chunk_records = self.repository.add_chunks(document.id, chunks)
        LOGGER.info(
            "Generated %s chunks for %s in session %s", len(chunk_records), display_name, session_id
        )

        embedded_count = 0
        embedding_error: Optional[str] = None
        if chunk_records:
            try:
                embedded_count = self._index_chunks(session_id, chunk_records)
            except (EmbeddingError, VectorStoreUnavailableError) as error:
                embedding_error = str(error)
                emit_exception(
                    module=f"{__name__}.index",
                    error=error,
                    session_id=session_id,
                    suggestion="document and chunks were stored; re-upload to retry indexing",
                )

        duration = time.perf_counter() - started
        emit_ingest_event(
            "ingest.file.complete",
            session_id=session_id,
            file_name=display_name,
            size_bytes=len(data),
            duration_ms=duration * 1000.0,
            language=extracted.language,
            chunks=len(chunk_records),
            embedded=embedded_count,
        )
        audit(
            "ingest",
            session_id=session_id,
            document_id=document.id,
            file_name=display_name,
            chunk_count=len(chunk_records),
            embedded_count=embedded_count,
            embedding_error=embedding_error,
        )
        return IngestResult(
            document=document,
            chunk_count=len(chunk_records),
            embedded_count=embedded_count,
            duration_seconds=duration,
            embedding_error=embedding_error,
        )

    def _index_chunks(self, session_id: str, chunk_records: List[ChunkRecord]) -> int:
        vectors = self.embedding_model.embed_documents([chunk.text for chunk in chunk_records])
        records = [
            VectorRecord(
                id=chunk_vector_id(chunk.id),
                vector=vector,
                metadata=chunk_metadata(
                    chunk_id=chunk.id,
                    document_id=chunk.document_id,
                    session_id=session_id,
                    text=chunk.text,
                ),
            )
            for chunk, vector in zip(chunk_records, vectors)
        ]
        try:
            sent = upsert_in_batches(self.vector_index, records)
        except VectorStoreUnavailableError as error:
            emit_vectorstore_event(
                "vectorstore.upsert",
                backend=self.vector_index.backend_name,
                collection=self.vector_index.collection_name,
                count=len(records),
                error=error,
            )
            raise
        emit_vectorstore_event(
            "vectorstore.upsert",
            backend=self.vector_index.backend_name,
            collection=self.vector_index.collection_name,
            count=sent,
        )
        return sent

    # --------------------------------------------------------------- retrieval
    def _resolve_matches(
        self,
        session_id: str,
        query: str,
        top_k: int,
        document_id: Optional[int],
    ) -> List[_ResolvedMatch]:
        filters: Dict[str, Any] = {"session_id": session_id}
        if document_id is not None:
            filters["document_id"] = document_id

        started = time.perf_counter()
        query_vector = self.embedding_model.embed_query(query)
        matches = self.vector_index.query(query_vector, filters=filters, top_k=top_k)

        chunk_ids = [int(match.metadata["chunk_id"]) for match in matches if "chunk_id" in match.metadata]
        chunks = self.repository.get_chunks(chunk_ids)

        resolved: List[_ResolvedMatch] = []
        for match in matches:
            if "chunk_id" not in match.metadata:
                continue
            chunk_id = int(match.metadata["chunk_id"])
            chunk = chunks.get(chunk_id)
            if chunk is None:
                # Vector outlived its chunk; deletion from the index is best effort.
                continue
            document = self.repository.get_document(session_id, chunk.document_id)
            resolved.append(_ResolvedMatch(match=match, chunk_id=chunk_id, text=chunk.text, document=document))

        emit_retrieval_event(
            session_id=session_id,
            query=query,
            top_k=top_k,
            document_id=document_id,
            hits=[
                {"chunk_id": item.chunk_id, "document_id": item.document.id, "score": round(item.match.score, 4)}
                for item in resolved
            ],
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return resolved

    def retrieve(
        self,
        session_id: str,
        question: str,
        *,
        top_k: Optional[int] = None,
        document_id: Optional[int] = None,
    ) -> List[RetrievedChunk]:
        limit = top_k or self.settings.retrieval_top_k
        return [
            RetrievedChunk(
                text=item.text,
                document_label=item.document.title or item.document.file_name,
                score=item.match.score,
                chunk_id=item.chunk_id,
                document_id=item.document.id,
            )
            for item in self._resolve_matches(session_id, question, limit, document_id)
        ]

    # --------------------------------------------------------------- answering
    def answer(
        self,
        session_id: str,
        question: str,
        *,
        document_id: Optional[int] = None,
        top_k: Optional[int] = None,
    ) -> AnswerResult:
        cleaned = question.strip()
        if not cleaned:
            raise ValueError("Question must not be empty")

        sources = self.retrieve(session_id, cleaned, top_k=top_k, document_id=document_id)
        system_prompt = build_grounded_prompt(sources)
        used_fallback = not sources
        source_ids = [chunk.chunk_id for chunk in sources]
        req_id = uuid.uuid4().hex
        emit_answer_request(
            req_id=req_id,
            session_id=session_id,
            question=cleaned,
            system_prompt=system_prompt,
            sources=source_ids,
            fallback=used_fallback,
            temperature=self.settings.llm_temperature,
            max_tokens=self.settings.llm_max_tokens,
        )
        started = time.perf_counter()
        try:
            reply = self.chat_client.chat(
                cleaned,
                system_prompt=system_prompt,
                max_tokens=self.settings.llm_max_tokens,
                temperature=self.settings.llm_temperature,
            )
        except LLMError as error:
            emit_answer_result(
                req_id=req_id,
                session_id=session_id,
                model=self.chat_client.model_name,
                duration_ms=(time.perf_counter() - started) * 1000.0,
                error=error,
            )
            raise

        emit_answer_result(
            req_id=req_id,
            session_id=session_id,
            model=self.chat_client.model_name,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            answer=reply,
        )
        audit("query", session_id=session_id, question=cleaned, sources=source_ids)
        return AnswerResult(
            session_id=session_id,
            question=cleaned,
            answer=reply,
            sources=sources,
            used_fallback=used_fallback,
        )

    def search(
        self,
        session_id: str,
        query: str,
        *,
        top_k: int = DEFAULT_SEARCH_TOP_K,
        document_id: Optional[int] = None,
    ) -> List[SearchHit]:
        cleaned = query.strip()
        if not cleaned:
            raise ValueError("Query is required and must be a non-empty string")

        hits = [
            SearchHit(
                chunk_id=item.chunk_id,
                score=item.match.score,
                text=item.text,
                document={
                    "id": item.document.id,
                    "title": item.document.title,
                    "file_name": item.document.file_name,
                    "file_type": item.document.file_type,
                },
            )
            for item in self._resolve_matches(session_id, cleaned, top_k, document_id)
        ]
        hits.sort(key=lambda hit: hit.score, reverse=True)
        LOGGER.info("Found %s relevant chunks for session %s", len(hits), session_id)
        return hits

    # --------------------------------------------------------------- documents
    def list_documents(self, session_id: str) -> List[DocumentRecord]:
        return self.repository.list_documents(session_id)

    def delete_document(self, session_id: str, document_id: int) -> DeleteResult:
        stored_path = self.repository.get_document(session_id, document_id).stored_path
        chunks_deleted = self.repository.delete_document(session_id, document_id)
        if remove_upload(stored_path):
            LOGGER.info("Removed stored upload %s", stored_path)

        embeddings_deleted: Optional[bool]
        try:
            removed = self.vector_index.delete(filters={"session_id": session_id, "document_id": document_id})
        except VectorStoreUnavailableError as error:
            LOGGER.error("Failed to delete embeddings for document %s: %s", document_id, error)
            emit_vectorstore_event(
                "vectorstore.delete",
                backend=self.vector_index.backend_name,
                collection=self.vector_index.collection_name,
                count=0,
                error=error,
            )
            embeddings_deleted = False
        else:
            emit_vectorstore_event(
                "vectorstore.delete",
                backend=self.vector_index.backend_name,
                collection=self.vector_index.collection_name,
                count=removed,
            )
            embeddings_deleted = True

        audit(
            "delete",
            session_id=session_id,
            document_id=document_id,
            chunks_deleted=chunks_deleted,
            embeddings_deleted=embeddings_deleted,
        )
        return DeleteResult(
            document_id=document_id,
            chunks_deleted=chunks_deleted,
            embeddings_deleted=embeddings_deleted,
        )

    def find_references(
        self,
        session_id: str,
        document_id: int,
        query: Optional[str] = None,
        limit: Any = None,
    ) -> ReferenceResult:
        document = self.repository.get_document(session_id, document_id)
        return find_references(
            document,
            query,
            limit,
            summarizer=partial(summarize_document_one_liner, self.chat_client),
            search_client=self.search_client,
        )


def build_service(settings: Settings) -> DocumentQAService:
    """Wire every collaborator selected by *settings*."""

    return DocumentQAService(
        settings=settings,
        repository=DocumentRepository(settings.data_dir / "documents.json"),
        embedding_model=build_embedding_model(settings),
        vector_index=build_vector_index(settings),
        chat_client=build_chat_client(settings),
        search_client=TavilySearchClient(
            settings.tavily_api_key,
            endpoint=settings.tavily_endpoint,
            timeout=settings.http_timeout,
        ),
    )


@lru_cache()
def get_service() -> DocumentQAService:
    """FastAPI dependency returning the shared :class:`DocumentQAService`."""

    return build_service(get_settings())


__all__ = [
    "AnswerResult",
    "DeleteResult",
    "DocumentQAService",
    "IngestResult",
    "SearchHit",
    "build_service",
    "get_service",
]
