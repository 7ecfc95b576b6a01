"""Document and chunk records owned by upload sessions."""
from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from askdocs.chunking import TextChunk

LOGGER = logging.getLogger(__name__)


class DocumentNotFoundError(LookupError):
    """Raised when a document id does not exist in the caller's session."""


@dataclass(slots=True)
class DocumentRecord:
    id: int
    session_id: str
    title: str
    file_name: str
    file_type: str
    content: str
    language: Optional[str]
    created_at: str
    chunk_count: int = 0
    stored_path: Optional[str] = None


@dataclass(slots=True)
class ChunkRecord:
    id: int
    document_id: int
    index: int
    text: str
    start_index: int
    end_index: int


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class DocumentRepository:
    """Thread-safe in-memory store, optionally mirrored to a JSON file."""

    def __init__(self, persist_path: Path | str | None = None) -> None:
        self._documents: Dict[int, DocumentRecord] = {}
        self._chunks: Dict[int, ChunkRecord] = {}
        self._next_document_id = 1
        self._next_chunk_id = 1
        self._lock = threading.RLock()
        self._persist_path = Path(persist_path) if persist_path else None
        if self._persist_path is not None:
            self._load()

    def add_document(
        self,
        *,
        session_id: str,
        title: str,
        file_name: str,
        file_type: str,
        content: str,
        language: Optional[str] = None,
        stored_path: Optional[str] = None,
    ) -> DocumentRecord:
        with self._lock:
            record = DocumentRecord(
                id=self._next_document_id,
                session_id=session_id,
                title=title,
                file_name=file_name,
                file_type=file_type,
                content=content,
                language=language,
                stored_path=stored_path,
                created_at=_utc_now(),
            )
            self._documents[record.id] = record
            self._next_document_id += 1
            self._save()
        return record

    def add_chunks(self, document_id: int, chunks: Sequence[TextChunk]) -> List[ChunkRecord]:
        with self._lock:
            document = self._documents.get(document_id)
            if document is None:
                raise DocumentNotFoundError(f"Document {document_id} not found")

            created: List[ChunkRecord] = []
            for index, chunk in enumerate(chunks):
                record = ChunkRecord(
                    id=self._next_chunk_id,
                    document_id=document_id,
                    index=index,
                    text=chunk.text,
                    start_index=chunk.start_index,
                    end_index=chunk.end_index,
                )
                self._chunks[record.id] = record
                self._next_chunk_id += 1
                created.append(record)
            document.chunk_count += len(created)
            self._save()
        return created

    def get_document(self, session_id: str, document_id: int) -> DocumentRecord:
        with self._lock:
            document = self._documents.get(document_id)
        if document is None or document.session_id != session_id:
            raise DocumentNotFoundError("Document not found")
        return document

    def list_documents(self, session_id: str) -> List[DocumentRecord]:
        """Documents of *session_id*, newest first."""

        with self._lock:
            documents = [doc for doc in self._documents.values() if doc.session_id == session_id]
        return sorted(documents, key=lambda doc: (doc.created_at, doc.id), reverse=True)

    def get_chunks(self, chunk_ids: Iterable[int]) -> Dict[int, ChunkRecord]:
        with self._lock:
            return {chunk_id: self._chunks[chunk_id] for chunk_id in chunk_ids if chunk_id in self._chunks}

    def chunks_for(self, document_id: int) -> List[ChunkRecord]:
        with self._lock:
            chunks = [chunk for chunk in self._chunks.values() if chunk.document_id == document_id]
        return sorted(chunks, key=lambda chunk: chunk.index)

    def delete_document(self, session_id: str, document_id: int) -> int:
        """Remove the document and its chunks; return the number of chunks removed."""

        with self._lock:
            self.get_document(session_id, document_id)
            doomed = [chunk_id for chunk_id, chunk in self._chunks.items() if chunk.document_id == document_id]
            for chunk_id in doomed:
                del self._chunks[chunk_id]
            del self._documents[document_id]
            self._save()
        return len(doomed)

    def _load(self) -> None:
        assert self._persist_path is not None
        if not self._persist_path.exists():
            return
        try:
            payload = json.loads(self._persist_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            LOGGER.warning("Failed to load documents from %s", self._persist_path)
            return

        for item in payload.get("documents", []):
            record = DocumentRecord(**item)
            self._documents[record.id] = record
        for item in payload.get("chunks", []):
            chunk = ChunkRecord(**item)
            self._chunks[chunk.id] = chunk
        self._next_document_id = max(self._documents, default=0) + 1
        self._next_chunk_id = max(self._chunks, default=0) + 1

    def _save(self) -> None:
        if self._persist_path is None:
            return
        payload = {
            "documents": [asdict(doc) for doc in self._documents.values()],
            "chunks": [asdict(chunk) for chunk in self._chunks.values()],
        }
        self._persist_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._persist_path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        tmp_path.replace(self._persist_path)


__all__ = ["ChunkRecord", "DocumentNotFoundError", "DocumentRecord", "DocumentRepository"]
