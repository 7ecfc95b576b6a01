from pathlib import Path

import pytest

from askdocs.documents import DocumentNotFoundError
from askdocs.embeddings import EmbeddingError, HashEmbeddingModel
from askdocs.llm import LLMGenerationError, MockChatClient
from askdocs.prompting import NO_CONTEXT_PROMPT
from askdocs.references import MissingQueryInputError
from askdocs.vectorstore import InMemoryVectorIndex, VectorStoreUnavailableError

PARAGRAPHS = [
    "The warranty covers manufacturing defects for two years from the date of purchase. "
    "Claims must include the original receipt and a description of the fault.",
    "Shipping is free for orders above fifty euros. Deliveries usually arrive within "
    "three to five business days, depending on the destination country.",
    "Returns are accepted within thirty days. Items must be unused and in their "
    "original packaging, and refunds are issued to the original payment method.",
]
DOCUMENT = "\n\n".join(PARAGRAPHS).encode("utf-8")


class FailingEmbeddingModel(HashEmbeddingModel):
    def embed_documents(self, texts):
        raise EmbeddingError("embedding service unavailable")


class CrashingEmbeddingModel(HashEmbeddingModel):
    def _embed(self, texts, input_type):
        raise RuntimeError("CUDA out of memory")


class FailingVectorIndex(InMemoryVectorIndex):
    def upsert(self, records):
        raise VectorStoreUnavailableError("index offline")

    def delete(self, *, filters):
        raise VectorStoreUnavailableError("index offline")


def test_ingest_stores_chunks_and_embeddings(service, vector_index, settings):
    result = service.ingest("session-1", "policies.txt", DOCUMENT, "text/plain")

    assert result.chunk_count > 1
    assert result.embedded_count == result.chunk_count
    assert result.embedding_error is None
    assert result.document.file_type == "txt"
    assert result.document.chunk_count == result.chunk_count
    assert result.content_preview == result.document.content[:300]
    assert vector_index.count() == result.chunk_count
    assert list((settings.data_dir / "session-1").iterdir())


def test_ingest_keeps_document_when_embedding_fails(service):
    service.embedding_model = FailingEmbeddingModel(dimension=32)

    result = service.ingest("session-1", "policies.txt", DOCUMENT)

    assert result.chunk_count > 0
    assert result.embedded_count == 0
    assert result.embedding_error == "embedding service unavailable"
    stored = service.list_documents("session-1")
    assert [doc.id for doc in stored] == [result.document.id]
    assert stored[0].chunk_count == result.chunk_count


def test_ingest_reports_unexpected_backend_failure(service):
    service.embedding_model = CrashingEmbeddingModel(dimension=32)

    result = service.ingest("session-1", "policies.txt", DOCUMENT)

    assert result.chunk_count > 0
    assert result.embedded_count == 0
    assert "CUDA out of memory" in result.embedding_error
    assert service.list_documents("session-1")[0].chunk_count == result.chunk_count


def test_ingest_keeps_document_when_index_fails(service):
    service.vector_index = FailingVectorIndex()

    result = service.ingest("session-1", "policies.txt", DOCUMENT)

    assert result.embedded_count == 0
    assert result.embedding_error == "index offline"


def test_ingest_short_document_has_no_chunks(service, vector_index):
    result = service.ingest("session-1", "tiny.txt", b"Too short.")

    assert result.chunk_count == 0
    assert result.embedded_count == 0
    assert result.embedding_error is None
    assert vector_index.count() == 0


def test_answer_uses_retrieved_context(service, chat_client):
    ingested = service.ingest("session-1", "policies.txt", DOCUMENT)
    chunk_text = service.repository.chunks_for(ingested.document.id)[0].text

    result = service.answer("session-1", chunk_text, top_k=2)

    assert result.answer.startswith("MOCK_ANSWER:")
    assert result.used_fallback is False
    assert len(result.sources) == 2
    assert result.sources[0].text == chunk_text
    assert result.sources[0].score == pytest.approx(1.0)
    assert result.sources[0].document_label == "policies.txt"

    call = chat_client.calls[-1]
    assert "[Document: policies.txt]" in call["system_prompt"]
    assert chunk_text in call["system_prompt"]
    assert call["max_tokens"] == service.settings.llm_max_tokens
    assert call["temperature"] == service.settings.llm_temperature


def test_answer_without_documents_falls_back(service, chat_client):
    result = service.answer("empty-session", "What is the refund policy?")

    assert result.used_fallback is True
    assert result.sources == []
    assert chat_client.calls[-1]["system_prompt"] == NO_CONTEXT_PROMPT


def test_answer_is_scoped_to_session_and_document(service):
    first = service.ingest("session-1", "policies.txt", DOCUMENT)
    other = service.ingest("session-1", "other.txt", DOCUMENT)
    service.ingest("session-2", "foreign.txt", DOCUMENT)

    result = service.answer("session-1", "warranty", document_id=other.document.id, top_k=10)

    assert result.sources
    assert {source.document_id for source in result.sources} == {other.document.id}
    assert first.document.id not in {source.document_id for source in result.sources}


def test_answer_rejects_blank_question(service):
    with pytest.raises(ValueError):
        service.answer("session-1", "   ")


def test_answer_propagates_llm_errors(service):
    class BrokenChat(MockChatClient):
        def chat(self, message, **kwargs):
            raise LLMGenerationError("Cohere chat API error (500): boom")

    service.chat_client = BrokenChat()

    with pytest.raises(LLMGenerationError):
        service.answer("session-1", "anything")


def test_search_returns_sorted_hits_with_document_info(service):
    ingested = service.ingest("session-1", "policies.txt", DOCUMENT)
    chunk_text = service.repository.chunks_for(ingested.document.id)[-1].text

    hits = service.search("session-1", chunk_text, top_k=3)

    assert hits[0].text == chunk_text
    assert hits[0].relevance_score == 1.0
    assert [hit.score for hit in hits] == sorted((hit.score for hit in hits), reverse=True)
    assert hits[0].document == {
        "id": ingested.document.id,
        "title": "policies.txt",
        "file_name": "policies.txt",
        "file_type": "txt",
    }


def test_search_in_empty_session(service):
    assert service.search("nobody", "warranty") == []


def test_delete_document_removes_vectors(service, vector_index):
    ingested = service.ingest("session-1", "policies.txt", DOCUMENT)
    stored = Path(ingested.document.stored_path)
    assert stored.read_bytes() == DOCUMENT

    result = service.delete_document("session-1", ingested.document.id)

    assert result.chunks_deleted == ingested.chunk_count
    assert result.embeddings_deleted is True
    assert vector_index.count() == 0
    assert service.list_documents("session-1") == []
    assert not stored.exists()


def test_delete_document_reports_vector_failure(service):
    ingested = service.ingest("session-1", "policies.txt", DOCUMENT)
    service.vector_index = FailingVectorIndex()

    result = service.delete_document("session-1", ingested.document.id)

    assert result.embeddings_deleted is False
    assert service.list_documents("session-1") == []


def test_delete_unknown_document(service):
    with pytest.raises(DocumentNotFoundError):
        service.delete_document("session-1", 404)


def test_find_references_summarises_document(service, search_client, chat_client):
    ingested = service.ingest("session-1", "policies.txt", DOCUMENT)

    result = service.find_references("session-1", ingested.document.id, None, 3)

    assert result.summary_used is True
    assert result.query_used.startswith("MOCK_ANSWER:")
    assert len(result.references) == 3
    assert search_client.calls == [(result.query_used, 3)]
    assert chat_client.calls[-1]["max_tokens"] == 80


def test_find_references_with_explicit_query(service, search_client, chat_client):
    ingested = service.ingest("session-1", "policies.txt", DOCUMENT)

    result = service.find_references("session-1", ingested.document.id, "consumer law", None)

    assert result.summary_used is False
    assert search_client.calls == [("consumer law", 5)]
    assert chat_client.calls == []


def test_find_references_for_empty_document(service):
    ingested = service.ingest("session-1", "blank.txt", b"   ")

    with pytest.raises(MissingQueryInputError):
        service.find_references("session-1", ingested.document.id)


def test_find_references_unknown_document(service):
    with pytest.raises(DocumentNotFoundError):
        service.find_references("session-1", 12345, "query")
