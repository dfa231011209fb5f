"""Tests for document ingestion: chunk, dedupe, embed and store."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from grounded_qa.core.config import settings
from grounded_qa.core.exceptions import DocumentProcessingError, EmbeddingError, RetrievalError
from grounded_qa.models.document import DocumentIngestRequest
from grounded_qa.services.chunking import ChunkerOptions, ChunkingService
from grounded_qa.services.document_processor import (
    STATUS_COMPLETED,
    STATUS_EMPTY,
    STATUS_FAILED,
    DocumentProcessor,
)


def fake_embed(texts, task_hint):
    if any("broken" in text for text in texts):
        raise EmbeddingError("provider rejected input")
    return [[0.1, 0.2, 0.3] for _ in texts]


@pytest.fixture(autouse=True)
def no_retry_delay(monkeypatch):
    """Make retries immediate."""
    monkeypatch.setattr(settings, "retry_delay_seconds", 0.0)


@pytest.fixture
def vector_db():
    """Provide a mocked vector database."""
    db = MagicMock()
    db.delete_document_chunks = AsyncMock()
    db.upsert_chunks = AsyncMock()
    return db


@pytest.fixture
def embedding_service():
    """Provide a mocked embedding service."""
    service = MagicMock()
    service.embed_many = AsyncMock(side_effect=fake_embed)
    return service


@pytest.fixture
def processor(vector_db, embedding_service):
    """Provide a DocumentProcessor with a paragraph chunker."""
    chunker = ChunkingService(
        ChunkerOptions(strategy="paragraph", chunk_size=20, chunk_overlap=0))
    return DocumentProcessor(vector_db, embedding_service, chunker)


class TestProcessDocument:
    """Single-document ingestion."""

    @pytest.mark.asyncio
    async def test_completed_with_deduplicated_chunks(self, processor, vector_db) -> None:
        """Should store unique chunks with document metadata."""
        request = DocumentIngestRequest(
            document_id="doc-1",
            text="Same text here.\n\nSame text here.\n\nDifferent.",
            source_type="notion",
            title="Weekly Sync",
            owner_id="u1",
        )
        result = await processor.process_document(request)

        assert result.status == STATUS_COMPLETED
        assert result.chunk_count == 2
        vector_db.delete_document_chunks.assert_awaited_once_with("doc-1")

        args = vector_db.upsert_chunks.call_args
        chunks, embeddings, point_ids = args.args
        assert [c.content for c in chunks] == ["Same text here.", "Different."]
        assert [c.chunk_index for c in chunks] == [0, 1]
        assert chunks[0].metadata["source_type"] == "notion"
        assert len(embeddings) == len(point_ids) == 2
        assert args.kwargs == {
            "document_name": "Weekly Sync",
            "document_type": "notion",
            "owner_id": "u1",
        }

    @pytest.mark.asyncio
    async def test_empty_text(self, processor, embedding_service, vector_db) -> None:
        """Should report an empty document without embedding or storing."""
        result = await processor.process_document(
            DocumentIngestRequest(document_id="doc-1", text="   \n\n  "))

        assert result.status == STATUS_EMPTY
        assert result.chunk_count == 0
        embedding_service.embed_many.assert_not_awaited()
        vector_db.upsert_chunks.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_options_fail_at_chunking(self, processor) -> None:
        """Should report a chunking-stage failure for invalid options."""
        with pytest.raises(DocumentProcessingError) as exc_info:
            await processor.process_document(
                DocumentIngestRequest(document_id="doc-1", text="Some text."),
                options=ChunkerOptions(chunk_size=10, chunk_overlap=10),
            )

        assert exc_info.value.stage == "chunking"
        assert exc_info.value.document_id == "doc-1"

    @pytest.mark.asyncio
    async def test_embedding_retried_then_fails(self, processor, embedding_service) -> None:
        """Should retry embedding and report an embedding-stage failure."""
        with pytest.raises(DocumentProcessingError) as exc_info:
            await processor.process_document(
                DocumentIngestRequest(document_id="doc-1", text="broken text"))

        assert exc_info.value.stage == "embedding"
        assert embedding_service.embed_many.await_count == settings.max_retries + 1


class TestProcessDocuments:
    """Batch ingestion with per-document isolation."""

    @pytest.mark.asyncio
    async def test_failure_does_not_abort_batch(self, processor) -> None:
        """Should ingest the remaining documents when one fails."""
        results = await processor.process_documents([
            DocumentIngestRequest(document_id="bad", text="broken text"),
            DocumentIngestRequest(document_id="good", text="Fine text."),
        ])

        assert [r.document_id for r in results] == ["bad", "good"]
        assert results[0].status == STATUS_FAILED
        assert results[0].stage == "embedding"
        assert results[1].status == STATUS_COMPLETED
        assert results[1].chunk_count == 1

    @pytest.mark.asyncio
    async def test_storage_failure_reported(self, processor, vector_db) -> None:
        """Should report a storage-stage failure."""
        vector_db.upsert_chunks.side_effect = RetrievalError("qdrant down")

        results = await processor.process_documents([
            DocumentIngestRequest(document_id="doc-1", text="Fine text."),
        ])

        assert results[0].status == STATUS_FAILED
        assert results[0].stage == "storage"
        assert "qdrant down" in results[0].error

    @pytest.mark.asyncio
    async def test_unexpected_error_reported_as_unknown_stage(self, processor, vector_db) -> None:
        """Should report an unclassified error and keep ingesting the batch."""
        vector_db.delete_document_chunks.side_effect = [RuntimeError("socket closed"), None]

        results = await processor.process_documents([
            DocumentIngestRequest(document_id="first", text="Fine text."),
            DocumentIngestRequest(document_id="second", text="Also fine."),
        ])

        assert results[0].status == STATUS_FAILED
        assert results[0].stage == "unknown"
        assert "socket closed" in results[0].error
        assert results[1].status == STATUS_COMPLETED
