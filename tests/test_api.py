"""Tests for the HTTP surface of the query service."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from grounded_qa.core.dependencies import services
from grounded_qa.core.exceptions import EmbeddingError, RetrievalError
from grounded_qa.models.document import IngestResult
from grounded_qa.models.response import QueryResult, Source
from grounded_qa.query_service import app


@pytest.fixture
def client():
    """Provide a test client that skips connecting to backing services."""
    return TestClient(app)


@pytest.fixture
def process_query(monkeypatch):
    """Replace the query pipeline with a mock."""
    mock = AsyncMock(
        return_value=QueryResult(
            response_text="Paris is the capital.",
            sources=[Source(title="File: Geography", content="Paris is...")],
            metadata={"attribution_rule": "single_chunk"},
        )
    )
    monkeypatch.setattr(services.query_processor, "process_query", mock)
    return mock


class TestQueryEndpoint:
    """POST /query."""

    def test_answer_returned(self, client, process_query) -> None:
        """Should return the answer, sources and metadata in camelCase."""
        response = client.post(
            "/query",
            json={"query": "What is the capital?", "filters": {"sourceTypes": ["upload"]}},
            headers={"X-User-Id": "u1"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["responseText"] == "Paris is the capital."
        assert body["sources"] == [{"title": "File: Geography", "content": "Paris is..."}]
        assert body["fromCache"] is False
        assert body["metadata"] == {"attribution_rule": "single_chunk"}
        assert "latencyMs" in body

        kwargs = process_query.call_args.kwargs
        assert kwargs["user_id"] == "u1"
        assert kwargs["source_types"] == ["upload"]
        assert kwargs["use_cache"] is True

    def test_blank_query_rejected(self, client, process_query) -> None:
        """Should reject whitespace-only queries."""
        response = client.post("/query", json={"query": "   "})

        assert response.status_code == 400
        process_query.assert_not_awaited()

    def test_embedding_failure_is_bad_gateway(self, client, process_query) -> None:
        """Should map query embedding failures to 502."""
        process_query.side_effect = EmbeddingError("quota exceeded")

        response = client.post("/query", json={"query": "What?"})

        assert response.status_code == 502

    def test_unexpected_failure_is_server_error(self, client, process_query) -> None:
        """Should map other failures to 500."""
        process_query.side_effect = RuntimeError("boom")

        response = client.post("/query", json={"query": "What?"})

        assert response.status_code == 500


class TestDocumentEndpoints:
    """Ingestion and deletion."""

    def test_ingest(self, client, monkeypatch) -> None:
        """Should ingest documents on behalf of the caller."""
        mock = AsyncMock(return_value=[
            IngestResult(document_id="d1", status="completed", chunk_count=3)])
        monkeypatch.setattr(services.document_processor, "process_documents", mock)

        response = client.post(
            "/documents/ingest",
            json={"documents": [
                {"documentId": "d1", "text": "Hello", "sourceType": "notion", "title": "T"}]},
            headers={"X-User-Id": "u1"},
        )

        assert response.status_code == 200
        assert response.json()["results"][0] == {
            "documentId": "d1",
            "status": "completed",
            "chunkCount": 3,
            "stage": None,
            "error": None,
        }
        request = mock.call_args.args[0][0]
        assert request.owner_id == "u1"
        assert request.source_type == "notion"
        assert request.title == "T"

    def test_ingest_requires_documents(self, client) -> None:
        """Should reject an empty batch."""
        response = client.post("/documents/ingest", json={"documents": []})

        assert response.status_code == 422

    def test_delete(self, client, monkeypatch) -> None:
        """Should remove a document's chunks."""
        mock = AsyncMock()
        monkeypatch.setattr(services.vector_db, "delete_document_chunks", mock)

        response = client.delete("/documents/d1")

        assert response.status_code == 204
        mock.assert_awaited_once_with("d1")

    def test_delete_failure(self, client, monkeypatch) -> None:
        """Should report index failures."""
        mock = AsyncMock(side_effect=RetrievalError("qdrant down"))
        monkeypatch.setattr(services.vector_db, "delete_document_chunks", mock)

        response = client.delete("/documents/d1")

        assert response.status_code == 500


class TestOperationalEndpoints:
    """Health, readiness and metrics."""

    def test_health_unhealthy_without_index(self, client) -> None:
        """Should report unhealthy when Qdrant is not connected."""
        response = client.get("/health")

        body = response.json()
        assert body["status"] == "unhealthy"
        assert body["services"]["qdrant"]["status"] == "unhealthy"
        assert body["services"]["cache"]["status"] == "healthy"

    def test_not_ready_without_index(self, client) -> None:
        """Should not be ready before Qdrant is connected."""
        body = client.get("/ready").json()

        assert body["ready"] is False
        assert body["cache"] is True

    def test_metrics_exposed(self, client) -> None:
        """Should expose Prometheus metrics."""
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "grounded_qa_queries_total" in response.text
