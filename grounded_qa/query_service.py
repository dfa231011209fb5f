"""Query Service: grounded question answering over a user's documents."""

import logging
import time
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

import uvicorn
from fastapi import FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, ConfigDict, Field
from starlette.responses import Response

from grounded_qa.api.health import check_all_dependencies, check_readiness
from grounded_qa.core.config import settings
from grounded_qa.core.dependencies import services
from grounded_qa.core.exceptions import EmbeddingError, RetrievalError
from grounded_qa.models.document import DocumentIngestRequest, SourceType
from grounded_qa.monitoring.metrics import (
    query_counter,
    query_errors_total,
    query_latency_seconds,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    await services.initialize()
    logger.info("Query Service started")
    yield
    await services.shutdown()
    logger.info("Query Service stopped")


app = FastAPI(title="Grounded QA Service", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class CamelModel(BaseModel):
    """Accepts and emits camelCase field names."""

    model_config = ConfigDict(populate_by_name=True)


class HistoryItem(BaseModel):
    """One prior conversation turn."""

    role: str
    content: str


class QueryFilters(CamelModel):
    """Caller-supplied retrieval filters."""

    source_types: Optional[List[str]] = Field(default=None, alias="sourceTypes")


class QueryRequest(CamelModel):
    """Query request model."""

    query: str
    filters: QueryFilters = Field(default_factory=QueryFilters)
    history: List[HistoryItem] = Field(default_factory=list)
    use_cache: bool = Field(default=True, alias="useCache")


class SourceResponse(BaseModel):
    """Citation shown with an answer."""

    title: str
    content: Optional[str] = None


class QueryResponse(CamelModel):
    """Query response model."""

    response_text: str = Field(alias="responseText")
    sources: List[SourceResponse]
    from_cache: bool = Field(default=False, alias="fromCache")
    latency_ms: float = Field(alias="latencyMs")
    metadata: Dict = Field(default_factory=dict)


class IngestDocument(CamelModel):
    """Document payload for ingestion."""

    document_id: str = Field(..., min_length=1, alias="documentId")
    text: str
    source_type: str = Field(default=SourceType.UPLOAD.value, alias="sourceType")
    title: str = ""
    metadata: Dict = Field(default_factory=dict)


class IngestRequest(BaseModel):
    """Batch ingestion request."""

    documents: List[IngestDocument] = Field(..., min_length=1)


class IngestResultResponse(CamelModel):
    """Per-document ingestion outcome."""

    document_id: str = Field(alias="documentId")
    status: str
    chunk_count: int = Field(alias="chunkCount")
    stage: Optional[str] = None
    error: Optional[str] = None


class IngestResponse(BaseModel):
    """Batch ingestion response."""

    results: List[IngestResultResponse]


@app.post("/query", response_model=QueryResponse)
async def query(
    request: QueryRequest,
    x_user_id: Optional[str] = Header(default=None),
) -> QueryResponse:
    """
    Answer a question from the caller's documents.

    Args:
        request: Query request.
        x_user_id: Caller identity supplied by the auth layer.

    Returns:
        Answer text with resolved sources.
    """
    if not request.query.strip():
        raise HTTPException(
            status_code=400, detail="Query is required and must be a non-empty string")

    start_time = time.time()
    query_counter.inc()

    try:
        result = await services.query_processor.process_query(
            query=request.query,
            user_id=x_user_id,
            source_types=request.filters.source_types,
            history=[item.model_dump() for item in request.history],
            use_cache=request.use_cache,
        )
    except EmbeddingError as e:
        logger.error(f"Query embedding failed: {str(e)}")
        query_errors_total.inc()
        raise HTTPException(status_code=502, detail=f"Query embedding failed: {str(e)}")
    except Exception as e:
        logger.error(f"Query failed: {str(e)}")
        query_errors_total.inc()
        raise HTTPException(status_code=500, detail=f"Query failed: {str(e)}")

    latency_seconds = time.time() - start_time
    query_latency_seconds.observe(latency_seconds)
    logger.info(f"Query processed in {latency_seconds * 1000:.2f}ms")

    return QueryResponse(
        response_text=result.response_text,
        sources=[SourceResponse(**source.model_dump()) for source in result.sources],
        from_cache=result.from_cache,
        latency_ms=latency_seconds * 1000,
        metadata=result.metadata,
    )


@app.post("/documents/ingest", response_model=IngestResponse)
async def ingest_documents(
    request: IngestRequest,
    x_user_id: Optional[str] = Header(default=None),
) -> IngestResponse:
    """
    Chunk, embed and index documents.

    Args:
        request: Documents to ingest.
        x_user_id: Owner of the documents.

    Returns:
        One result per document.
    """
    ingest_requests = [
        DocumentIngestRequest(
            document_id=doc.document_id,
            text=doc.text,
            source_type=doc.source_type,
            title=doc.title,
            owner_id=x_user_id,
            metadata=doc.metadata,
        )
        for doc in request.documents
    ]
    results = await services.document_processor.process_documents(ingest_requests)
    return IngestResponse(
        results=[IngestResultResponse(**result.model_dump()) for result in results]
    )


@app.delete("/documents/{document_id}", status_code=204)
async def delete_document(document_id: str) -> None:
    """
    Remove a document's chunks from the index.

    Args:
        document_id: Document ID.
    """
    try:
        await services.vector_db.delete_document_chunks(document_id)
    except RetrievalError as e:
        logger.error(f"Failed to delete document {document_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
async def health() -> dict:
    """
    Health check endpoint with dependency verification.

    Returns:
        Health status with service dependencies.
    """
    result = await check_all_dependencies(services.vector_db, services.cache)
    return {"service": settings.service_name, **result}


@app.get("/ready")
async def readiness() -> dict:
    """
    Readiness check endpoint.

    Returns:
        Readiness status.
    """
    result = await check_readiness(services.vector_db, services.cache)
    return {"service": settings.service_name, **result}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=settings.service_port)
