"""Document ingestion: chunk, embed and index a document's text."""

import logging
import time
from typing import List, Optional

from grounded_qa.core.config import settings
from grounded_qa.core.exceptions import (
    ConfigurationError,
    DocumentProcessingError,
    EmbeddingError,
    RetrievalError,
)
from grounded_qa.models.document import DocumentIngestRequest, IngestResult
from grounded_qa.monitoring.metrics import (
    chunks_stored_total,
    documents_ingested_total,
    ingestion_duration_seconds,
    ingestion_errors_total,
)
from grounded_qa.services.chunking import ChunkerOptions, ChunkingService
from grounded_qa.services.embedding import TASK_RETRIEVAL_DOCUMENT, EmbeddingService
from grounded_qa.services.retry import retry_with_backoff
from grounded_qa.services.vector_db import VectorDBService

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
STATUS_EMPTY = "empty"
STATUS_FAILED = "failed"


class DocumentProcessor:
    """Processes documents into indexed chunks."""

    def __init__(
        self,
        vector_db: VectorDBService,
        embedding_service: EmbeddingService,
        chunking_service: ChunkingService,
    ) -> None:
        """
        Initialize document processor.

        Args:
            vector_db: Vector database service.
            embedding_service: Embedding generation service.
            chunking_service: Document chunking service.
        """
        self.vector_db = vector_db
        self.embedding_service = embedding_service
        self.chunking_service = chunking_service

    async def process_documents(
        self, requests: List[DocumentIngestRequest]
    ) -> List[IngestResult]:
        """
        Ingest several documents independently.

        A failing document is reported in its own result; the rest continue.

        Args:
            requests: Documents to ingest.

        Returns:
            One result per request, in order.
        """
        results = []
        for request in requests:
            try:
                results.append(await self.process_document(request))
            except DocumentProcessingError as e:
                logger.warning(
                    f"Ingestion of document {e.document_id} failed at {e.stage}: {str(e)}")
                ingestion_errors_total.labels(stage=e.stage or "unknown").inc()
                results.append(
                    IngestResult(
                        document_id=request.document_id,
                        status=STATUS_FAILED,
                        stage=e.stage,
                        error=str(e),
                    )
                )
            except Exception as e:
                logger.error(
                    f"Unexpected error ingesting document {request.document_id}: {str(e)}",
                    exc_info=True,
                )
                ingestion_errors_total.labels(stage="unknown").inc()
                results.append(
                    IngestResult(
                        document_id=request.document_id,
                        status=STATUS_FAILED,
                        stage="unknown",
                        error=str(e),
                    )
                )
        return results

    async def process_document(
        self,
        request: DocumentIngestRequest,
        options: Optional[ChunkerOptions] = None,
    ) -> IngestResult:
        """
        Chunk, deduplicate, embed and index one document.

        Args:
            request: Document text and metadata.
            options: Chunking override for this document.

        Returns:
            Ingestion result.

        Raises:
            DocumentProcessingError: If any stage fails.
        """
        document_id = request.document_id
        start_time = time.time()

        try:
            chunks = self.chunking_service.chunk_document(
                request.text,
                document_id,
                metadata={**request.metadata, "source_type": request.source_type},
                options=options,
            )
        except ConfigurationError as e:
            raise DocumentProcessingError(
                f"Document chunking failed: {str(e)}", document_id, "chunking") from e

        chunks = self.chunking_service.deduplicate_chunks(chunks, settings.dedupe_threshold)
        if not chunks:
            logger.warning(f"No chunks generated for document {document_id}")
            return IngestResult(document_id=document_id, status=STATUS_EMPTY)

        texts = [chunk.content for chunk in chunks]

        async def generate_embeddings():
            return await self.embedding_service.embed_many(texts, TASK_RETRIEVAL_DOCUMENT)

        try:
            embeddings = await retry_with_backoff(
                generate_embeddings,
                retry_on=(EmbeddingError,),
                operation=f"Embedding document {document_id}",
            )
        except EmbeddingError as e:
            raise DocumentProcessingError(
                f"Embedding generation failed: {str(e)}", document_id, "embedding") from e

        point_ids = [self.chunking_service.chunk_id(chunk) for chunk in chunks]

        async def replace_chunks():
            await self.vector_db.delete_document_chunks(document_id)
            await self.vector_db.upsert_chunks(
                chunks,
                embeddings,
                point_ids,
                document_name=request.title,
                document_type=request.source_type,
                owner_id=request.owner_id,
            )

        try:
            await retry_with_backoff(
                replace_chunks,
                retry_on=(RetrievalError,),
                operation=f"Storing document {document_id}",
            )
        except RetrievalError as e:
            raise DocumentProcessingError(
                f"Storing chunks failed: {str(e)}", document_id, "storage") from e

        processing_time = time.time() - start_time
        ingestion_duration_seconds.observe(processing_time)
        documents_ingested_total.inc()
        chunks_stored_total.inc(len(chunks))
        logger.info(
            f"Ingested document {document_id} as {len(chunks)} chunks "
            f"in {processing_time:.2f}s"
        )

        return IngestResult(
            document_id=document_id,
            status=STATUS_COMPLETED,
            chunk_count=len(chunks),
        )
