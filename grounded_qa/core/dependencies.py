"""Dependency injection for services."""

from grounded_qa.services.cache import create_response_cache
from grounded_qa.services.chunking import ChunkingService
from grounded_qa.services.document_processor import DocumentProcessor
from grounded_qa.services.embedding import EmbeddingService
from grounded_qa.services.llm import LLMService
from grounded_qa.services.query_processor import QueryProcessor
from grounded_qa.services.retriever import Retriever
from grounded_qa.services.vector_db import VectorDBService


class ServiceContainer:
    """Container for service instances."""

    def __init__(self) -> None:
        """Initialize service container."""
        self.vector_db = VectorDBService()
        self.embedding_service = EmbeddingService()
        self.chunking_service = ChunkingService()
        self.cache = create_response_cache()
        self.llm_service = LLMService()
        self.query_processor = QueryProcessor(
            embedding_service=self.embedding_service,
            retriever=Retriever(self.vector_db),
            llm_service=self.llm_service,
            cache=self.cache,
        )
        self.document_processor = DocumentProcessor(
            vector_db=self.vector_db,
            embedding_service=self.embedding_service,
            chunking_service=self.chunking_service,
        )

    async def initialize(self) -> None:
        """Initialize all services."""
        await self.vector_db.connect()
        await self.cache.connect()

    async def shutdown(self) -> None:
        """Shutdown all services."""
        await self.vector_db.disconnect()
        await self.cache.disconnect()


services = ServiceContainer()
