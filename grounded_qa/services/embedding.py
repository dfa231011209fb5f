"""OpenAI embedding generation service."""

import logging
from typing import List

from openai import AsyncOpenAI

from grounded_qa.core.config import settings
from grounded_qa.core.exceptions import EmbeddingError

logger = logging.getLogger(__name__)

TASK_RETRIEVAL_QUERY = "retrieval_query"
TASK_RETRIEVAL_DOCUMENT = "retrieval_document"


class EmbeddingService:
    """Service for generating embeddings using OpenAI."""

    def __init__(self) -> None:
        """Initialize the embedding service."""
        self.client = AsyncOpenAI(api_key=settings.openai_api_key)
        self.model = settings.embedding_model
        self.dimensions = settings.embedding_dimensions

    async def embed_many(
        self, texts: List[str], task_hint: str = TASK_RETRIEVAL_DOCUMENT
    ) -> List[List[float]]:
        """
        Generate embeddings for a list of texts.

        Args:
            texts: List of text strings to embed.
            task_hint: Whether the texts are queries or stored documents.

        Returns:
            List of embedding vectors, one per text.

        Raises:
            EmbeddingError: If embedding generation fails.
        """
        if not texts:
            return []
        logger.debug(f"Embedding {len(texts)} texts ({task_hint})")
        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=texts,
                dimensions=self.dimensions,
            )
        except Exception as e:
            raise EmbeddingError(f"Failed to generate embeddings: {str(e)}") from e

        vectors = [item.embedding for item in response.data]
        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"Expected {len(texts)} embeddings, got {len(vectors)}")
        return vectors

    async def embed(self, text: str, task_hint: str = TASK_RETRIEVAL_QUERY) -> List[float]:
        """
        Generate embedding for a single text.

        Args:
            text: Text string to embed.
            task_hint: Whether the text is a query or a stored document.

        Returns:
            Embedding vector.
        """
        embeddings = await self.embed_many([text], task_hint)
        return embeddings[0]
