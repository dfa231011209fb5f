"""Qdrant vector database service."""

import logging
from typing import List, Optional

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    MatchAny,
    MatchValue,
    NearestQuery,
    PointStruct,
    VectorParams,
)

from grounded_qa.core.config import settings
from grounded_qa.core.exceptions import RetrievalError
from grounded_qa.models.document import DocumentChunk, RetrievedChunk
from grounded_qa.models.query import SearchFilters

logger = logging.getLogger(__name__)


def build_query_filter(filters: Optional[SearchFilters]) -> Optional[Filter]:
    """
    Translate search filters into a Qdrant payload filter.

    Args:
        filters: Owner and source-type restrictions.

    Returns:
        Qdrant filter, or None when nothing is restricted.
    """
    if filters is None:
        return None

    must = []
    if filters.owner_id:
        must.append(FieldCondition(key="owner_id", match=MatchValue(value=filters.owner_id)))
    if filters.source_types:
        must.append(FieldCondition(key="document_type", match=MatchAny(any=list(filters.source_types))))
    return Filter(must=must) if must else None


class VectorDBService:
    """Service for interacting with Qdrant vector database."""

    def __init__(self) -> None:
        """Initialize the vector database service."""
        self.client: Optional[AsyncQdrantClient] = None
        self.collection_name = settings.qdrant_collection_name
        self.dimensions = settings.embedding_dimensions

    async def connect(self) -> None:
        """Connect to Qdrant."""
        try:
            self.client = AsyncQdrantClient(
                url=settings.qdrant_url,
                timeout=30.0,
            )
            await self._ensure_collection()
        except Exception as e:
            raise RetrievalError(
                f"Failed to connect to Qdrant: {str(e)}") from e

    async def disconnect(self) -> None:
        """Disconnect from Qdrant."""
        if self.client:
            await self.client.close()

    async def _ensure_collection(self) -> None:
        """Ensure the collection exists."""
        if not self.client:
            raise RetrievalError("Client not connected")

        collections = await self.client.get_collections()
        collection_names = [col.name for col in collections.collections]

        if self.collection_name not in collection_names:
            await self.client.create_collection(
                collection_name=self.collection_name,
                vectors_config=VectorParams(
                    size=self.dimensions,
                    distance=Distance.COSINE,
                ),
            )

    async def upsert_chunks(
        self,
        chunks: List[DocumentChunk],
        embeddings: List[List[float]],
        point_ids: List[str],
        document_name: str,
        document_type: str,
        owner_id: Optional[str] = None,
    ) -> None:
        """
        Upsert document chunks into the vector database.

        Args:
            chunks: Chunks of one document.
            embeddings: One embedding vector per chunk.
            point_ids: Stable point id per chunk.
            document_name: Title shown in citations.
            document_type: Source type of the document.
            owner_id: Owning user.
        """
        if not self.client:
            raise RetrievalError("Client not connected")

        if not (len(chunks) == len(embeddings) == len(point_ids)):
            raise RetrievalError(
                "Chunks, embeddings and point ids must have the same length")

        points = []
        for chunk, embedding, point_id in zip(chunks, embeddings, point_ids):
            points.append(
                PointStruct(
                    id=point_id,
                    vector=embedding,
                    payload={
                        "document_id": chunk.document_id,
                        "document_name": document_name,
                        "document_type": document_type,
                        "owner_id": owner_id,
                        "content": chunk.content,
                        "chunk_index": chunk.chunk_index,
                        "metadata": chunk.metadata,
                    },
                )
            )

        try:
            await self.client.upsert(collection_name=self.collection_name, points=points)
        except Exception as e:
            raise RetrievalError(f"Failed to upsert chunks: {str(e)}") from e

    async def delete_document_chunks(self, document_id: str) -> None:
        """
        Delete all chunks for a document.

        Args:
            document_id: ID of the document to delete.
        """
        if not self.client:
            raise RetrievalError("Client not connected")

        try:
            await self.client.delete(
                collection_name=self.collection_name,
                points_selector=FilterSelector(
                    filter=Filter(must=[
                        FieldCondition(key="document_id", match=MatchValue(value=document_id))
                    ])
                ),
            )
        except Exception as e:
            raise RetrievalError(f"Failed to delete chunks: {str(e)}") from e

    async def search(
        self,
        query_embedding: List[float],
        threshold: float,
        limit: int,
        filters: Optional[SearchFilters] = None,
    ) -> List[RetrievedChunk]:
        """
        Search for similar chunks.

        Args:
            query_embedding: Query embedding vector.
            threshold: Minimum similarity score.
            limit: Number of results to return.
            filters: Owner and source-type restrictions.

        Returns:
            Matching chunks, closest first.

        Raises:
            RetrievalError: If the index cannot be queried.
        """
        if not self.client:
            raise RetrievalError("Client not connected")

        try:
            results = await self.client.query_points(
                collection_name=self.collection_name,
                query=NearestQuery(nearest=query_embedding),
                limit=limit,
                query_filter=build_query_filter(filters),
                score_threshold=threshold,
                with_payload=True,
            )
        except Exception as e:
            raise RetrievalError(f"Vector search failed: {str(e)}") from e

        matches = []
        for point in results.points:
            payload = point.payload or {}
            matches.append(
                RetrievedChunk(
                    document_id=str(payload.get("document_id", "")),
                    document_name=payload.get("document_name") or "",
                    document_type=payload.get("document_type") or "",
                    chunk_index=payload.get("chunk_index", 0),
                    content=payload.get("content", ""),
                    similarity=min(max(point.score, 0.0), 1.0),
                    metadata=payload.get("metadata") or {},
                )
            )

        return matches
