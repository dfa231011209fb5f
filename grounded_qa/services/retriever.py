"""Chunk retrieval on top of the vector index."""

import logging
from typing import List, NamedTuple, Optional

from grounded_qa.core.exceptions import RetrievalError
from grounded_qa.models.document import RetrievedChunk
from grounded_qa.models.query import SearchFilters
from grounded_qa.monitoring.metrics import retrieval_degradations_total
from grounded_qa.services.vector_db import VectorDBService

logger = logging.getLogger(__name__)


class TitleFilterOutcome(NamedTuple):
    """Chunks left after the title filter and whether it narrowed anything."""

    chunks: List[RetrievedChunk]
    requested: bool
    applied: bool


class Retriever:
    """Ranks, bounds and thresholds vector index results."""

    def __init__(self, vector_db: VectorDBService) -> None:
        """
        Initialize the retriever.

        Args:
            vector_db: Vector database service.
        """
        self.vector_db = vector_db

    async def retrieve(
        self,
        query_vector: List[float],
        filters: Optional[SearchFilters],
        limit: int,
        threshold: float,
    ) -> List[RetrievedChunk]:
        """
        Retrieve the chunks closest to a query vector.

        Index failures degrade to an empty result so the caller can still
        answer without context.

        Args:
            query_vector: Embedding of the user query.
            filters: Owner and source-type restrictions.
            limit: Maximum number of chunks.
            threshold: Minimum similarity.

        Returns:
            At most limit chunks with similarity >= threshold, closest first.
        """
        try:
            matches = await self.vector_db.search(
                query_vector, threshold=threshold, limit=limit, filters=filters)
        except RetrievalError as e:
            logger.warning(f"Retrieval degraded to empty context: {str(e)}")
            retrieval_degradations_total.inc()
            return []

        # sorted() is stable, so equal scores keep index order
        ranked = sorted(
            (m for m in matches if m.similarity >= threshold),
            key=lambda m: m.similarity,
            reverse=True,
        )
        return ranked[:limit]


def apply_title_filter(
    chunks: List[RetrievedChunk], target_title: Optional[str]
) -> TitleFilterOutcome:
    """
    Narrow chunks to the document named in the query.

    Falls back to the unfiltered chunks when none carry the title.

    Args:
        chunks: Ranked retrieval results.
        target_title: Title inferred from the query, if any.

    Returns:
        Filter outcome.
    """
    if not target_title:
        return TitleFilterOutcome(chunks, requested=False, applied=False)

    wanted = target_title.strip().lower()
    filtered = [c for c in chunks if c.document_name.strip().lower() == wanted]
    if filtered:
        logger.info(
            f"Filtering context to {len(filtered)} chunks from document \"{target_title}\"")
        return TitleFilterOutcome(filtered, requested=True, applied=True)

    logger.info(
        f"Document \"{target_title}\" not among retrieved chunks, using all {len(chunks)}")
    return TitleFilterOutcome(chunks, requested=True, applied=False)
