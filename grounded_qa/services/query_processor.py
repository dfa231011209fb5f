"""Query processing service for grounded RAG queries."""

import logging
from typing import List, Optional

from grounded_qa.core.config import settings
from grounded_qa.core.exceptions import CacheError, LLMError
from grounded_qa.models.query import AttributionInput, SearchFilters
from grounded_qa.models.response import QueryResult
from grounded_qa.monitoring.metrics import (
    attribution_rule_total,
    cache_hits_total,
    cache_misses_total,
)
from grounded_qa.services.attribution import parse_primary_sources, resolve_sources
from grounded_qa.services.cache import ResponseCache, build_cache_key
from grounded_qa.services.context_assembler import ContextAssembler
from grounded_qa.services.embedding import TASK_RETRIEVAL_QUERY, EmbeddingService
from grounded_qa.services.llm import LLMService
from grounded_qa.services.prompt import PromptFormatter
from grounded_qa.services.query_planner import QueryPlanner
from grounded_qa.services.retriever import Retriever, apply_title_filter

logger = logging.getLogger(__name__)

NO_CONTEXT_NOTE = "I couldn't find relevant information in your documents for this question."
LLM_FALLBACK_ANSWER = "I couldn't generate an answer right now. Please try again."


class QueryProcessor:
    """Processes grounded RAG queries end to end."""

    def __init__(
        self,
        embedding_service: EmbeddingService,
        retriever: Retriever,
        llm_service: LLMService,
        cache: ResponseCache,
        planner: Optional[QueryPlanner] = None,
        context_assembler: Optional[ContextAssembler] = None,
        prompt_formatter: Optional[PromptFormatter] = None,
    ) -> None:
        """
        Initialize query processor.

        Args:
            embedding_service: Embedding generation service.
            retriever: Ranked chunk retrieval.
            llm_service: LLM service.
            cache: Response cache.
            planner: Query planner.
            context_assembler: Context block builder.
            prompt_formatter: Prompt contract.
        """
        self.embedding_service = embedding_service
        self.retriever = retriever
        self.llm_service = llm_service
        self.cache = cache
        self.planner = planner or QueryPlanner()
        self.context_assembler = context_assembler or ContextAssembler()
        self.prompt_formatter = prompt_formatter or PromptFormatter()
        self.top_k = settings.top_k
        self.retrieval_threshold = settings.retrieval_threshold
        self.similarity_gap_threshold = settings.similarity_gap_threshold

    async def process_query(
        self,
        query: str,
        user_id: Optional[str] = None,
        source_types: Optional[List[str]] = None,
        history: Optional[List[dict]] = None,
        use_cache: bool = True,
    ) -> QueryResult:
        """
        Answer a query from the user's documents.

        Args:
            query: User query.
            user_id: Caller identity, used for index filtering and cache keys.
            source_types: Explicit source-type filter; overrides the planner.
            history: Prior conversation turns.
            use_cache: Whether to read and write the response cache.

        Returns:
            Answer text, resolved sources and pipeline metadata.

        Raises:
            EmbeddingError: If the query itself cannot be embedded.
        """
        cache_key = build_cache_key(query, SearchFilters(source_types=source_types), user_id)
        if use_cache:
            cached = await self.cache.get(cache_key)
            if cached:
                cache_hits_total.inc()
                logger.info(f"Cache hit for query: {query[:50]}...")
                return QueryResult(**{**cached, "from_cache": True})
            cache_misses_total.inc()

        plan = self.planner.plan(query)
        filters = SearchFilters(
            owner_id=user_id,
            source_types=source_types or plan.source_type_filter,
        )

        query_vector = await self.embedding_service.embed(query, TASK_RETRIEVAL_QUERY)
        retrieved = await self.retriever.retrieve(
            query_vector,
            filters=filters,
            limit=self.top_k,
            threshold=self.retrieval_threshold,
        )
        logger.info(f"Found {len(retrieved)} relevant chunks for query: {query[:50]}")

        outcome = apply_title_filter(retrieved, plan.target_title)
        final_chunks = outcome.chunks

        context = self.context_assembler.assemble(final_chunks, query)
        prompt = self.prompt_formatter.format(query, context.text, history)

        try:
            raw_answer = await self.llm_service.generate(prompt)
        except LLMError as e:
            logger.error(f"Answer generation failed: {str(e)}")
            return QueryResult(
                response_text=LLM_FALLBACK_ANSWER,
                sources=[],
                metadata={"chunks_found": len(retrieved), "error": "generation_failed"},
            )

        answer, declared_ids = parse_primary_sources(raw_answer)
        if not declared_ids:
            logger.debug("Model answer carried no Primary Sources trailer")

        attribution = resolve_sources(
            AttributionInput(
                final_chunks=final_chunks,
                target_title=plan.target_title,
                model_declared_ids=declared_ids,
                similarity_gap_threshold=self.similarity_gap_threshold,
            )
        )
        attribution_rule_total.labels(rule=attribution.rule.value).inc()
        logger.info(
            f"Attributed {len(attribution.sources)} sources via rule '{attribution.rule.value}'")

        if not final_chunks:
            answer = f"{NO_CONTEXT_NOTE}\n\n{answer}" if answer else NO_CONTEXT_NOTE

        result = QueryResult(
            response_text=answer,
            sources=attribution.sources,
            metadata={
                "chunks_found": len(retrieved),
                "chunks_used": context.used_chunks,
                "context_tokens": context.token_count,
                "source_type_filter": filters.source_types,
                "title_filter": {
                    "target_title": plan.target_title,
                    "requested": outcome.requested,
                    "applied": outcome.applied,
                },
                "attribution_rule": attribution.rule.value,
            },
        )

        if use_cache:
            try:
                await self.cache.put(cache_key, result.model_dump(), owner_id=user_id)
            except CacheError as e:
                logger.warning(f"Failed to cache response: {str(e)}")

        return result
