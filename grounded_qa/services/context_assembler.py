"""Context assembly for LLM prompts."""

import logging
from typing import Dict, List, Optional, Tuple

from grounded_qa.core.config import settings
from grounded_qa.models.document import RetrievedChunk
from grounded_qa.models.response import AssembledContext

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4
MIN_TRUNCATED_CHARS = 100


def estimate_tokens(text: str) -> int:
    return (len(text) + CHARS_PER_TOKEN - 1) // CHARS_PER_TOKEN


class ContextAssembler:
    """Builds a token-budgeted context block from ranked chunks."""

    def __init__(self, max_tokens: Optional[int] = None, reserved_tokens: Optional[int] = None) -> None:
        """
        Initialize the context assembler.

        Args:
            max_tokens: Total token budget for the prompt context.
            reserved_tokens: Tokens kept free for instructions and the question.
        """
        self.max_tokens = max_tokens or settings.max_context_tokens
        self.reserved_tokens = (
            reserved_tokens if reserved_tokens is not None else settings.reserved_context_tokens)

    @property
    def max_chars(self) -> int:
        return max(self.max_tokens - self.reserved_tokens, 0) * CHARS_PER_TOKEN

    def _select(self, chunks: List[RetrievedChunk]) -> List[Tuple[RetrievedChunk, str]]:
        """
        Take chunks in rank order until the character budget is used up.

        Args:
            chunks: Ranked chunks.

        Returns:
            Selected chunks paired with their (possibly truncated) content.
        """
        selected = []
        total_chars = 0

        for chunk in chunks:
            content_length = len(chunk.content)
            separator_length = 2 if selected else 0

            if total_chars + content_length + separator_length <= self.max_chars:
                selected.append((chunk, chunk.content))
                total_chars += content_length + separator_length
            else:
                remaining_space = self.max_chars - total_chars - separator_length
                if remaining_space > MIN_TRUNCATED_CHARS:
                    selected.append((chunk, chunk.content[:remaining_space]))
                break

        return selected

    def assemble(self, chunks: List[RetrievedChunk], query: str) -> AssembledContext:
        """
        Assemble a context block for a query.

        Chunks are grouped by document in first-seen order and each group is
        ordered by chunk index.

        Args:
            chunks: Ranked chunks to draw from.
            query: The user query.

        Returns:
            Context text, per-document source references and token estimate.
        """
        selected = self._select(chunks)
        if not selected:
            return AssembledContext()

        groups: Dict[str, List[Tuple[RetrievedChunk, str]]] = {}
        for chunk, content in selected:
            groups.setdefault(chunk.document_id, []).append((chunk, content))

        blocks = []
        sources = []
        for document_id, members in groups.items():
            members.sort(key=lambda pair: pair[0].chunk_index)
            first = members[0][0]
            sources.append(
                {
                    "id": document_id,
                    "title": first.display_name,
                    "document_type": first.document_type,
                }
            )
            for chunk, content in members:
                header = (
                    f"Source Document: {chunk.display_name} "
                    f"(ID: {chunk.document_id}, Type: {chunk.document_type or 'unknown'}, "
                    f"Chunk: {chunk.chunk_index})"
                )
                url = chunk.metadata.get("url")
                if url:
                    header += f"\nURL: {url}"
                blocks.append(
                    f"--- Chunk Start ---\n{header}\n\n{content}\n--- Chunk End ---")

        text = "\n\n".join(blocks)
        logger.debug(
            f"Assembled {len(selected)}/{len(chunks)} chunks for query: {query[:50]}")
        return AssembledContext(
            text=text,
            sources=sources,
            token_count=estimate_tokens(text),
            used_chunks=len(selected),
        )
