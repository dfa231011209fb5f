"""Source attribution for generated answers.

Reconciles three signals into the list of sources shown to the user, in
fixed precedence order:

    a. the document title named in the query, if it was retrieved
    b. document IDs the model declared in its "Primary Sources" trailer
    c. a single retrieved chunk
    d. a clear similarity lead of the top chunk over the runner-up
    e. every retrieved document

Everything here is a pure function of its inputs.
"""

import logging
import re
from typing import Dict, List, Tuple

from grounded_qa.models.document import RetrievedChunk
from grounded_qa.models.query import (
    AttributionInput,
    AttributionResult,
    AttributionRule,
    AttributionSignal,
    ModelDeclared,
    NoSignal,
    TitleMatch,
)
from grounded_qa.models.response import Source
from grounded_qa.services.prompt import TRAILER_LABEL

logger = logging.getLogger(__name__)

TRAILER_PATTERN = re.compile(
    rf"^[ \t]*{re.escape(TRAILER_LABEL)}[ \t]*(?P<ids>.*?)[ \t]*$", re.MULTILINE)

DOCUMENT_TYPE_LABELS: Dict[str, str] = {
    "notion": "Notion",
    "upload": "File",
    "gmail": "Email",
    "google_calendar": "Calendar",
}

SNIPPET_LENGTH = 100


def parse_primary_sources(text: str) -> Tuple[str, List[str]]:
    """
    Split the model's trailer off its answer.

    Args:
        text: Raw model output.

    Returns:
        Tuple of (visible answer text, declared IDs in first-seen order).
        A missing trailer yields an empty ID list.
    """
    matches = list(TRAILER_PATTERN.finditer(text))
    if not matches:
        return text.strip(), []

    ids: List[str] = []
    for raw_id in matches[-1].group("ids").split(","):
        doc_id = raw_id.strip()
        if doc_id and doc_id not in ids:
            ids.append(doc_id)

    visible = TRAILER_PATTERN.sub("", text)
    visible = re.sub(r"\n{3,}", "\n\n", visible).strip()
    return visible, ids


def source_title(chunk: RetrievedChunk) -> str:
    """Document name prefixed with a label for its source type."""
    label = DOCUMENT_TYPE_LABELS.get(chunk.document_type)
    if label:
        return f"{label}: {chunk.display_name}"
    return chunk.display_name


def _snippet(content: str) -> str:
    if len(content) <= SNIPPET_LENGTH:
        return content
    return content[:SNIPPET_LENGTH] + "..."


def _unique_documents(chunks: List[RetrievedChunk]) -> List[Source]:
    sources: List[Source] = []
    seen = set()
    for chunk in chunks:
        if chunk.document_id in seen:
            continue
        seen.add(chunk.document_id)
        sources.append(Source(title=source_title(chunk), content=_snippet(chunk.content)))
    return sources


def _title_matches(chunk: RetrievedChunk, title: str) -> bool:
    return chunk.document_name.strip().lower() == title.strip().lower()


def _declared_matches(chunk: RetrievedChunk, ids: List[str]) -> bool:
    document_id = chunk.document_id.lower()
    return any(document_id.startswith(doc_id.lower()) for doc_id in ids)


def select_signal(attribution: AttributionInput) -> AttributionSignal:
    """
    Pick the authoritative signal for this response.

    A title only counts when a retrieved chunk carries it, and declared IDs
    only count when at least one of them prefixes a retrieved document ID.
    """
    chunks = attribution.final_chunks
    title = attribution.target_title
    if title and any(_title_matches(c, title) for c in chunks):
        return TitleMatch(title=title)

    ids = [i for i in attribution.model_declared_ids if i.strip()]
    if ids and any(_declared_matches(c, ids) for c in chunks):
        return ModelDeclared(ids=ids)

    return NoSignal()


def resolve_sources(attribution: AttributionInput) -> AttributionResult:
    """
    Produce the de-duplicated source list for a response.

    Args:
        attribution: Final chunks plus the title and declared-ID signals.

    Returns:
        Sources in display order with the rule that produced them.
    """
    chunks = attribution.final_chunks
    signal = select_signal(attribution)

    if not chunks:
        return AttributionResult(sources=[], rule=AttributionRule.EMPTY, signal=signal)

    if isinstance(signal, TitleMatch):
        matched = [c for c in chunks if _title_matches(c, signal.title)]
        return AttributionResult(
            sources=_unique_documents(matched), rule=AttributionRule.TITLE_MATCH, signal=signal)

    if isinstance(signal, ModelDeclared):
        matched = [c for c in chunks if _declared_matches(c, signal.ids)]
        return AttributionResult(
            sources=_unique_documents(matched), rule=AttributionRule.MODEL_DECLARED, signal=signal)

    if len(chunks) == 1:
        return AttributionResult(
            sources=_unique_documents(chunks), rule=AttributionRule.SINGLE_CHUNK, signal=signal)

    ranked = sorted(chunks, key=lambda c: c.similarity, reverse=True)
    gap = ranked[0].similarity - ranked[1].similarity
    if gap > attribution.similarity_gap_threshold:
        return AttributionResult(
            sources=_unique_documents(ranked[:1]), rule=AttributionRule.SIMILARITY_GAP, signal=signal)

    return AttributionResult(
        sources=_unique_documents(chunks), rule=AttributionRule.DEFAULT, signal=signal)
