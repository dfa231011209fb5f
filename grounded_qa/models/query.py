"""Query planning, retrieval filter and attribution signal models."""

from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field

from grounded_qa.models.document import RetrievedChunk
from grounded_qa.models.response import Source


class SearchFilters(BaseModel):
    """Metadata filters applied to a vector index search."""

    owner_id: Optional[str] = None
    source_types: Optional[List[str]] = None

    def cache_fragment(self) -> str:
        """Stable serialization of the filters for cache keys."""
        if not self.source_types:
            return "all"
        return ",".join(sorted(set(self.source_types)))


class QueryPlan(BaseModel):
    """What the planner inferred from the raw query text."""

    source_type_filter: Optional[List[str]] = None
    target_title: Optional[str] = None


class TitleMatch(BaseModel):
    """The query named a document that is present in the retrieved set."""

    kind: Literal["title_match"] = "title_match"
    title: str


class ModelDeclared(BaseModel):
    """The model listed the documents it used in its trailer."""

    kind: Literal["model_declared"] = "model_declared"
    ids: List[str]


class NoSignal(BaseModel):
    """Neither the query nor the model pointed at specific documents."""

    kind: Literal["none"] = "none"


AttributionSignal = Union[TitleMatch, ModelDeclared, NoSignal]


class AttributionRule(str, Enum):
    """Which precedence rule produced the final source list."""

    TITLE_MATCH = "title_match"
    MODEL_DECLARED = "model_declared"
    SINGLE_CHUNK = "single_chunk"
    SIMILARITY_GAP = "similarity_gap"
    DEFAULT = "default"
    EMPTY = "empty"


class AttributionResult(BaseModel):
    """Resolved citation list and the rule that produced it."""

    sources: List[Source] = Field(default_factory=list)
    rule: AttributionRule
    signal: AttributionSignal = Field(default_factory=NoSignal)


class AttributionInput(BaseModel):
    """Everything the attribution resolver needs for one response."""

    final_chunks: List[RetrievedChunk] = Field(default_factory=list)
    target_title: Optional[str] = None
    model_declared_ids: List[str] = Field(default_factory=list)
    similarity_gap_threshold: float = 0.05
