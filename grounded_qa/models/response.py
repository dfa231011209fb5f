"""Response models produced by the query pipeline."""

from typing import List, Optional

from pydantic import BaseModel, Field


class Source(BaseModel):
    """User-facing citation for one document."""

    title: str
    content: Optional[str] = None


class AssembledContext(BaseModel):
    """Token-budgeted context block built from retrieved chunks."""

    text: str = ""
    sources: List[dict] = Field(default_factory=list)
    token_count: int = 0
    used_chunks: int = 0


class FormattedPrompt(BaseModel):
    """System and user messages sent to the language model."""

    system_message: str
    user_message: str


class QueryResult(BaseModel):
    """Final response of the grounded-retrieval pipeline."""

    response_text: str
    sources: List[Source] = Field(default_factory=list)
    from_cache: bool = False
    metadata: dict = Field(default_factory=dict)
