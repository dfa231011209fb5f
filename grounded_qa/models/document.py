"""Document models for the RAG system."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SourceType(str, Enum):
    """Connector or category a document originates from."""

    UPLOAD = "upload"
    NOTION = "notion"
    GMAIL = "gmail"
    GOOGLE_CALENDAR = "google_calendar"


class DocumentChunk(BaseModel):
    """Chunk model representing a document fragment."""

    document_id: str
    chunk_index: int = Field(ge=0)
    content: str
    metadata: dict = Field(default_factory=dict)


class RetrievedChunk(BaseModel):
    """Read-only projection of a stored chunk returned by the vector index."""

    model_config = {"frozen": True}

    document_id: str
    document_name: str = ""
    document_type: str = ""
    chunk_index: int = 0
    content: str = ""
    similarity: float = Field(default=0.0, ge=0.0, le=1.0)
    metadata: dict = Field(default_factory=dict)

    @property
    def display_name(self) -> str:
        """Document name with a short-id fallback for untitled documents."""
        return self.document_name or f"Document {self.document_id[:8]}"


class DocumentIngestRequest(BaseModel):
    """A single document handed over by a connector or upload for ingestion."""

    document_id: str = Field(..., min_length=1)
    text: str
    source_type: str = SourceType.UPLOAD.value
    title: str = ""
    owner_id: Optional[str] = None
    metadata: dict = Field(default_factory=dict)


class IngestResult(BaseModel):
    """Outcome of ingesting one document."""

    document_id: str
    status: str
    chunk_count: int = 0
    stage: Optional[str] = None
    error: Optional[str] = None
