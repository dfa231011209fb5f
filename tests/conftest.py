"""
Shared test fixtures and configuration for the test suite.

Provides: environment defaults for settings, retrieved-chunk factory, fake clock
"""

import os

os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("CACHE_BACKEND", "memory")

import pytest

from grounded_qa.models.document import RetrievedChunk


def make_chunk(
    document_id: str,
    similarity: float = 0.9,
    name: str = None,
    document_type: str = "upload",
    chunk_index: int = 0,
    content: str = "chunk content",
) -> RetrievedChunk:
    return RetrievedChunk(
        document_id=document_id,
        document_name=document_id if name is None else name,
        document_type=document_type,
        chunk_index=chunk_index,
        content=content,
        similarity=similarity,
    )


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def chunk_factory():
    """Provide a RetrievedChunk factory."""
    return make_chunk


@pytest.fixture
def fake_clock() -> FakeClock:
    """Provide a controllable clock."""
    return FakeClock()
