"""Tests for retrieval ranking, degradation and the title filter."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from grounded_qa.core.exceptions import RetrievalError
from grounded_qa.models.query import SearchFilters
from grounded_qa.services.retriever import Retriever, apply_title_filter
from grounded_qa.services.vector_db import build_query_filter


@pytest.fixture
def vector_db():
    """Provide a mocked vector database."""
    db = MagicMock()
    db.search = AsyncMock(return_value=[])
    return db


class TestRetriever:
    """Ranked, bounded, thresholded results."""

    @pytest.mark.asyncio
    async def test_sorted_thresholded_and_bounded(self, vector_db, chunk_factory) -> None:
        """Should drop low scores, sort descending and cap at the limit."""
        vector_db.search.return_value = [
            chunk_factory("a", 0.75),
            chunk_factory("b", 0.95),
            chunk_factory("c", 0.60),
            chunk_factory("d", 0.85),
        ]
        chunks = await Retriever(vector_db).retrieve([0.1], SearchFilters(), limit=2, threshold=0.7)

        assert [c.document_id for c in chunks] == ["b", "d"]

    @pytest.mark.asyncio
    async def test_ties_keep_index_order(self, vector_db, chunk_factory) -> None:
        """Should keep the index order for equal scores."""
        vector_db.search.return_value = [
            chunk_factory("first", 0.8),
            chunk_factory("second", 0.8),
        ]
        chunks = await Retriever(vector_db).retrieve([0.1], None, limit=5, threshold=0.5)

        assert [c.document_id for c in chunks] == ["first", "second"]

    @pytest.mark.asyncio
    async def test_passes_filters_to_index(self, vector_db) -> None:
        """Should forward limit, threshold and filters."""
        filters = SearchFilters(owner_id="u1", source_types=["notion"])
        await Retriever(vector_db).retrieve([0.1], filters, limit=3, threshold=0.4)

        kwargs = vector_db.search.call_args.kwargs
        assert kwargs["filters"] == filters
        assert kwargs["limit"] == 3
        assert kwargs["threshold"] == 0.4

    @pytest.mark.asyncio
    async def test_index_failure_degrades_to_empty(self, vector_db) -> None:
        """Should return no chunks instead of raising."""
        vector_db.search.side_effect = RetrievalError("index down")

        assert await Retriever(vector_db).retrieve([0.1], None, limit=5, threshold=0.5) == []


class TestApplyTitleFilter:
    """Narrowing to a named document."""

    def test_no_title(self, chunk_factory) -> None:
        """Should leave chunks untouched when no title was requested."""
        chunks = [chunk_factory("a"), chunk_factory("b")]
        outcome = apply_title_filter(chunks, None)

        assert outcome.chunks == chunks
        assert (outcome.requested, outcome.applied) == (False, False)

    def test_matching_title(self, chunk_factory) -> None:
        """Should keep only chunks of the named document, ignoring case."""
        chunks = [chunk_factory("a", name="Alpha"), chunk_factory("b", name="Beta")]
        outcome = apply_title_filter(chunks, "alpha")

        assert [c.document_id for c in outcome.chunks] == ["a"]
        assert (outcome.requested, outcome.applied) == (True, True)

    def test_unmatched_title_falls_back(self, chunk_factory) -> None:
        """Should keep all chunks when none carry the title."""
        chunks = [chunk_factory("a", name="Alpha"), chunk_factory("b", name="Beta")]
        outcome = apply_title_filter(chunks, "Gamma")

        assert outcome.chunks == chunks
        assert (outcome.requested, outcome.applied) == (True, False)


class TestBuildQueryFilter:
    """Qdrant payload filter translation."""

    def test_unrestricted(self) -> None:
        """Should produce no filter when nothing is restricted."""
        assert build_query_filter(None) is None
        assert build_query_filter(SearchFilters()) is None

    def test_owner_and_source_types(self) -> None:
        """Should restrict by owner and document type."""
        query_filter = build_query_filter(
            SearchFilters(owner_id="u1", source_types=["notion", "gmail"]))

        keys = [condition.key for condition in query_filter.must]
        assert keys == ["owner_id", "document_type"]
        assert query_filter.must[1].match.any == ["notion", "gmail"]
