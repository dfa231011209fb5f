"""Tests for source-type inference and target-title extraction."""

import pytest

from grounded_qa.services.query_planner import (
    QueryPlanner,
    clean_title,
    extract_target_title,
    infer_source_types,
)


class TestInferSourceTypes:
    """Ordered keyword rules."""

    @pytest.mark.parametrize(
        "query,expected",
        [
            ("Show me my Notion pages about budgets", ["notion"]),
            ("What's in my uploaded files about taxes?", ["upload"]),
            ("Any email from the landlord in my inbox?", ["gmail"]),
            ("What meetings are on my calendar tomorrow?", ["google_calendar"]),
        ],
    )
    def test_rules_match(self, query, expected) -> None:
        """Should map keyword combinations onto source types."""
        assert infer_source_types(query) == expected

    def test_first_rule_wins(self) -> None:
        """Should use the earliest matching rule when several apply."""
        assert infer_source_types("Find notes in Notion and my files") == ["notion"]

    def test_notion_alone_is_not_enough(self) -> None:
        """Should require both word sets of a rule."""
        assert infer_source_types("How do I install Notion?") is None

    def test_generic_question_unfiltered(self) -> None:
        """Should search everything when nothing matches."""
        assert infer_source_types("What is the capital of France?") is None


class TestExtractTargetTitle:
    """Called/named and trailing-quote phrasings."""

    @pytest.mark.parametrize(
        "query,expected",
        [
            ("Summarize the document called 'Q3 Planning'", "Q3 Planning"),
            ("What is in the page named Project Plan on Notion?", "Project Plan"),
            ("Summarize the file called Budget Notes.", "Budget Notes"),
            ("Show the page Named Sprint Review", "Sprint Review"),
            ('Tell me about "Team Offsite"', "Team Offsite"),
            ('Summarize "Roadmap 2025" on Notion.', "Roadmap 2025"),
        ],
    )
    def test_titles_extracted(self, query, expected) -> None:
        """Should return the cleaned document title."""
        assert extract_target_title(query) == expected

    @pytest.mark.parametrize(
        "query",
        [
            "What is the capital of France?",
            "What is the file called?",
            'Open the doc named ""',
        ],
    )
    def test_no_title(self, query) -> None:
        """Should return None when no usable title is present."""
        assert extract_target_title(query) is None

    def test_clean_title_strips_punctuation_and_quotes(self) -> None:
        """Should trim quotes and trailing punctuation."""
        assert clean_title("  'Weekly Sync'?! ") == "Weekly Sync"
        assert clean_title(" ?? ") is None


class TestQueryPlanner:
    """Combined plan."""

    def test_plan_combines_filter_and_title(self) -> None:
        """Should infer both the filter and the target document."""
        plan = QueryPlanner().plan("Summarize the Notion page called 'Weekly Sync'")

        assert plan.source_type_filter == ["notion"]
        assert plan.target_title == "Weekly Sync"

    def test_plan_empty_for_plain_question(self) -> None:
        """Should leave both fields unset for a plain question."""
        plan = QueryPlanner().plan("What is the capital of France?")

        assert plan.source_type_filter is None
        assert plan.target_title is None
