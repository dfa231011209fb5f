"""Query planning: source-type filter and target-document inference."""

import logging
import re
from typing import FrozenSet, List, NamedTuple, Optional

from grounded_qa.models.document import SourceType
from grounded_qa.models.query import QueryPlan

logger = logging.getLogger(__name__)


class SourceTypeRule(NamedTuple):
    """Restrict retrieval to source_types when the query mentions both word sets."""

    name: str
    any_of: FrozenSet[str]
    and_any_of: FrozenSet[str]
    source_types: List[str]


SOURCE_TYPE_RULES = [
    SourceTypeRule(
        "notion_pages",
        frozenset({"notion"}),
        frozenset({"document", "documents", "page", "pages", "note", "notes"}),
        [SourceType.NOTION.value],
    ),
    SourceTypeRule(
        "uploaded_files",
        frozenset({"my", "uploaded"}),
        frozenset({"file", "files"}),
        [SourceType.UPLOAD.value],
    ),
    SourceTypeRule(
        "mail",
        frozenset({"email", "emails", "mail", "gmail"}),
        frozenset({"email", "emails", "mail", "gmail"}),
        [SourceType.GMAIL.value],
    ),
    SourceTypeRule(
        "calendar",
        frozenset({"calendar", "meeting", "meetings", "event", "events"}),
        frozenset({"calendar", "meeting", "meetings", "event", "events"}),
        [SourceType.GOOGLE_CALENDAR.value],
    ),
]

_OPEN_QUOTES = "\"'“‘"
_CLOSE_QUOTES = "\"'”’"
_QUALIFIER = r"(?:\s+on\s+.+?)?"
_TRAILER = r"\s*[?!.]*\s*$"

# (a) "... called X", "... named 'X' on Notion?"
CALLED_PATTERN = re.compile(
    r"\b(?:called|named)\s+"
    rf"(?:[{_OPEN_QUOTES}](?P<quoted>[^{_CLOSE_QUOTES}]+)[{_CLOSE_QUOTES}]|(?P<bare>.+?))"
    rf"{_QUALIFIER}{_TRAILER}",
    re.IGNORECASE,
)

# (b) a quoted span closing the query: 'tell me about "X"', "... 'X' on Notion"
QUOTED_PATTERN = re.compile(
    rf"[{_OPEN_QUOTES}](?P<quoted>[^{_CLOSE_QUOTES}]+)[{_CLOSE_QUOTES}]"
    rf"{_QUALIFIER}{_TRAILER}",
    re.IGNORECASE,
)


def infer_source_types(query: str) -> Optional[List[str]]:
    """
    Match the query against the ordered source-type rules.

    Args:
        query: Raw user query.

    Returns:
        Source types of the first matching rule, or None to search everything.
    """
    words = set(re.findall(r"[a-z]+", query.lower()))
    for rule in SOURCE_TYPE_RULES:
        if words & rule.any_of and words & rule.and_any_of:
            logger.debug(f"Source-type rule '{rule.name}' matched")
            return list(rule.source_types)
    return None


def clean_title(candidate: str) -> Optional[str]:
    """Trim quotes, whitespace and trailing punctuation; empty means no title."""
    title = candidate.strip().strip(_OPEN_QUOTES + _CLOSE_QUOTES).strip()
    title = title.rstrip("?!.").strip()
    title = title.strip(_OPEN_QUOTES + _CLOSE_QUOTES).strip()
    return title or None


def extract_target_title(query: str) -> Optional[str]:
    """
    Extract the name of a specific document the query asks about.

    Only two phrasings are recognized: text after "called"/"named", and a
    quoted span at the end of the query. Anything else yields None.

    Args:
        query: Raw user query with original casing.

    Returns:
        The cleaned title, or None.
    """
    for pattern in (CALLED_PATTERN, QUOTED_PATTERN):
        match = pattern.search(query)
        if not match:
            continue
        candidate = match.group("quoted") or match.groupdict().get("bare") or ""
        title = clean_title(candidate)
        if title:
            return title
    return None


class QueryPlanner:
    """Inspects raw queries before retrieval."""

    def plan(self, query: str) -> QueryPlan:
        """
        Plan retrieval for a query.

        Args:
            query: Raw user query.

        Returns:
            Inferred source-type filter and target title.
        """
        plan = QueryPlan(
            source_type_filter=infer_source_types(query),
            target_title=extract_target_title(query),
        )
        if plan.target_title:
            logger.info(f"Query targets document: \"{plan.target_title}\"")
        return plan
