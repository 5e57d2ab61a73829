"""Deterministic filter extraction by keyword and pattern matching."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Callable

from insight_flow.contracts.filters import (
    DateFilter,
    DateRange,
    FilterExtraction,
    MetadataFilter,
)

_ISO_DATE_RE = re.compile(r"(\d{4}-\d{2}-\d{2})")
_YEAR_RE = re.compile(r"\b(20\d{2})\b")

MONTH_NAMES: tuple[str, ...] = (
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
)

# Vocabulary order decides which value wins when several are mentioned.
ENVIRONMENT_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("production", ("production",)),
    ("development", ("development",)),
    ("staging", ("staging",)),
    ("test", ("test",)),
)
STATUS_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("success", ("success",)),
    # "fail" also catches "failure(s)" and "failing"
    ("failed", ("failed", "fail")),
    ("error", ("error",)),
    ("pending", ("pending",)),
)
NEGATIVE_CORRECTNESS_KEYWORDS: tuple[str, ...] = ("incorrect", "wrong")
POSITIVE_CORRECTNESS_KEYWORD = "correct"


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def extract_date_filters(query: str, today: date | None = None) -> DateFilter | None:
    """
    Extract at most one date predicate.

    Priority: ISO date > "yesterday" > "today" > "last week" > month
    name (with optional 20xx year) > bare 20xx year. The first pattern
    that matches ends the search.
    """
    lowered = query.lower()
    today = today or _utc_today()

    exact = _ISO_DATE_RE.search(query)
    if exact:
        return DateFilter(date_str=exact.group(1))

    if "yesterday" in lowered:
        return DateFilter(date_str=(today - timedelta(days=1)).isoformat())

    if "today" in lowered:
        return DateFilter(date_str=today.isoformat())

    if "last week" in lowered:
        start = today - timedelta(days=7)
        return DateFilter(date_range=DateRange(start=start.isoformat(), end=today.isoformat()))

    for index, name in enumerate(MONTH_NAMES, start=1):
        if name in lowered:
            year = _YEAR_RE.search(query)
            return DateFilter(month=index, year=int(year.group(1)) if year else None)

    year = _YEAR_RE.search(query)
    if year:
        return DateFilter(year=int(year.group(1)))

    return None


def _first_keyword_match(
    lowered: str, vocabulary: tuple[tuple[str, tuple[str, ...]], ...]
) -> str | None:
    for value, keywords in vocabulary:
        if any(keyword in lowered for keyword in keywords):
            return value
    return None


def extract_metadata_filters(query: str) -> MetadataFilter | None:
    """Scan environment, status and correctness independently."""
    lowered = query.lower()

    is_correct: bool | None = None
    if any(keyword in lowered for keyword in NEGATIVE_CORRECTNESS_KEYWORDS):
        is_correct = False
    elif POSITIVE_CORRECTNESS_KEYWORD in lowered:
        is_correct = True

    filters = MetadataFilter(
        environment=_first_keyword_match(lowered, ENVIRONMENT_KEYWORDS),  # type: ignore[arg-type]
        status=_first_keyword_match(lowered, STATUS_KEYWORDS),  # type: ignore[arg-type]
        is_correct=is_correct,
    )
    return None if filters.is_empty else filters


class PatternFilterExtractor:
    """Non-LLM extractor; the query is passed through unchanged."""

    name = "pattern"

    def __init__(self, today: Callable[[], date] = _utc_today):
        self._today = today

    async def extract(self, query: str) -> FilterExtraction:
        return FilterExtraction(
            date_filters=extract_date_filters(query, today=self._today()),
            metadata_filters=extract_metadata_filters(query),
            rewritten_query=query,
        )
