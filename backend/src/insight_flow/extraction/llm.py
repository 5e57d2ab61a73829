"""LLM-backed filter extraction with JSON-mode completions."""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from insight_flow.contracts.filters import (
    ENVIRONMENTS,
    STATUSES,
    DateFilter,
    FilterExtraction,
    MetadataFilter,
)
from insight_flow.errors import ParseError
from insight_flow.logging_config import get_logger
from insight_flow.services.llm import ChatCompletionClient

logger = get_logger(__name__)

FILTER_EXTRACTION_TEMPERATURE = 0.1

FILTER_EXTRACTION_PROMPT = """You extract search filters from user queries about logged agent runs.
Identify any date filters and metadata filters mentioned in the query.

Date filters may be:
- Specific dates ("2023-05-15", "May 15, 2023")
- Relative dates ("yesterday", "today", "last week", "this month", "last month")
- Months ("January", "February", ...)
- Years ("2023", "this year", "last year")
- Ranges ("between March and June", "last 7 days")

Metadata filters may be:
- Environment: production, development, staging, test
- Status: success, failed, error, pending
- Correctness: correct responses, incorrect outputs, wrong answers

Answer with a single JSON object of this shape:
{
  "dateFilters": {...} or null when no date filter is present,
  "metadataFilters": {...} or null when no metadata filter is present,
  "extractedQuery": "the query with filter references removed, for semantic search"
}

Use exactly one date filter shape:
- Exact date: {"date_str": "YYYY-MM-DD"}
- Month: {"month": 1-12} optionally with {"year": YYYY}
- Year: {"year": YYYY}
- Range: {"dateRange": {"start": "YYYY-MM-DD", "end": "YYYY-MM-DD"}}

Metadata keys: "environment", "status", "is_correct" (true/false).
Always normalize dates to ISO format (YYYY-MM-DD)."""


def _coerce_metadata(raw: Any) -> MetadataFilter | None:
    """Keep only known keys with values from the closed vocabularies."""
    if not isinstance(raw, dict):
        return None
    environment = raw.get("environment")
    status = raw.get("status")
    is_correct = raw.get("is_correct", raw.get("isCorrect"))

    if isinstance(environment, str):
        environment = environment.strip().lower()
    if environment not in ENVIRONMENTS:
        environment = None
    if isinstance(status, str):
        status = status.strip().lower()
    if status not in STATUSES:
        status = None
    if isinstance(is_correct, str) and is_correct.strip().lower() in ("true", "false"):
        is_correct = is_correct.strip().lower() == "true"
    if not isinstance(is_correct, bool):
        is_correct = None

    filters = MetadataFilter(environment=environment, status=status, is_correct=is_correct)
    return None if filters.is_empty else filters


def _coerce_dates(raw: Any) -> DateFilter | None:
    if not isinstance(raw, dict) or not raw:
        return None
    try:
        filters = DateFilter.model_validate(raw)
    except ValidationError as e:
        logger.warning("llm_date_filters_discarded", errors=e.error_count())
        return None
    return None if filters.is_empty else filters


def parse_filter_response(content: str, query: str) -> FilterExtraction:
    """
    Parse the model's JSON answer.

    Raises ParseError if the content is not a JSON object. Individual
    filter groups with an invalid shape are dropped, not fatal.
    """
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, TypeError) as e:
        raise ParseError("Filter response is not valid JSON", context={"preview": str(content)[:100]}) from e
    if not isinstance(data, dict):
        raise ParseError("Filter response is not a JSON object", context={"type": type(data).__name__})

    rewritten = data.get("extractedQuery")
    if not isinstance(rewritten, str) or not rewritten.strip():
        rewritten = query

    return FilterExtraction(
        date_filters=_coerce_dates(data.get("dateFilters")),
        metadata_filters=_coerce_metadata(data.get("metadataFilters")),
        rewritten_query=rewritten.strip(),
    )


class LLMFilterExtractor:
    """
    Ask the completion provider for filters in JSON mode.

    Parse failures and empty answers degrade to "no filters, original
    query". Provider errors propagate so the calling stage can log and
    apply its own fallback.
    """

    name = "llm"

    def __init__(self, llm: ChatCompletionClient, model: str | None = None):
        self.llm = llm
        self.model = model

    async def extract(self, query: str) -> FilterExtraction:
        content = await self.llm.complete(
            FILTER_EXTRACTION_PROMPT,
            f'Extract filters from this query: "{query}"',
            temperature=FILTER_EXTRACTION_TEMPERATURE,
            model=self.model,
            json_mode=True,
        )
        if content is None:
            logger.warning("llm_filter_response_empty")
            return FilterExtraction.unfiltered(query)
        try:
            return parse_filter_response(content, query)
        except ParseError as e:
            logger.error("llm_filter_response_unparseable", code=e.code, **e.context)
            return FilterExtraction.unfiltered(query)
