"""Filter extraction strategies."""

from typing import Protocol

from insight_flow.contracts.filters import FilterExtraction
from insight_flow.extraction.llm import LLMFilterExtractor, parse_filter_response
from insight_flow.extraction.pattern import (
    PatternFilterExtractor,
    extract_date_filters,
    extract_metadata_filters,
)


class FilterExtractor(Protocol):
    """extract(query) -> filters plus the query to embed."""

    name: str

    async def extract(self, query: str) -> FilterExtraction:
        ...


__all__ = [
    "FilterExtractor",
    "LLMFilterExtractor",
    "PatternFilterExtractor",
    "extract_date_filters",
    "extract_metadata_filters",
    "parse_filter_response",
]
