"""Tests for LLM-backed filter extraction."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from insight_flow.errors import ParseError, ProviderError
from insight_flow.extraction.llm import (
    FILTER_EXTRACTION_PROMPT,
    FILTER_EXTRACTION_TEMPERATURE,
    LLMFilterExtractor,
    parse_filter_response,
)


def _llm(content):
    llm = MagicMock()
    llm.complete = AsyncMock(return_value=content)
    return llm


class TestParseFilterResponse:
    def test_full_response(self):
        content = json.dumps(
            {
                "dateFilters": {"date_str": "2023-05-15"},
                "metadataFilters": {"status": "failed", "environment": "production"},
                "extractedQuery": "failures",
            }
        )

        result = parse_filter_response(content, "Show me failures from 2023-05-15")

        assert result.date_filters.date_str == "2023-05-15"
        assert result.metadata_filters.status == "failed"
        assert result.metadata_filters.environment == "production"
        assert result.rewritten_query == "failures"

    def test_null_groups(self):
        content = json.dumps({"dateFilters": None, "metadataFilters": None, "extractedQuery": "hello"})

        result = parse_filter_response(content, "hello")

        assert result.date_filters is None
        assert result.metadata_filters is None

    def test_missing_extracted_query_keeps_original(self):
        result = parse_filter_response(json.dumps({"dateFilters": {"year": 2023}}), "runs in 2023")
        assert result.rewritten_query == "runs in 2023"
        assert result.date_filters.year == 2023

    def test_blank_extracted_query_keeps_original(self):
        result = parse_filter_response(json.dumps({"extractedQuery": "   "}), "original")
        assert result.rewritten_query == "original"

    def test_date_range_alias(self):
        content = json.dumps({"dateFilters": {"dateRange": {"start": "2024-01-01", "end": "2024-01-31"}}})

        result = parse_filter_response(content, "q")

        assert result.date_filters.date_range.start == "2024-01-01"
        assert result.date_filters.date_range.end == "2024-01-31"

    def test_multiple_date_shapes_keep_highest_priority(self):
        content = json.dumps({"dateFilters": {"date_str": "2023-05-15", "month": 5, "year": 2023}})

        result = parse_filter_response(content, "q")

        assert result.date_filters.date_str == "2023-05-15"
        assert result.date_filters.month is None
        assert result.date_filters.year is None

    def test_invalid_date_group_dropped(self):
        content = json.dumps(
            {"dateFilters": {"date_str": "May 15th"}, "metadataFilters": {"status": "error"}}
        )

        result = parse_filter_response(content, "q")

        assert result.date_filters is None
        assert result.metadata_filters.status == "error"

    def test_unknown_vocabulary_values_dropped(self):
        content = json.dumps(
            {"metadataFilters": {"environment": "qa", "status": "FAILED", "is_correct": "false"}}
        )

        result = parse_filter_response(content, "q")

        assert result.metadata_filters.environment is None
        assert result.metadata_filters.status == "failed"
        assert result.metadata_filters.is_correct is False

    def test_all_metadata_invalid_is_none(self):
        result = parse_filter_response(json.dumps({"metadataFilters": {"environment": "qa"}}), "q")
        assert result.metadata_filters is None

    def test_not_json_raises(self):
        with pytest.raises(ParseError):
            parse_filter_response("Sure! Here are the filters:", "q")

    def test_json_array_raises(self):
        with pytest.raises(ParseError):
            parse_filter_response("[1, 2]", "q")


class TestLLMFilterExtractor:
    @pytest.mark.asyncio
    async def test_requests_json_mode_at_low_temperature(self):
        llm = _llm(json.dumps({"extractedQuery": "deploys"}))
        extractor = LLMFilterExtractor(llm, model="gpt-3.5-turbo-0125")

        await extractor.extract("deploys last week")

        args, kwargs = llm.complete.call_args
        assert args[0] == FILTER_EXTRACTION_PROMPT
        assert "deploys last week" in args[1]
        assert kwargs["temperature"] == FILTER_EXTRACTION_TEMPERATURE == 0.1
        assert kwargs["json_mode"] is True
        assert kwargs["model"] == "gpt-3.5-turbo-0125"

    @pytest.mark.asyncio
    async def test_empty_provider_response_is_unfiltered(self):
        extractor = LLMFilterExtractor(_llm(None))

        result = await extractor.extract("Show me failures from 2023-05-15")

        assert result.date_filters is None
        assert result.metadata_filters is None
        assert result.rewritten_query == "Show me failures from 2023-05-15"

    @pytest.mark.asyncio
    async def test_unparseable_response_is_unfiltered(self):
        extractor = LLMFilterExtractor(_llm("not json at all"))

        result = await extractor.extract("billing issues")

        assert result.date_filters is None
        assert result.metadata_filters is None
        assert result.rewritten_query == "billing issues"

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self):
        llm = MagicMock()
        llm.complete = AsyncMock(side_effect=ProviderError("timeout", provider="openai"))
        extractor = LLMFilterExtractor(llm)

        with pytest.raises(ProviderError):
            await extractor.extract("billing issues")
