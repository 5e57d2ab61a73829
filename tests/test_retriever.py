"""Tests for similarity retrieval and context item mapping."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from insight_flow.agents.retriever import Retriever, to_context_item
from insight_flow.contracts.context import EntryContextItem, InsightContextItem
from insight_flow.contracts.filters import DateFilter, MetadataFilter
from insight_flow.orchestration.filter_expression import build_filter_expression
from insight_flow.services.vector_store import VectorMatch


class TestToContextItem:
    def test_entry_from_ingested_metadata(self):
        match = VectorMatch(
            id="e1",
            score=0.91,
            metadata={
                "type": "entry",
                "input_text": "user: why did it fail?",
                "output": "Timeout.",
                "created_at": "2023-05-15T10:00:00Z",
            },
        )

        item = to_context_item(match)

        assert isinstance(item, EntryContextItem)
        assert item.input == "user: why did it fail?"
        assert item.output == "Timeout."
        assert item.score == 0.91

    def test_insight_selected_by_type_tag(self):
        match = VectorMatch(
            id="i1",
            score=0.5,
            metadata={"type": "insight", "problem": "P", "solution": "S"},
        )

        item = to_context_item(match)

        assert isinstance(item, InsightContextItem)
        assert item.problem == "P"
        assert item.solution == "S"
        assert item.created_at == ""

    def test_missing_fields_become_empty_strings(self):
        item = to_context_item(VectorMatch(id="x", score=0.1, metadata={}))

        assert isinstance(item, EntryContextItem)
        assert item.input == ""
        assert item.output == ""
        assert item.created_at == ""


class TestRetriever:
    @pytest.mark.asyncio
    async def test_unfiltered_results_in_store_order(self, embedder, seeded_store):
        retriever = Retriever(embedder, seeded_store)

        items = await retriever.retrieve("deploy problems")

        assert embedder.calls == ["deploy problems"]
        assert len(items) == 3
        assert [item.score for item in items] == sorted((item.score for item in items), reverse=True)
        assert items[0].output == "The deploy failed because the migration timed out."

    @pytest.mark.asyncio
    async def test_filter_narrows_candidates(self, embedder, seeded_store):
        retriever = Retriever(embedder, seeded_store)
        expression = build_filter_expression(
            DateFilter(date_str="2023-05-15"),
            MetadataFilter(status="failed"),
        )

        items = await retriever.retrieve("deploy problems", expression)

        assert len(items) == 1
        assert items[0].created_at == "2023-05-15T10:00:00Z"

    @pytest.mark.asyncio
    async def test_passes_store_filter_and_top_k(self, embedder):
        store = MagicMock()
        store.query = AsyncMock(return_value=[])
        retriever = Retriever(embedder, store, top_k=3)
        expression = build_filter_expression(None, MetadataFilter(environment="production"))

        await retriever.retrieve("q", expression)

        store.query.assert_awaited_once_with(
            [0.0, 0.0, 1.0],
            top_k=3,
            filter={"$and": [{"environment": {"$eq": "production"}}]},
        )

    @pytest.mark.asyncio
    async def test_no_filter_passes_none(self, embedder):
        store = MagicMock()
        store.query = AsyncMock(return_value=[])

        await Retriever(embedder, store).retrieve("q")

        assert store.query.call_args.kwargs["filter"] is None

    @pytest.mark.asyncio
    async def test_never_more_than_top_k(self, embedder):
        store = MagicMock()
        store.query = AsyncMock(
            return_value=[VectorMatch(id=str(i), score=1.0 - i / 10, metadata={}) for i in range(8)]
        )

        items = await Retriever(embedder, store).retrieve("q")

        assert len(items) == 5

    @pytest.mark.asyncio
    async def test_embedding_failure_propagates(self, failing_embedder, seeded_store):
        with pytest.raises(RuntimeError):
            await Retriever(failing_embedder, seeded_store).retrieve("q")

    def test_top_k_bounds(self, embedder, seeded_store):
        with pytest.raises(ValueError):
            Retriever(embedder, seeded_store, top_k=0)
        with pytest.raises(ValueError):
            Retriever(embedder, seeded_store, top_k=6)
