"""Shared fakes for pipeline and component tests."""

from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

import insight_flow.logging_config as logging_config_module
from insight_flow.logging_config import configure_logging
from insight_flow.services.vector_store import InMemoryVectorStore


class FakeEmbedder:
    """Deterministic 3-d embeddings keyed by keyword; records every call."""

    dimension = 3

    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        lowered = text.lower()
        if "deploy" in lowered:
            return [1.0, 0.0, 0.0]
        if "billing" in lowered:
            return [0.0, 1.0, 0.0]
        return [0.0, 0.0, 1.0]


@pytest.fixture(autouse=True)
def reset_logging_config() -> None:
    logging_config_module._CONFIGURED = False
    configure_logging(log_level="DEBUG")


@pytest.fixture
def fixed_today() -> date:
    return date(2024, 3, 15)


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def failing_embedder() -> FakeEmbedder:
    return FakeEmbedder(error=RuntimeError("embedding provider unavailable"))


@pytest.fixture
def mock_llm() -> MagicMock:
    """Completion client whose complete() answers with a canned string."""
    llm = MagicMock()
    llm.complete = AsyncMock(return_value="Here is what I found.")
    return llm


@pytest_asyncio.fixture
async def seeded_store() -> InMemoryVectorStore:
    store = InMemoryVectorStore()
    await store.upsert(
        "entry-1",
        [1.0, 0.0, 0.0],
        {
            "type": "entry",
            "input_text": "user: why did the deploy fail?",
            "output": "The deploy failed because the migration timed out.",
            "created_at": "2023-05-15T10:00:00Z",
            "date_str": "2023-05-15",
            "year": 2023,
            "month": 5,
            "status": "failed",
            "environment": "production",
            "is_correct": True,
        },
    )
    await store.upsert(
        "entry-2",
        [0.9, 0.1, 0.0],
        {
            "type": "entry",
            "input_text": "user: deploy status?",
            "output": "Deploy succeeded.",
            "created_at": "2023-05-16T09:00:00Z",
            "date_str": "2023-05-16",
            "year": 2023,
            "month": 5,
            "status": "success",
            "environment": "production",
            "is_correct": True,
        },
    )
    await store.upsert(
        "insight-0",
        [0.0, 1.0, 0.0],
        {
            "type": "insight",
            "problem": "Billing totals were off by one cent.",
            "solution": "Round after summing line items.",
            "created_at": "2023-06-01",
            "date_str": "2023-06-01",
            "year": 2023,
            "month": 6,
        },
    )
    return store
