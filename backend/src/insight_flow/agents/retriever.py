"""Similarity retrieval of prior entries and insights."""

from typing import Any

from insight_flow.contracts.context import (
    ContextItem,
    EntryContextItem,
    InsightContextItem,
)
from insight_flow.contracts.filters import FilterExpression
from insight_flow.logging_config import get_logger
from insight_flow.services.embedding import EmbeddingProvider
from insight_flow.services.vector_store import VectorMatch, VectorStore

logger = get_logger(__name__)

DEFAULT_TOP_K = 5
MAX_TOP_K = 5


def _text(metadata: dict[str, Any], *keys: str) -> str:
    """First present, non-null value among keys, as a string; "" otherwise."""
    for key in keys:
        value = metadata.get(key)
        if value is not None and value != "":
            return str(value)
    return ""


def to_context_item(match: VectorMatch) -> ContextItem:
    """Map a store match to the entry or insight shape by its type tag."""
    metadata = match.metadata
    if metadata.get("type") == "insight":
        return InsightContextItem(
            problem=_text(metadata, "problem"),
            solution=_text(metadata, "solution"),
            created_at=_text(metadata, "created_at"),
            score=match.score,
        )
    # Ingested entries keep the flattened conversation under input_text
    return EntryContextItem(
        input=_text(metadata, "input", "input_text"),
        output=_text(metadata, "output"),
        created_at=_text(metadata, "created_at"),
        score=match.score,
    )


class Retriever:
    """Embed the query, run a filtered top-k cosine query, normalize matches."""

    def __init__(
        self,
        embedder: EmbeddingProvider,
        store: VectorStore,
        top_k: int = DEFAULT_TOP_K,
    ):
        if not 0 < top_k <= MAX_TOP_K:
            raise ValueError(f"top_k must be between 1 and {MAX_TOP_K}")
        self.embedder = embedder
        self.store = store
        self.top_k = top_k

    async def retrieve(
        self,
        query: str,
        filter: FilterExpression | None = None,
    ) -> list[ContextItem]:
        """
        Return at most top_k context items in store order.

        Embedding and store failures propagate; the Retrieve stage turns
        them into an empty context list.
        """
        vector = await self.embedder.embed(query)
        store_filter = filter.to_store_filter() if filter is not None else None
        logger.info("retrieval_query", top_k=self.top_k, filter=store_filter)

        matches = await self.store.query(vector, top_k=self.top_k, filter=store_filter)
        items = [to_context_item(m) for m in matches[: self.top_k]]
        logger.info("retrieval_complete", count=len(items))
        return items
