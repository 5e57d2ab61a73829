"""Vector store adapters: Supabase pgvector and an in-memory cosine index."""

import asyncio
import math
import threading
from typing import Any, Optional, Protocol

from pydantic import BaseModel, Field

from insight_flow.contracts.filters import FilterExpression, Predicate
from insight_flow.errors import ProviderError, SchemaError
from insight_flow.logging_config import get_logger

logger = get_logger(__name__)

# Parameter validation constants
_MAX_TOP_K = 100
_MIN_TOP_K = 1


class VectorMatch(BaseModel):
    """One ranked neighbor returned by a store query."""

    id: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)


class VectorStore(Protocol):
    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: Optional[dict[str, Any]] = None,
    ) -> list[VectorMatch]:
        ...

    async def upsert(self, id: str, vector: list[float], metadata: dict[str, Any]) -> None:
        ...


def validate_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """
    Reject metadata values other than primitive scalars and string lists.

    Structured fields (e.g. chat messages) must be serialized to a string
    by the caller before storage.
    """
    for key, value in metadata.items():
        if value is None or isinstance(value, (str, bool, int, float)):
            continue
        if isinstance(value, list) and all(isinstance(v, str) for v in value):
            continue
        raise SchemaError(
            f"Metadata field '{key}' has unsupported type {type(value).__name__}",
            context={"field": key},
        )
    return {k: v for k, v in metadata.items() if v is not None}


def expression_from_store_filter(store_filter: dict[str, Any]) -> FilterExpression:
    """Parse the {"$and": [{field: {op: value}}]} dialect back into an expression."""
    clauses = store_filter.get("$and")
    if not isinstance(clauses, list) or not clauses:
        raise SchemaError("Filter must be a non-empty {'$and': [...]} expression")
    predicates = []
    for clause in clauses:
        if not isinstance(clause, dict) or len(clause) != 1:
            raise SchemaError("Each filter clause must have exactly one field")
        field, conditions = next(iter(clause.items()))
        if not isinstance(conditions, dict):
            conditions = {"$eq": conditions}
        predicates.append(Predicate(field=field, conditions=conditions))
    return FilterExpression(predicates=predicates)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    if len(a) != len(b):
        raise ValueError(f"Vector dimension mismatch: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryVectorStore:
    """Brute-force cosine index; evaluates filter expressions in process."""

    def __init__(self) -> None:
        self._records: dict[str, tuple[list[float], dict[str, Any]]] = {}
        self._lock = threading.Lock()

    async def upsert(self, id: str, vector: list[float], metadata: dict[str, Any]) -> None:
        clean = validate_metadata(metadata)
        with self._lock:
            self._records[id] = (list(vector), clean)

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: Optional[dict[str, Any]] = None,
    ) -> list[VectorMatch]:
        top_k = max(_MIN_TOP_K, min(_MAX_TOP_K, top_k))
        expression = expression_from_store_filter(filter) if filter else None
        with self._lock:
            records = list(self._records.items())

        scored = []
        for record_id, (stored, metadata) in records:
            if expression is not None and not expression.matches(metadata):
                continue
            scored.append(
                VectorMatch(
                    id=record_id,
                    score=cosine_similarity(vector, stored),
                    metadata=dict(metadata),
                )
            )
        scored.sort(key=lambda m: m.score, reverse=True)
        return scored[:top_k]

    async def health_check(self) -> bool:
        return True

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._records)


class SupabaseVectorStore:
    """
    Supabase pgvector store.

    Records live in table ``<index>`` (id, embedding, metadata jsonb) and
    are queried through the RPC ``match_<index>(query_embedding,
    match_count, filter)`` which returns (id, similarity, metadata) rows
    ordered by descending cosine similarity. The supabase client is
    synchronous, so calls run in a worker thread.
    """

    provider = "supabase"

    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        index_name: str = "agent-knowledge",
        client: Any | None = None,
    ):
        self._supabase_url = supabase_url
        self._supabase_key = supabase_key
        self.table_name = index_name.replace("-", "_")
        self.rpc_name = f"match_{self.table_name}"
        self._client: Any | None = client  # Intentional Any: SDK client type

    def _load_client(self) -> Any:
        """Load Supabase client lazily."""
        if self._client is None:
            from supabase import create_client

            self._client = create_client(self._supabase_url, self._supabase_key)
        return self._client

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: Optional[dict[str, Any]] = None,
    ) -> list[VectorMatch]:
        top_k = max(_MIN_TOP_K, min(_MAX_TOP_K, top_k))
        params = {
            "query_embedding": vector,
            "match_count": top_k,
            "filter": filter or {},
        }
        try:
            client = self._load_client()
            response = await asyncio.to_thread(
                lambda: client.rpc(self.rpc_name, params).execute()
            )
        except Exception as e:
            raise ProviderError(
                f"Supabase query failed: {type(e).__name__}",
                provider=self.provider,
                context={"rpc": self.rpc_name, "error_message": self._sanitize_error_message(e)},
            ) from e
        return self._normalize_results(response.data or [], top_k)

    async def upsert(self, id: str, vector: list[float], metadata: dict[str, Any]) -> None:
        row = {"id": id, "embedding": vector, "metadata": validate_metadata(metadata)}
        try:
            client = self._load_client()
            await asyncio.to_thread(lambda: client.table(self.table_name).upsert(row).execute())
        except Exception as e:
            raise ProviderError(
                f"Supabase upsert failed: {type(e).__name__}",
                provider=self.provider,
                context={"table": self.table_name, "error_message": self._sanitize_error_message(e)},
            ) from e

    def _normalize_results(self, rows: list[Any], top_k: int) -> list[VectorMatch]:
        """Normalize RPC rows to VectorMatch, preserving store order."""
        matches: list[VectorMatch] = []
        for i, row in enumerate(rows):
            if not isinstance(row, dict):
                logger.warning("supabase_row_skipped", index=i, reason="non_dict_row")
                continue
            try:
                score = float(row.get("similarity", 0.0))
            except (TypeError, ValueError):
                logger.warning("supabase_invalid_similarity", index=i, value=row.get("similarity"))
                score = 0.0
            metadata = row.get("metadata") or {}
            if not isinstance(metadata, dict):
                logger.warning("supabase_row_metadata_ignored", index=i)
                metadata = {}
            matches.append(VectorMatch(id=str(row.get("id", f"row-{i}")), score=score, metadata=metadata))
            if len(matches) >= top_k:
                break
        return matches

    def _sanitize_error_message(self, error: Exception) -> str:
        """Return bounded and redacted error text safe for logs."""
        message = str(error)
        for value in (self._supabase_url, self._supabase_key):
            if value:
                message = message.replace(value, "[REDACTED]")
        return message[:200]

    async def health_check(self) -> bool:
        try:
            client = self._load_client()
            await asyncio.to_thread(
                lambda: client.table(self.table_name).select("id").limit(1).execute()
            )
            return True
        except Exception as e:
            logger.warning("supabase_health_check_failed", error_type=type(e).__name__)
            return False
