"""Services package - export provider adapters and in-process stores."""

from insight_flow.services.correlation import CorrelationRegistry
from insight_flow.services.embedding import (
    EmbeddingProvider,
    OpenAIEmbeddingService,
    VoyageEmbeddingService,
)
from insight_flow.services.flow_store import FlowResult, FlowResultStore
from insight_flow.services.llm import ChatCompletionClient
from insight_flow.services.trace import InMemoryTraceBackend, TraceBackend
from insight_flow.services.vector_store import (
    InMemoryVectorStore,
    SupabaseVectorStore,
    VectorMatch,
    VectorStore,
)

__all__ = [
    "ChatCompletionClient",
    "CorrelationRegistry",
    "EmbeddingProvider",
    "FlowResult",
    "FlowResultStore",
    "InMemoryTraceBackend",
    "InMemoryVectorStore",
    "OpenAIEmbeddingService",
    "SupabaseVectorStore",
    "TraceBackend",
    "VectorMatch",
    "VectorStore",
    "VoyageEmbeddingService",
]
