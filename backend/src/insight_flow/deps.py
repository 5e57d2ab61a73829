"""Dependency injection helpers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from insight_flow.agents.context_formatter import ContextFormatter
from insight_flow.agents.generator import ResponseGenerator
from insight_flow.agents.retriever import Retriever
from insight_flow.config import Settings, get_settings
from insight_flow.extraction import FilterExtractor, LLMFilterExtractor, PatternFilterExtractor
from insight_flow.services.correlation import CorrelationRegistry
from insight_flow.services.embedding import (
    EmbeddingProvider,
    OpenAIEmbeddingService,
    VoyageEmbeddingService,
)
from insight_flow.services.flow_store import FlowResultStore
from insight_flow.services.llm import ChatCompletionClient
from insight_flow.services.trace import InMemoryTraceBackend
from insight_flow.services.vector_store import (
    InMemoryVectorStore,
    SupabaseVectorStore,
    VectorStore,
)

if TYPE_CHECKING:
    from insight_flow.orchestration.pipeline import StagePipeline

VOYAGE_DEFAULT_DIMENSION = 1024


def create_llm_client(settings: Settings | None = None) -> ChatCompletionClient:
    """Create the completion client. Requires OPENAI_API_KEY."""
    settings = settings or get_settings()
    settings.require("openai_api_key")
    return ChatCompletionClient(
        api_key=settings.openai_api_key or "",
        base_url=settings.openai_base_url,
        model=settings.completion_model,
        timeout=settings.request_timeout,
    )


def create_embedding_service(
    settings: Settings | None = None,
    input_type: str = "query",
) -> EmbeddingProvider:
    """Create the configured embedding backend."""
    settings = settings or get_settings()
    if settings.embedding_backend == "voyage":
        settings.require("voyage_api_key")
        dimension = (
            settings.embedding_dimension
            if "embedding_dimension" in settings.model_fields_set
            else VOYAGE_DEFAULT_DIMENSION
        )
        return VoyageEmbeddingService(
            api_key=settings.voyage_api_key,
            model=settings.voyage_embed_model,
            dimension=dimension,
            input_type=input_type,
        )

    settings.require("openai_api_key")
    return OpenAIEmbeddingService(
        api_key=settings.openai_api_key or "",
        base_url=settings.openai_base_url,
        model=settings.embedding_model,
        dimension=settings.embedding_dimension,
        timeout=settings.request_timeout,
    )


def create_vector_store(settings: Settings | None = None) -> VectorStore:
    """Create the configured vector store. Supabase requires URL and key."""
    settings = settings or get_settings()
    if settings.vector_store_backend == "memory":
        return InMemoryVectorStore()
    settings.require("supabase_url", "supabase_key")
    return SupabaseVectorStore(
        supabase_url=settings.supabase_url or "",
        supabase_key=settings.supabase_key or "",
        index_name=settings.vector_index_name,
    )


def create_filter_extractor(
    settings: Settings | None = None,
    llm: ChatCompletionClient | None = None,
) -> FilterExtractor:
    """LLM extractor by default; the pattern extractor needs no credentials."""
    settings = settings or get_settings()
    if settings.filter_strategy == "pattern":
        return PatternFilterExtractor()
    return LLMFilterExtractor(
        llm=llm or create_llm_client(settings),
        model=settings.filter_model,
    )


def create_trace_backend(settings: Settings | None = None) -> InMemoryTraceBackend:
    """Create trace backend instance."""
    settings = settings or get_settings()
    return InMemoryTraceBackend(
        max_spans=settings.max_trace_spans,
        max_sessions=settings.max_trace_sessions,
    )


def create_flow_result_store(settings: Settings | None = None) -> FlowResultStore:
    settings = settings or get_settings()
    return FlowResultStore(max_results=settings.max_flow_results)


def create_pipeline(
    settings: Settings | None = None,
    llm: ChatCompletionClient | None = None,
    embedder: EmbeddingProvider | None = None,
    store: VectorStore | None = None,
    extractor: FilterExtractor | None = None,
    trace_backend: InMemoryTraceBackend | None = None,
    result_store: FlowResultStore | None = None,
) -> StagePipeline:
    """
    Create the five-stage pipeline with default dependencies.

    Any collaborator passed in is used as-is; the rest come from settings.
    Missing credentials raise ConfigurationError here, at startup.
    """
    from insight_flow.orchestration.pipeline import StagePipeline
    from insight_flow.orchestration.stages import (
        CompleteStage,
        ExtractFiltersStage,
        GenerateStage,
        PreprocessStage,
        RetrieveStage,
    )
    from insight_flow.orchestration.tracing import StageTracer

    settings = settings or get_settings()
    _llm = llm or create_llm_client(settings)
    _embedder = embedder or create_embedding_service(settings)
    _store = store or create_vector_store(settings)
    _extractor = extractor or create_filter_extractor(settings, llm=_llm)

    registry = CorrelationRegistry()
    tracer = StageTracer(trace_backend or create_trace_backend(settings))

    stages = [
        PreprocessStage(registry=registry, tracer=tracer),
        ExtractFiltersStage(_extractor, tracer=tracer),
        RetrieveStage(
            Retriever(_embedder, _store, top_k=settings.retrieval_top_k),
            tracer=tracer,
        ),
        GenerateStage(
            ResponseGenerator(_llm, model=settings.completion_model),
            formatter=ContextFormatter(),
            tracer=tracer,
        ),
        CompleteStage(result_store=result_store, tracer=tracer),
    ]
    return StagePipeline(stages, registry=registry)
