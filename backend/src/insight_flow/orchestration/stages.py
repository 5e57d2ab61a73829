"""Pipeline stages: one upstream topic in, one downstream topic out."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional

from pydantic import BaseModel, ValidationError

from insight_flow.agents.context_formatter import ContextFormatter
from insight_flow.agents.generator import ResponseGenerator
from insight_flow.agents.retriever import Retriever
from insight_flow.contracts.payloads import (
    ContextRetrievedPayload,
    Envelope,
    FiltersExtractedPayload,
    MessageReceived,
    PreprocessedPayload,
    ResponseGeneratedPayload,
    utc_now_iso,
)
from insight_flow.errors import StageValidationError
from insight_flow.extraction import FilterExtractor
from insight_flow.logging_config import bind_flow_context, get_logger
from insight_flow.orchestration.fallbacks import FallbackEmitter
from insight_flow.orchestration.filter_expression import build_filter_expression
from insight_flow.orchestration.tracing import StageTracer
from insight_flow.services.correlation import CorrelationRegistry
from insight_flow.services.flow_store import FlowResult, FlowResultStore

logger = get_logger(__name__)


class Topics:
    """Topic names linking the stages."""

    MESSAGE_RECEIVED = "message-received"
    PREPROCESS_COMPLETE = "preprocess-complete"
    FETCH_CONTEXT = "fetch-context"
    CONTEXT_RETRIEVED = "context-retrieved"
    RESPONSE_GENERATED = "response-generated"


class StageIds:
    """Stable node ids the stages trace under."""

    PREPROCESS = "preprocess-message"
    EXTRACT_FILTERS = "llm-filter-extraction"
    RETRIEVE = "rag-retrieval"
    GENERATE = "response-generation"
    COMPLETE = "flow-completion"


def to_topic_data(envelope: Envelope) -> dict[str, Any]:
    """Serialize an envelope to the plain dict carried on a topic."""
    return {
        "payload": envelope.payload.model_dump(mode="json"),
        "correlation_id": envelope.correlation_id,
    }


class Stage(ABC):
    """
    Base stage.

    Subclasses declare their topics and input schema and implement
    ``process`` (the traced logic) and ``fallback`` (the degraded result
    emitted when ``process`` raises).
    """

    name: ClassVar[str]
    subscribes: ClassVar[str]
    emits: ClassVar[Optional[str]]
    input_model: ClassVar[type[BaseModel]]

    def __init__(self, tracer: StageTracer | None = None):
        self.tracer = tracer or StageTracer()

    def validate(self, data: Any) -> Envelope:
        """Validate raw topic data against this stage's input schema."""
        if isinstance(data, Envelope):
            data = to_topic_data(data)
        try:
            return Envelope[self.input_model].model_validate(data)  # type: ignore[name-defined]
        except ValidationError as e:
            raise StageValidationError(
                f"Invalid input for stage {self.name}",
                stage=self.name,
                context={
                    "error_count": e.error_count(),
                    "errors": [
                        {"loc": ".".join(str(p) for p in err["loc"]), "type": err["type"]}
                        for err in e.errors()[:5]
                    ],
                },
            ) from e

    def correlation_for(self, envelope: Envelope) -> Optional[str]:
        return envelope.correlation_id

    async def handle(self, envelope: Envelope) -> Envelope:
        """
        Run stage logic traced under the flow's correlation id.

        Never raises for errors in ``process``: the failure is logged and
        the stage's fallback payload is emitted instead.
        """
        correlation_id = self.correlation_for(envelope)
        with bind_flow_context(correlation_id, self.name):
            step = self.tracer.wrap(self.name, correlation_id, self._step)
            try:
                result = await step(envelope.payload)
            except Exception as e:
                logger.error(
                    "stage_failed",
                    error_type=type(e).__name__,
                    error=str(e),
                    fallback=True,
                )
                return Envelope(
                    payload=self.fallback(envelope.payload, e),
                    correlation_id=correlation_id,
                )
            logger.info("stage_completed")
            if correlation_id and result.correlation_id is None:
                result = result.model_copy(update={"correlation_id": correlation_id})
            return result

    async def _step(self, payload: Any) -> Envelope:
        return Envelope(payload=await self.process(payload))

    @abstractmethod
    async def process(self, payload: Any) -> BaseModel:
        ...

    @abstractmethod
    def fallback(self, payload: Any, error: Exception) -> BaseModel:
        ...


class PreprocessStage(Stage):
    """Allocates the flow's correlation id and trims the message."""

    name = StageIds.PREPROCESS
    subscribes = Topics.MESSAGE_RECEIVED
    emits = Topics.PREPROCESS_COMPLETE
    input_model = MessageReceived

    def __init__(
        self,
        registry: CorrelationRegistry | None = None,
        tracer: StageTracer | None = None,
    ):
        super().__init__(tracer)
        self.registry = registry or CorrelationRegistry()

    def correlation_for(self, envelope: Envelope) -> Optional[str]:
        if envelope.correlation_id:
            return envelope.correlation_id
        correlation_id = self.registry.new_id()
        logger.info("flow_started", correlation_id=correlation_id)
        return correlation_id

    async def process(self, payload: MessageReceived) -> PreprocessedPayload:
        return PreprocessedPayload(
            original_message=payload.message,
            processed_message=payload.message.strip(),
            timestamp=payload.timestamp or utc_now_iso(),
        )

    def fallback(self, payload: MessageReceived, error: Exception) -> PreprocessedPayload:
        return FallbackEmitter.preprocess(payload)


class ExtractFiltersStage(Stage):
    name = StageIds.EXTRACT_FILTERS
    subscribes = Topics.PREPROCESS_COMPLETE
    emits = Topics.FETCH_CONTEXT
    input_model = PreprocessedPayload

    def __init__(self, extractor: FilterExtractor, tracer: StageTracer | None = None):
        super().__init__(tracer)
        self.extractor = extractor

    async def process(self, payload: PreprocessedPayload) -> FiltersExtractedPayload:
        extraction = await self.extractor.extract(payload.processed_message)
        logger.info(
            "filters_extracted",
            strategy=getattr(self.extractor, "name", "unknown"),
            date_filters=extraction.date_filters.model_dump(exclude_none=True)
            if extraction.date_filters
            else None,
            metadata_filters=extraction.metadata_filters.model_dump(exclude_none=True)
            if extraction.metadata_filters
            else None,
        )
        fields = payload.model_dump()
        fields["processed_message"] = extraction.rewritten_query or payload.processed_message
        return FiltersExtractedPayload(
            **fields,
            date_filters=extraction.date_filters,
            metadata_filters=extraction.metadata_filters,
        )

    def fallback(self, payload: PreprocessedPayload, error: Exception) -> FiltersExtractedPayload:
        return FallbackEmitter.extract_filters(payload)


class RetrieveStage(Stage):
    name = StageIds.RETRIEVE
    subscribes = Topics.FETCH_CONTEXT
    emits = Topics.CONTEXT_RETRIEVED
    input_model = FiltersExtractedPayload

    def __init__(self, retriever: Retriever, tracer: StageTracer | None = None):
        super().__init__(tracer)
        self.retriever = retriever

    async def process(self, payload: FiltersExtractedPayload) -> ContextRetrievedPayload:
        expression = build_filter_expression(payload.date_filters, payload.metadata_filters)
        context = await self.retriever.retrieve(payload.processed_message, expression)
        return ContextRetrievedPayload(**payload.model_dump(), context=context)

    def fallback(self, payload: FiltersExtractedPayload, error: Exception) -> ContextRetrievedPayload:
        return FallbackEmitter.retrieve(payload)


class GenerateStage(Stage):
    name = StageIds.GENERATE
    subscribes = Topics.CONTEXT_RETRIEVED
    emits = Topics.RESPONSE_GENERATED
    input_model = ContextRetrievedPayload

    def __init__(
        self,
        generator: ResponseGenerator,
        formatter: ContextFormatter | None = None,
        tracer: StageTracer | None = None,
    ):
        super().__init__(tracer)
        self.generator = generator
        self.formatter = formatter or ContextFormatter()

    async def process(self, payload: ContextRetrievedPayload) -> ResponseGeneratedPayload:
        context_text = self.formatter.format(payload.context)
        response = await self.generator.generate(payload.processed_message, context_text)
        return ResponseGeneratedPayload(**payload.model_dump(), response=response)

    def fallback(self, payload: ContextRetrievedPayload, error: Exception) -> ResponseGeneratedPayload:
        return FallbackEmitter.generate(payload, error)


class CompleteStage(Stage):
    """Terminal stage: closes the trace session and records the result."""

    name = StageIds.COMPLETE
    subscribes = Topics.RESPONSE_GENERATED
    emits = None
    input_model = ResponseGeneratedPayload

    def __init__(
        self,
        result_store: FlowResultStore | None = None,
        tracer: StageTracer | None = None,
    ):
        super().__init__(tracer)
        self.result_store = result_store

    async def handle(self, envelope: Envelope) -> Envelope:
        correlation_id = envelope.correlation_id
        with bind_flow_context(correlation_id, self.name):
            payload = await self.process(envelope.payload)
            await self.tracer.end_trace(correlation_id)
            if self.result_store is not None and correlation_id:
                self.result_store.record(
                    FlowResult(
                        correlation_id=correlation_id,
                        original_message=payload.original_message,
                        response=payload.response,
                        timestamp=payload.timestamp,
                        has_error=payload.error is not None,
                        context_count=len(payload.context),
                    )
                )
            logger.info(
                "flow_completed",
                has_error=payload.error is not None,
                context_count=len(payload.context),
                response_length=len(payload.response),
            )
        return Envelope(payload=payload, correlation_id=correlation_id)

    async def process(self, payload: ResponseGeneratedPayload) -> ResponseGeneratedPayload:
        """Nothing left to add: the generated payload is the final result."""
        return payload

    def fallback(self, payload: ResponseGeneratedPayload, error: Exception) -> ResponseGeneratedPayload:
        return payload
