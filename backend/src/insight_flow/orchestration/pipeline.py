"""Stage pipeline: drives one flow through the topic chain as a state machine."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from insight_flow.contracts.payloads import Envelope
from insight_flow.errors import StageValidationError
from insight_flow.logging_config import bind_flow_context, get_logger
from insight_flow.orchestration.stages import Stage, StageIds, Topics, to_topic_data
from insight_flow.services.correlation import CorrelationRegistry

logger = get_logger(__name__)


class FlowState(str, Enum):
    RECEIVED = "received"
    PREPROCESSED = "preprocessed"
    FILTERS_EXTRACTED = "filters_extracted"
    CONTEXT_RETRIEVED = "context_retrieved"
    RESPONSE_GENERATED = "response_generated"
    COMPLETED = "completed"
    HALTED = "halted"


# State reached once the stage with this node id has run.
STAGE_STATES: dict[str, FlowState] = {
    StageIds.PREPROCESS: FlowState.PREPROCESSED,
    StageIds.EXTRACT_FILTERS: FlowState.FILTERS_EXTRACTED,
    StageIds.RETRIEVE: FlowState.CONTEXT_RETRIEVED,
    StageIds.GENERATE: FlowState.RESPONSE_GENERATED,
    StageIds.COMPLETE: FlowState.COMPLETED,
}


class FlowOutcome(BaseModel):
    """Final state of one flow, for callers and tests."""

    correlation_id: Optional[str] = None
    state: FlowState
    states: list[FlowState] = Field(default_factory=list)
    payload: Optional[dict[str, Any]] = None
    error: Optional[dict[str, Any]] = None

    @property
    def response(self) -> Optional[str]:
        if self.payload is None:
            return None
        return self.payload.get("response")


class StagePipeline:
    """
    Linear chain of stages connected by topics.

    Each topic has exactly one subscriber and the chain has no cycles.
    Every transition is guarded by the receiving stage's schema; a
    validation failure halts the flow. Stage logic failures never reach
    here: stages emit their fallback payloads instead.
    """

    def __init__(
        self,
        stages: list[Stage],
        registry: CorrelationRegistry | None = None,
        entry_topic: str = Topics.MESSAGE_RECEIVED,
    ):
        self.registry = registry or CorrelationRegistry()
        self.entry_topic = entry_topic
        self._subscribers: dict[str, Stage] = {}
        for stage in stages:
            if stage.subscribes in self._subscribers:
                raise ValueError(f"Topic {stage.subscribes!r} already has a subscriber")
            self._subscribers[stage.subscribes] = stage
        self._check_chain()
        self._tasks: set[asyncio.Task] = set()

    def _check_chain(self) -> None:
        seen: set[str] = set()
        topic: Optional[str] = self.entry_topic
        while topic is not None:
            if topic in seen:
                raise ValueError(f"Topic chain loops at {topic!r}")
            seen.add(topic)
            stage = self._subscribers.get(topic)
            if stage is None:
                raise ValueError(f"No stage subscribes to {topic!r}")
            topic = stage.emits
        unreachable = set(self._subscribers) - seen
        if unreachable:
            raise ValueError(f"Stages unreachable from {self.entry_topic!r}: {sorted(unreachable)}")

    @property
    def stages(self) -> list[Stage]:
        ordered = []
        topic: Optional[str] = self.entry_topic
        while topic is not None:
            stage = self._subscribers[topic]
            ordered.append(stage)
            topic = stage.emits
        return ordered

    async def dispatch(self, topic: str, data: Any) -> FlowOutcome:
        """
        Deliver data on topic and follow emissions until the chain ends.

        Returns COMPLETED after the terminal stage, or HALTED when a stage
        rejects its input.
        """
        if topic not in self._subscribers:
            raise ValueError(f"Unknown topic {topic!r}")

        states = [FlowState.RECEIVED]
        correlation_id = CorrelationRegistry.extract(data)
        last: Optional[Envelope] = None
        current: Optional[str] = topic

        while current is not None:
            stage = self._subscribers[current]
            try:
                envelope = stage.validate(data)
            except StageValidationError as e:
                with bind_flow_context(correlation_id, stage.name):
                    logger.error("flow_halted", topic=current, **e.to_dict())
                states.append(FlowState.HALTED)
                return FlowOutcome(
                    correlation_id=correlation_id,
                    state=FlowState.HALTED,
                    states=states,
                    payload=last.payload.model_dump(mode="json") if last else None,
                    error=e.to_dict(),
                )

            last = await stage.handle(envelope)
            correlation_id = last.correlation_id or correlation_id
            states.append(STAGE_STATES.get(stage.name, FlowState.RECEIVED))

            current = stage.emits
            if current is not None:
                data = to_topic_data(last)

        return FlowOutcome(
            correlation_id=correlation_id,
            state=FlowState.COMPLETED,
            states=states,
            payload=last.payload.model_dump(mode="json") if last else None,
        )

    async def run(self, message: str, timestamp: str | None = None) -> FlowOutcome:
        """Run one message through the whole chain and wait for the outcome."""
        return await self.dispatch(
            self.entry_topic,
            {"payload": {"message": message, "timestamp": timestamp}},
        )

    def submit(self, message: str, timestamp: str | None = None) -> tuple[str, asyncio.Task]:
        """
        Start a flow in the background and return its id immediately.

        The id is allocated here so callers can look the result up later;
        Preprocess keeps an id it is handed.
        """
        correlation_id = self.registry.new_id()
        task = asyncio.create_task(
            self.dispatch(
                self.entry_topic,
                {
                    "payload": {"message": message, "timestamp": timestamp},
                    "correlation_id": correlation_id,
                },
            ),
            name=correlation_id,
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return correlation_id, task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("flow_cancelled", correlation_id=task.get_name())
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "flow_crashed",
                correlation_id=task.get_name(),
                error_type=type(error).__name__,
                error=str(error),
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every submitted flow to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
