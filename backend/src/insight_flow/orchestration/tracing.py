"""Tracing adapter: wraps stage callbacks in spans keyed by correlation id."""

import functools
import inspect
from typing import Any, Awaitable, Callable, Optional, TypeVar

from insight_flow.contracts.payloads import Envelope
from insight_flow.logging_config import get_logger
from insight_flow.services.trace import TraceBackend

logger = get_logger(__name__)

R = TypeVar("R")


class StageTracer:
    """
    Opens/closes spans around stage callbacks and ends trace sessions.

    Every backend failure is logged and swallowed: tracing never changes
    the outcome of the callback it wraps.
    """

    def __init__(self, backend: Optional[TraceBackend] = None):
        self.backend = backend

    def wrap(
        self,
        stage_id: str,
        correlation_id: Optional[str],
        fn: Callable[..., Awaitable[R]],
    ) -> Callable[..., Awaitable[R]]:
        """
        Return fn traced under (stage_id, correlation_id).

        Without a correlation id (or backend) fn is returned as-is. An
        Envelope result that lacks a correlation id is tagged with it.
        Exceptions from fn close the span as a failure and are re-raised.
        """
        if not correlation_id or self.backend is None:
            return fn

        @functools.wraps(fn)
        async def traced(*args: Any, **kwargs: Any) -> R:
            handle = await self._start_span(stage_id, correlation_id)
            try:
                result = fn(*args, **kwargs)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:
                await self._end_span(handle, "failure", type(e).__name__)
                raise
            await self._end_span(handle, "success")
            return self._tag(result, correlation_id)

        return traced

    async def end_trace(self, correlation_id: Optional[str]) -> None:
        """Close the trace session for a flow. Idempotent; never raises."""
        if not correlation_id:
            logger.warning("trace_end_skipped", reason="no_correlation_id")
            return
        if self.backend is None:
            return
        try:
            await self.backend.end_session(correlation_id)
            logger.info("trace_session_ended", correlation_id=correlation_id)
        except Exception as e:
            logger.error(
                "trace_session_end_failed",
                correlation_id=correlation_id,
                error_type=type(e).__name__,
            )

    @staticmethod
    def _tag(result: Any, correlation_id: str) -> Any:
        if isinstance(result, Envelope) and result.correlation_id is None:
            return result.model_copy(update={"correlation_id": correlation_id})
        return result

    async def _start_span(self, stage_id: str, correlation_id: str) -> Optional[str]:
        assert self.backend is not None
        try:
            return await self.backend.start_span(stage_id, correlation_id)
        except Exception as e:
            logger.warning("trace_span_start_failed", stage_id=stage_id, error_type=type(e).__name__)
            return None

    async def _end_span(self, handle: Optional[str], status: str, error_type: str | None = None) -> None:
        if handle is None or self.backend is None:
            return
        try:
            await self.backend.end_span(handle, status, error_type)  # type: ignore[arg-type]
        except Exception as e:
            logger.warning("trace_span_end_failed", handle=handle, error_type=type(e).__name__)
