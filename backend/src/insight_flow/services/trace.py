"""Trace backend for stage-level observability."""

import threading
import time
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Callable, Literal, Optional, Protocol

from insight_flow.contracts.trace import TraceSession, TraceSpan
from insight_flow.errors import TracingError


# Type alias for span export hook
SpanCallback = Callable[[TraceSpan], None]


class TraceBackend(Protocol):
    """Span/session operations the tracing adapter relies on."""

    async def start_span(self, stage_id: str, correlation_id: str) -> str:
        ...

    async def end_span(
        self,
        handle: str,
        status: Literal["success", "failure"],
        error_type: str | None = None,
    ) -> None:
        ...

    async def end_session(self, correlation_id: str) -> None:
        ...


class InMemoryTraceBackend:
    """
    In-memory span store with optional export callback.

    Keeps TraceSpan records grouped by correlation id. The callback is
    called for every closed span, enabling file/DB/OTel exporters
    without changing the pipeline.
    """

    def __init__(
        self,
        callback: Optional[SpanCallback] = None,
        max_spans: int = 5000,
        max_sessions: int = 1000,
    ):
        if max_spans <= 0:
            raise ValueError("max_spans must be > 0")
        if max_sessions <= 0:
            raise ValueError("max_sessions must be > 0")
        self._spans: dict[str, TraceSpan] = {}
        self._started: dict[str, float] = {}
        self._sessions: OrderedDict[str, TraceSession] = OrderedDict()
        self._callback = callback
        self._max_spans = max_spans
        self._max_sessions = max_sessions
        self._lock = threading.Lock()

    async def start_span(self, stage_id: str, correlation_id: str) -> str:
        span = TraceSpan(correlation_id=correlation_id, stage_name=stage_id)
        with self._lock:
            if len(self._spans) >= self._max_spans:
                oldest = next(iter(self._spans))
                self._spans.pop(oldest)
                self._started.pop(oldest, None)
            self._spans[span.span_id] = span
            self._started[span.span_id] = time.perf_counter()
            session = self._session(correlation_id)
            session.span_count += 1
        return span.span_id

    def _session(self, correlation_id: str) -> TraceSession:
        """Get or open a flow session; oldest evicted past max_sessions. Caller holds the lock."""
        session = self._sessions.get(correlation_id)
        if session is None:
            session = TraceSession(correlation_id=correlation_id)
            self._sessions[correlation_id] = session
            while len(self._sessions) > self._max_sessions:
                self._sessions.popitem(last=False)
        return session

    async def end_span(
        self,
        handle: str,
        status: Literal["success", "failure"],
        error_type: str | None = None,
    ) -> None:
        with self._lock:
            span = self._spans.get(handle)
            if span is None:
                raise TracingError(f"Unknown span handle {handle}", context={"handle": handle})
            if span.status != "open":
                return
            started = self._started.pop(handle, time.perf_counter())
            span.ended_at = datetime.now(timezone.utc).isoformat()
            span.duration_ms = (time.perf_counter() - started) * 1000
            span.status = status
            span.error_type = error_type
            closed = span.model_copy()
        if self._callback is not None:
            self._callback(closed)

    async def end_session(self, correlation_id: str) -> None:
        with self._lock:
            session = self._session(correlation_id)
            if session.closed:
                return
            session.closed = True
            session.closed_at = datetime.now(timezone.utc).isoformat()

    def get_spans(self, correlation_id: str | None = None) -> list[TraceSpan]:
        """Return recorded spans (oldest first), optionally for one flow."""
        with self._lock:
            return [
                s.model_copy()
                for s in self._spans.values()
                if correlation_id is None or s.correlation_id == correlation_id
            ]

    def get_session(self, correlation_id: str) -> Optional[TraceSession]:
        with self._lock:
            session = self._sessions.get(correlation_id)
            return session.model_copy() if session else None

    def clear(self) -> None:
        with self._lock:
            self._spans.clear()
            self._started.clear()
            self._sessions.clear()

    @property
    def count(self) -> int:
        """Number of spans currently stored."""
        with self._lock:
            return len(self._spans)

    @property
    def session_count(self) -> int:
        with self._lock:
            return len(self._sessions)
