"""Structured span records for stage-level observability."""

import uuid
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field


SpanStatus = Literal["open", "success", "failure"]


class TraceSpan(BaseModel):
    """One stage invocation recorded under a flow's correlation id."""

    span_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    correlation_id: str
    stage_name: str
    started_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    ended_at: str | None = None
    duration_ms: float = Field(default=0.0, ge=0.0)
    status: SpanStatus = "open"
    error_type: str | None = None


class TraceSession(BaseModel):
    """Per-correlation-id session summary kept by the trace backend."""

    correlation_id: str
    span_count: int = Field(default=0, ge=0)
    closed: bool = False
    closed_at: str | None = None
