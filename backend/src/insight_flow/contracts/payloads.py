"""Stage payload contracts and the correlation envelope carried between stages.

Each payload extends the previous stage's payload, so fields added upstream
stay available to every later stage.
"""

from datetime import datetime, timezone
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

from insight_flow.contracts.context import ContextItem
from insight_flow.contracts.filters import DateFilter, MetadataFilter


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class MessageReceived(BaseModel):
    """Inbound chat message as accepted by the HTTP entry point."""

    message: str
    timestamp: str | None = None


class PreprocessedPayload(BaseModel):
    original_message: str
    processed_message: str
    timestamp: str = Field(default_factory=utc_now_iso)


class FiltersExtractedPayload(PreprocessedPayload):
    date_filters: DateFilter | None = None
    metadata_filters: MetadataFilter | None = None


class ContextRetrievedPayload(FiltersExtractedPayload):
    context: list[ContextItem] = Field(default_factory=list)


class ResponseGeneratedPayload(ContextRetrievedPayload):
    response: str
    error: str | None = None


PayloadT = TypeVar("PayloadT", bound=BaseModel)


class Envelope(BaseModel, Generic[PayloadT]):
    """Typed payload plus the optional flow correlation id."""

    payload: PayloadT
    correlation_id: str | None = None
