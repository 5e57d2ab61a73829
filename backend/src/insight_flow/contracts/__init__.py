"""Contracts package - export key models."""

from insight_flow.contracts.context import (
    ContextItem,
    EntryContextItem,
    InsightContextItem,
)
from insight_flow.contracts.filters import (
    DateFilter,
    DateRange,
    FilterExpression,
    FilterExtraction,
    MetadataFilter,
    Predicate,
)
from insight_flow.contracts.payloads import (
    ContextRetrievedPayload,
    Envelope,
    FiltersExtractedPayload,
    MessageReceived,
    PreprocessedPayload,
    ResponseGeneratedPayload,
)
from insight_flow.contracts.trace import TraceSession, TraceSpan

__all__ = [
    "ContextItem",
    "ContextRetrievedPayload",
    "DateFilter",
    "DateRange",
    "EntryContextItem",
    "Envelope",
    "FilterExpression",
    "FilterExtraction",
    "FiltersExtractedPayload",
    "InsightContextItem",
    "MessageReceived",
    "MetadataFilter",
    "Predicate",
    "PreprocessedPayload",
    "ResponseGeneratedPayload",
    "TraceSession",
    "TraceSpan",
]
