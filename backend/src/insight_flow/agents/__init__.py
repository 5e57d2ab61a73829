"""Agents package - retrieval, formatting and generation."""

from insight_flow.agents.context_formatter import ContextFormatter
from insight_flow.agents.generator import ResponseGenerator
from insight_flow.agents.retriever import Retriever, to_context_item

__all__ = [
    "ContextFormatter",
    "ResponseGenerator",
    "Retriever",
    "to_context_item",
]
