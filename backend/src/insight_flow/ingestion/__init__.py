"""Bulk ingestion of CSV entries and insights."""

from insight_flow.ingestion.loader import BulkIngestor, IngestionReport
from insight_flow.ingestion.records import (
    EntryRecord,
    InsightRecord,
    VectorRecord,
    entry_to_vector_record,
    extract_date_components,
    extract_messages,
    insight_to_vector_record,
    load_entries,
    load_insights,
)

__all__ = [
    "BulkIngestor",
    "EntryRecord",
    "IngestionReport",
    "InsightRecord",
    "VectorRecord",
    "entry_to_vector_record",
    "extract_date_components",
    "extract_messages",
    "insight_to_vector_record",
    "load_entries",
    "load_insights",
]
