"""
Bulk-load entries and insights from CSV into the vector store.

Usage:
    insight-flow-ingest --entries data/entries.csv --insights data/insights.csv
    insight-flow-ingest --entries data/entries.csv --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional, Sequence

from insight_flow.config import Settings, get_settings
from insight_flow.errors import InsightFlowError
from insight_flow.ingestion.loader import BulkIngestor, IngestionReport
from insight_flow.ingestion.records import (
    entry_to_vector_record,
    insight_to_vector_record,
    load_entries,
    load_insights,
)
from insight_flow.logging_config import configure_logging, get_logger

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="insight-flow-ingest",
        description="Embed CSV entries and insights and upsert them into the vector store.",
    )
    parser.add_argument("--entries", type=Path, required=True, help="Entries CSV file")
    parser.add_argument("--insights", type=Path, default=None, help="Insights CSV file (optional)")
    parser.add_argument("--batch-size", type=int, default=None, help="Records per batch")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse and normalize only; no embedding or storage",
    )
    return parser


async def run_ingestion(
    entries_path: Path,
    insights_path: Optional[Path],
    settings: Settings,
    dry_run: bool = False,
    ingestor: BulkIngestor | None = None,
) -> IngestionReport:
    entries, parse_errors = load_entries(entries_path)
    records = [entry_to_vector_record(e) for e in entries]

    if insights_path is not None:
        if insights_path.is_file():
            records.extend(insight_to_vector_record(i) for i in load_insights(insights_path))
        else:
            logger.warning("insights_file_missing", path=str(insights_path))

    if dry_run:
        return IngestionReport(records=len(records), errors=parse_errors, dry_run=True)

    if ingestor is None:
        from insight_flow.deps import create_embedding_service, create_vector_store

        ingestor = BulkIngestor(
            embedder=create_embedding_service(settings, input_type="document"),
            store=create_vector_store(settings),
            batch_size=settings.ingestion_batch_size,
        )
    report = await ingestor.ingest(records)
    return IngestionReport(errors=parse_errors).merge(report)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    if args.batch_size is not None:
        settings = settings.model_copy(update={"ingestion_batch_size": args.batch_size})
    configure_logging(settings.log_level)

    try:
        report = asyncio.run(run_ingestion(args.entries, args.insights, settings, dry_run=args.dry_run))
    except InsightFlowError as e:
        logger.error("ingestion_failed", **e.to_dict())
        print(json.dumps({"error": e.to_dict()}, indent=2), file=sys.stderr)
        return 1

    print(report.model_dump_json(indent=2))
    return 0 if not report.errors else 2


if __name__ == "__main__":
    sys.exit(main())
