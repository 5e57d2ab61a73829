"""Batched embed-and-upsert of normalized records."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from pydantic import BaseModel, Field

from insight_flow.ingestion.records import VectorRecord
from insight_flow.logging_config import get_logger
from insight_flow.services.embedding import EmbeddingProvider
from insight_flow.services.vector_store import VectorStore

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 100


class IngestionReport(BaseModel):
    records: int = 0
    batches: int = 0
    embedded: int = 0
    stored: int = 0
    errors: list[str] = Field(default_factory=list)
    dry_run: bool = False

    def merge(self, other: "IngestionReport") -> "IngestionReport":
        return IngestionReport(
            records=self.records + other.records,
            batches=self.batches + other.batches,
            embedded=self.embedded + other.embedded,
            stored=self.stored + other.stored,
            errors=self.errors + other.errors,
            dry_run=self.dry_run or other.dry_run,
        )


class BulkIngestor:
    """
    Embeds records in fixed-size batches and upserts them.

    All embedding calls of one batch run concurrently; batches run one
    after another, so at most batch_size provider calls are in flight.
    A failed record is reported and skipped; the rest of its batch is
    still stored.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        store: VectorStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        self.embedder = embedder
        self.store = store
        self.batch_size = batch_size

    async def ingest(self, records: Sequence[VectorRecord]) -> IngestionReport:
        report = IngestionReport(records=len(records))
        total = (len(records) + self.batch_size - 1) // self.batch_size

        for number, start in enumerate(range(0, len(records), self.batch_size), start=1):
            batch = records[start : start + self.batch_size]
            logger.info("ingestion_batch_start", batch=number, batches=total, size=len(batch))

            vectors = await asyncio.gather(
                *(self.embedder.embed(record.text) for record in batch),
                return_exceptions=True,
            )
            for record, vector in zip(batch, vectors):
                if isinstance(vector, BaseException):
                    report.errors.append(f"{record.id}: embed: {type(vector).__name__}: {str(vector)[:100]}")
                    continue
                report.embedded += 1
                try:
                    await self.store.upsert(record.id, vector, record.metadata)
                except Exception as e:
                    report.errors.append(f"{record.id}: upsert: {type(e).__name__}: {str(e)[:100]}")
                    continue
                report.stored += 1

            report.batches += 1
            logger.info("ingestion_batch_complete", batch=number, batches=total, stored=report.stored)

        return report
