"""CSV record normalization: entries and insights into vector-store records."""

from __future__ import annotations

import csv
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

from insight_flow.errors import IngestionError
from insight_flow.logging_config import get_logger

logger = get_logger(__name__)


class ProcessedMessage(BaseModel):
    role: Literal["system", "user"]
    content: str


class DateComponents(BaseModel):
    """UTC date parts stored alongside each record for date filtering."""

    date_str: str
    time_str: str
    year: int
    month: int
    day: int


class EntryRecord(BaseModel):
    id: str
    messages: list[ProcessedMessage] = Field(min_length=1)
    output: str
    is_correct: bool
    created_at: str
    updated_at: str | None = None
    model_id: str = ""
    environment: str | None = None
    status: str | None = None
    dates: DateComponents | None = None


class InsightRecord(BaseModel):
    id: str
    problem: str
    solution: str
    category: str | None = None
    created_at: str | None = None
    dates: DateComponents | None = None


class VectorRecord(BaseModel):
    """Text to embed plus store-compatible metadata."""

    id: str
    text: str
    metadata: dict[str, Any]


def extract_date_components(value: str | None) -> DateComponents | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC. None if unparseable."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        logger.warning("date_parse_failed", value=value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    parsed = parsed.astimezone(timezone.utc)
    return DateComponents(
        date_str=parsed.strftime("%Y-%m-%d"),
        time_str=parsed.strftime("%H:%M:%S"),
        year=parsed.year,
        month=parsed.month,
        day=parsed.day,
    )


def _flatten_user_content(content: Any) -> str:
    if not isinstance(content, list):
        return "" if content is None else str(content)
    parts = []
    for item in content:
        if not isinstance(item, dict) or item.get("type") == "file":
            continue
        parts.append(str(item.get("text") or item.get("content") or ""))
    return " ".join(parts).strip()


def extract_messages(raw_input: str) -> list[ProcessedMessage]:
    """
    Keep system and user turns from an entry's input JSON.

    Image parts are dropped, file parts are removed from user content
    arrays and the remaining text parts are joined with spaces.

    Raises:
        IngestionError: input is not a JSON object
    """
    try:
        data = json.loads(raw_input)
    except (TypeError, ValueError) as e:
        raise IngestionError(
            "Entry input is not valid JSON",
            context={"error": str(e)[:200]},
        ) from e
    if not isinstance(data, dict):
        raise IngestionError("Entry input JSON must be an object")

    messages: list[ProcessedMessage] = []
    for message in data.get("messages") or []:
        if not isinstance(message, dict) or message.get("type") == "image_url":
            continue
        role = message.get("role")
        if role == "system":
            messages.append(ProcessedMessage(role="system", content=str(message.get("content") or "")))
        elif role == "user":
            content = _flatten_user_content(message.get("content"))
            if content:
                messages.append(ProcessedMessage(role="user", content=content))
    return messages


def parse_entry_row(row: dict[str, str]) -> EntryRecord | None:
    """Normalize one entries.csv row. None when no usable messages remain."""
    messages = extract_messages(row.get("input", ""))
    if not messages:
        return None
    created_at = row.get("created_at") or ""
    return EntryRecord(
        id=row["id"],
        messages=messages,
        output=row.get("output") or "",
        is_correct=(row.get("is_correct") or "").strip().lower() == "true",
        created_at=created_at,
        updated_at=row.get("updated_at") or None,
        model_id=row.get("model_id") or "",
        environment=row.get("environment") or None,
        status=row.get("status") or None,
        dates=extract_date_components(created_at),
    )


def parse_insight_row(row: dict[str, str], index: int) -> InsightRecord:
    created_at = row.get("created_at") or None
    return InsightRecord(
        id=f"insight-{index}",
        problem=row.get("problem") or "",
        solution=row.get("solution") or "",
        category=row.get("category") or None,
        created_at=created_at,
        dates=extract_date_components(created_at),
    )


def entry_to_vector_record(entry: EntryRecord) -> VectorRecord:
    text = "\n".join(f"{m.role}: {m.content}" for m in entry.messages)
    metadata: dict[str, Any] = {
        "type": "entry",
        # structured turns are stored as a JSON string
        "messages_json": json.dumps([m.model_dump() for m in entry.messages]),
        "output": entry.output,
        "is_correct": entry.is_correct,
        "created_at": entry.created_at,
        "model_id": entry.model_id,
        "input_text": text,
        "environment": entry.environment,
        "status": entry.status,
        "updated_at": entry.updated_at,
    }
    if entry.dates is not None:
        metadata.update(entry.dates.model_dump())
    return VectorRecord(id=entry.id, text=text, metadata=metadata)


def insight_to_vector_record(insight: InsightRecord) -> VectorRecord:
    metadata: dict[str, Any] = {
        "type": "insight",
        "problem": insight.problem,
        "solution": insight.solution,
        "category": insight.category,
        "created_at": insight.created_at,
    }
    if insight.dates is not None:
        metadata.update(insight.dates.model_dump(exclude={"time_str"}))
    return VectorRecord(
        id=insight.id,
        text=f"Problem: {insight.problem}\nSolution: {insight.solution}",
        metadata=metadata,
    )


def read_csv_rows(path: str | Path) -> list[dict[str, str]]:
    """Read a headered CSV file, skipping blank lines."""
    csv_path = Path(path)
    if not csv_path.is_file():
        raise IngestionError(f"CSV file not found: {csv_path}", context={"path": str(csv_path)})
    with csv_path.open(newline="", encoding="utf-8") as f:
        return [row for row in csv.DictReader(f) if any((v or "").strip() for v in row.values())]


def load_entries(path: str | Path) -> tuple[list[EntryRecord], list[str]]:
    """Parse every entry row; failures are collected, not raised."""
    entries: list[EntryRecord] = []
    errors: list[str] = []
    for row in read_csv_rows(path):
        entry_id = row.get("id") or "?"
        try:
            entry = parse_entry_row(row)
        except (IngestionError, KeyError, ValueError) as e:
            errors.append(f"entry {entry_id}: {type(e).__name__}: {str(e)[:100]}")
            continue
        if entry is not None:
            entries.append(entry)
    logger.info("entries_parsed", count=len(entries), errors=len(errors))
    return entries, errors


def load_insights(path: str | Path) -> list[InsightRecord]:
    insights = [parse_insight_row(row, i) for i, row in enumerate(read_csv_rows(path))]
    logger.info("insights_parsed", count=len(insights))
    return insights
