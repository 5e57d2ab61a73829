"""Filter contracts: extracted date/metadata predicates and store filter expressions."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


EnvironmentValue = Literal["production", "development", "staging", "test"]
StatusValue = Literal["success", "failed", "error", "pending"]

ENVIRONMENTS: tuple[str, ...] = ("production", "development", "staging", "test")
STATUSES: tuple[str, ...] = ("success", "failed", "error", "pending")


IsoDate = Annotated[str, Field(pattern=r"^\d{4}-\d{2}-\d{2}$")]


class DateRange(BaseModel):
    """Inclusive ISO date range (YYYY-MM-DD)."""

    start: IsoDate
    end: IsoDate


class DateFilter(BaseModel):
    """
    Exactly one date predicate shape.

    Shapes: exact date, month (optionally with year), bare year, or range.
    When more than one shape is supplied (typically by an LLM), the
    highest-priority one is kept: date_str > date_range > month[+year] > year.
    """

    model_config = ConfigDict(populate_by_name=True)

    date_str: IsoDate | None = None
    month: int | None = Field(default=None, ge=1, le=12)
    year: int | None = None
    date_range: DateRange | None = Field(default=None, alias="dateRange")

    @model_validator(mode="after")
    def _keep_single_shape(self) -> "DateFilter":
        if self.date_str is not None:
            self.month = None
            self.year = None
            self.date_range = None
        elif self.date_range is not None:
            self.month = None
            self.year = None
        return self

    @property
    def is_empty(self) -> bool:
        return (
            self.date_str is None
            and self.month is None
            and self.year is None
            and self.date_range is None
        )

    @property
    def kind(self) -> Literal["exact", "range", "month", "year", "none"]:
        if self.date_str is not None:
            return "exact"
        if self.date_range is not None:
            return "range"
        if self.month is not None:
            return "month"
        if self.year is not None:
            return "year"
        return "none"


class MetadataFilter(BaseModel):
    """Independent metadata predicates; any combination may be set."""

    environment: EnvironmentValue | None = None
    status: StatusValue | None = None
    is_correct: bool | None = None

    @property
    def is_empty(self) -> bool:
        return self.environment is None and self.status is None and self.is_correct is None


class FilterExtraction(BaseModel):
    """Result of running a filter extractor over a query."""

    date_filters: DateFilter | None = None
    metadata_filters: MetadataFilter | None = None
    rewritten_query: str

    @classmethod
    def unfiltered(cls, query: str) -> "FilterExtraction":
        """No filters, query passed through unchanged."""
        return cls(date_filters=None, metadata_filters=None, rewritten_query=query)


ComparisonOp = Literal["$eq", "$gte", "$lte"]


class Predicate(BaseModel):
    """Single-field condition, e.g. {"date_str": {"$gte": a, "$lte": b}}."""

    field: str
    conditions: dict[ComparisonOp, Any]

    def to_store_filter(self) -> dict[str, Any]:
        return {self.field: dict(self.conditions)}

    def matches(self, metadata: dict[str, Any]) -> bool:
        if self.field not in metadata:
            return False
        value = metadata[self.field]
        for op, expected in self.conditions.items():
            try:
                if op == "$eq" and value != expected:
                    return False
                if op == "$gte" and not value >= expected:
                    return False
                if op == "$lte" and not value <= expected:
                    return False
            except TypeError:
                return False
        return True


class FilterExpression(BaseModel):
    """Conjunction of predicates; never constructed empty."""

    predicates: list[Predicate] = Field(min_length=1)

    def to_store_filter(self) -> dict[str, Any]:
        """Render in the vector store's filter dialect ({"$and": [...]})."""
        return {"$and": [p.to_store_filter() for p in self.predicates]}

    def matches(self, metadata: dict[str, Any]) -> bool:
        return all(p.matches(metadata) for p in self.predicates)
