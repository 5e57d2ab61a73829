from insight_flow.contracts.filters import (
    DateFilter,
    FilterExpression,
    MetadataFilter,
    Predicate,
)


def _date_predicates(date_filters: DateFilter) -> list[Predicate]:
    if date_filters.date_range is not None:
        return [
            Predicate(
                field="date_str",
                conditions={
                    "$gte": date_filters.date_range.start,
                    "$lte": date_filters.date_range.end,
                },
            )
        ]
    if date_filters.date_str is not None:
        return [Predicate(field="date_str", conditions={"$eq": date_filters.date_str})]

    predicates = []
    if date_filters.month is not None:
        predicates.append(Predicate(field="month", conditions={"$eq": date_filters.month}))
    if date_filters.year is not None:
        predicates.append(Predicate(field="year", conditions={"$eq": date_filters.year}))
    return predicates


def _metadata_predicates(metadata_filters: MetadataFilter) -> list[Predicate]:
    predicates = []
    for field in ("environment", "status", "is_correct"):
        value = getattr(metadata_filters, field)
        if value is not None:
            predicates.append(Predicate(field=field, conditions={"$eq": value}))
    return predicates


def build_filter_expression(
    date_filters: DateFilter | None,
    metadata_filters: MetadataFilter | None,
) -> FilterExpression | None:
    """
    AND together every present date and metadata predicate.

    A date range becomes one inclusive interval predicate on date_str;
    exact date, month and year become equality predicates, as do the
    metadata fields. Returns None when nothing is present so the
    retrieval runs as an unfiltered similarity search.

    Args:
        date_filters: Extracted date predicate, if any
        metadata_filters: Extracted metadata predicates, if any

    Returns:
        FilterExpression, or None for "no filter"
    """
    predicates: list[Predicate] = []
    if date_filters is not None:
        predicates.extend(_date_predicates(date_filters))
    if metadata_filters is not None:
        predicates.extend(_metadata_predicates(metadata_filters))

    if not predicates:
        return None
    return FilterExpression(predicates=predicates)
