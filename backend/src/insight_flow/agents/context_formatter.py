"""Render retrieved context items into a prompt block."""

from collections.abc import Sequence

from insight_flow.contracts.context import ContextItem, InsightContextItem

NO_CONTEXT_TEXT = "No relevant previous conversations found."

# Per-field display cap. Longer values are cut and marked with "...";
# everything up to the cap is reproduced verbatim.
DEFAULT_MAX_FIELD_CHARS = 2000
DEFAULT_MAX_ITEMS = 5

_DIVIDER = "-------------------------"


def _cap(value: str, limit: int) -> str:
    if len(value) <= limit:
        return value
    return value[:limit] + "..."


class ContextFormatter:
    """Formats entries and insights as delimited, scored blocks."""

    def __init__(
        self,
        max_field_chars: int = DEFAULT_MAX_FIELD_CHARS,
        max_items: int = DEFAULT_MAX_ITEMS,
    ):
        if max_field_chars <= 0:
            raise ValueError("max_field_chars must be > 0")
        if max_items <= 0:
            raise ValueError("max_items must be > 0")
        self.max_field_chars = max_field_chars
        self.max_items = max_items

    def format_item(self, item: ContextItem) -> str:
        cap = self.max_field_chars
        if isinstance(item, InsightContextItem):
            return (
                "--- Previous Insight ---\n"
                f"Problem: {_cap(item.problem, cap)}\n"
                f"Solution: {_cap(item.solution, cap)}\n"
                f"Date: {item.created_at}\n"
                f"Similarity Score: {item.score:.2f}\n"
                f"{_DIVIDER}"
            )
        return (
            "--- Previous User Query ---\n"
            f"User: {_cap(item.input, cap)}\n"
            f"Agent: {_cap(item.output, cap)}\n"
            f"Date: {item.created_at}\n"
            f"Similarity Score: {item.score:.2f}\n"
            f"{_DIVIDER}"
        )

    def format(self, items: Sequence[ContextItem] | None) -> str:
        if not items:
            return NO_CONTEXT_TEXT
        return "\n\n".join(self.format_item(item) for item in list(items)[: self.max_items])
