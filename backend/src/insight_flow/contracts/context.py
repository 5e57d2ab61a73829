"""Context item contracts produced by retrieval."""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class EntryContextItem(BaseModel):
    """A previously logged user query and the agent's answer."""

    type: Literal["entry"] = "entry"
    input: str = ""
    output: str = ""
    created_at: str = ""
    score: float = 0.0


class InsightContextItem(BaseModel):
    """A curated problem/solution pair."""

    type: Literal["insight"] = "insight"
    problem: str = ""
    solution: str = ""
    created_at: str = ""
    score: float = 0.0


ContextItem = Annotated[
    Union[EntryContextItem, InsightContextItem],
    Field(discriminator="type"),
]
