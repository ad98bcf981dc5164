"""
Pydantic models shared across the research queue core.
"""

from __future__ import annotations

from typing import Annotated, Any, Callable

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter

#: Status given to every newly created topic.
DEFAULT_STATUS = "queued"


def _text(default: str) -> Callable[[Any], str]:
    """Coerce any JSON scalar to text; ``null`` becomes *default*."""

    def coerce(value: Any) -> str:
        if value is None:
            return default
        return value if isinstance(value, str) else str(value)

    return coerce


def _nodes(value: Any) -> list:
    """Keep only object-shaped entries of a child list; anything else is no children."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, (dict, Topic))]


Text = Annotated[str, BeforeValidator(_text(""))]
Status = Annotated[str, BeforeValidator(_text(DEFAULT_STATUS))]


class Topic(BaseModel):
    """A node in a quarter's topic forest.

    Any JSON object loads: missing or ``null`` fields take their defaults,
    non-string scalars (e.g. numeric ids) are turned into text, and unknown
    fields are kept and written back out unchanged.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Text = ""
    title: Text = ""
    description: Text = ""
    status: Status = DEFAULT_STATUS
    notes: Text = ""
    children: Annotated[list[Topic], BeforeValidator(_nodes)] = Field(default_factory=list)
    #: Epoch milliseconds for topics created here; imported values are kept as-is.
    created_at: Any = Field(default=0, alias="createdAt")

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True)


_FOREST = TypeAdapter(list[Topic])


def load_forest(data: Any) -> list[Topic]:
    """Build a forest from decoded JSON without rejecting any node object.

    A value that is not a list yields an empty forest.
    """
    return _FOREST.validate_python(_nodes(data))


class SnapshotDocument(BaseModel):
    """Portable, metadata-annotated export of one quarter's forest."""

    model_config = ConfigDict(populate_by_name=True)

    quarter: str
    updated_at: str = Field(alias="updatedAt")
    topic_count: int = Field(alias="topicCount")
    sub_topic_count: int = Field(alias="subTopicCount")
    topics: list[Topic]

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True)


class QuarterIndex(BaseModel):
    """Remote list of quarters that have published snapshots."""

    quarters: list[str]
