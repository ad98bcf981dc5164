"""Snapshot export and import.

Two document shapes are accepted on import:

* quarterly — ``{"quarter": "2024-Q3", "topics": [...], ...}``
* legacy    — a bare ``[...]`` of topics, from before quarters existed

Only the outer shape and the quarter name are checked. Individual topics are
never rejected: missing or null fields take their defaults, numeric ids become
text, and ids are not checked for collisions.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Union

from pydantic import ValidationError

from research_queue.models import QuarterIndex, SnapshotDocument, Topic, load_forest
from research_queue.quarters import is_quarter
from research_queue.remote import INDEX_DOCUMENT, snapshot_path
from research_queue.tree import flatten

logger = logging.getLogger(__name__)


class InvalidFormatError(ValueError):
    """Raised when an import document matches neither accepted shape."""


@dataclass
class ImportedForest:
    """A validated import, ready to replace the active forest."""

    quarter: str
    topics: list[Topic]

    @property
    def total_count(self) -> int:
        return len(flatten(self.topics))


# ── Export ─────────────────────────────────────────────────────────────────────


def to_snapshot(quarter: str, forest: list[Topic]) -> SnapshotDocument:
    """Wrap *forest* in a snapshot document stamped with the current time."""
    return SnapshotDocument(
        quarter=quarter,
        updated_at=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        topic_count=len(forest),
        sub_topic_count=len(flatten(forest)) - len(forest),
        topics=[topic.model_copy(deep=True) for topic in forest],
    )


def dump_snapshot(snapshot: SnapshotDocument) -> str:
    """Serialise *snapshot* as pretty-printed JSON."""
    return json.dumps(snapshot.to_json_dict(), indent=2, ensure_ascii=False)


def export_to_directory(data_dir: Union[str, Path], snapshot: SnapshotDocument) -> Path:
    """Publish *snapshot* into a snapshot tree readable by ``RemoteSource``.

    Writes ``<data_dir>/<quarter>/queue.json`` and adds the quarter to
    ``<data_dir>/index.json``.

    Returns:
        Path of the written snapshot file.
    """
    root = Path(data_dir)
    target = root / snapshot_path(snapshot.quarter)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(dump_snapshot(snapshot) + "\n", encoding="utf-8")

    index_file = root / INDEX_DOCUMENT
    quarters: set[str] = {snapshot.quarter}
    if index_file.exists():
        try:
            quarters.update(QuarterIndex.model_validate_json(index_file.read_text("utf-8")).quarters)
        except ValidationError:
            logger.warning("Rewriting unreadable index at %s", index_file)
    index = QuarterIndex(quarters=sorted(quarters))
    index_file.write_text(index.model_dump_json(indent=2) + "\n", encoding="utf-8")

    logger.info("Exported %s to %s", snapshot.quarter, target)
    return target


# ── Import ─────────────────────────────────────────────────────────────────────


def parse_document(raw: Union[str, bytes]) -> Any:
    """Decode raw import text, raising ``InvalidFormatError`` if it isn't JSON."""
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise InvalidFormatError(f"Import is not valid JSON: {exc}") from exc


def from_imported(document: Any, active_quarter: str) -> ImportedForest:
    """Normalise an import document of either accepted shape.

    Args:
        document: Decoded JSON (see ``parse_document``).
        active_quarter: Quarter used when the document does not name one.

    Returns:
        The quarter the topics belong to and the topics themselves.

    Raises:
        InvalidFormatError: If the document is neither a list nor an object
            with a ``topics`` list, or names a quarter that is not a
            ``YYYY-Qn`` token.
    """
    quarter = active_quarter
    if isinstance(document, list):
        items = document
    elif isinstance(document, dict) and isinstance(document.get("topics"), list):
        items = document["topics"]
        if document.get("quarter"):
            quarter = document["quarter"]
            if not is_quarter(quarter):
                raise InvalidFormatError(f"Invalid format: {quarter!r} is not a quarter token.")
    else:
        raise InvalidFormatError(
            "Invalid format: expected a list of topics or an object with a 'topics' list."
        )

    return ImportedForest(quarter=quarter, topics=load_forest(items))
