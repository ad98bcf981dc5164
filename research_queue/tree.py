"""Recursive algorithms over a topic forest.

All traversal is preorder, depth-first, following each ``children`` list in
its stored order. Nodes are only ever appended as new leaves, so the forest
is always a finite acyclic tree and plain recursion is safe.
"""

from __future__ import annotations

import logging
import secrets
import string
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from research_queue.models import DEFAULT_STATUS, Topic

logger = logging.getLogger(__name__)

PATH_SEPARATOR = " / "

_BASE36 = string.digits + string.ascii_lowercase


# ── Creation ───────────────────────────────────────────────────────────────────


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_id() -> str:
    """Return a fresh topic id: base-36 milliseconds plus 6 random chars."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return _base36(time.time_ns() // 1_000_000) + suffix


def new_topic(title: str, description: str = "") -> Topic:
    """Build a new leaf topic with a fresh id and the default status."""
    return Topic(
        id=generate_id(),
        title=title,
        description=description,
        status=DEFAULT_STATUS,
        notes="",
        children=[],
        created_at=time.time_ns() // 1_000_000,
    )


# ── Lookup ─────────────────────────────────────────────────────────────────────


class ParentKind(str, Enum):
    """Outcome of a parent lookup."""

    ROOT = "root"            # id exists at the top level of the forest
    PARENT = "parent"        # id exists below ``ParentLookup.parent``
    NOT_FOUND = "not_found"  # id does not exist anywhere


@dataclass(frozen=True)
class ParentLookup:
    kind: ParentKind
    parent: Optional[Topic] = None

    @property
    def found(self) -> bool:
        return self.kind is not ParentKind.NOT_FOUND


_ROOT = ParentLookup(ParentKind.ROOT)
_NOT_FOUND = ParentLookup(ParentKind.NOT_FOUND)


def find_topic(topic_id: str, forest: list[Topic]) -> Optional[Topic]:
    """Return the first node whose id matches, or ``None``."""
    for topic in forest:
        if topic.id == topic_id:
            return topic
        found = find_topic(topic_id, topic.children)
        if found is not None:
            return found
    return None


def _find_parent(
    topic_id: str, siblings: list[Topic], parent: Optional[Topic]
) -> ParentLookup:
    for topic in siblings:
        if topic.id == topic_id:
            return _ROOT if parent is None else ParentLookup(ParentKind.PARENT, parent)
        result = _find_parent(topic_id, topic.children, topic)
        if result.found:
            return result
    return _NOT_FOUND


def find_parent(topic_id: str, forest: list[Topic]) -> ParentLookup:
    """Resolve the immediate parent of *topic_id*.

    Returns:
        ``ParentKind.ROOT`` when the id is a root, ``ParentKind.PARENT`` with
        the parent node otherwise, and ``ParentKind.NOT_FOUND`` when the id is
        not in the forest at all.
    """
    return _find_parent(topic_id, forest, None)


# ── Mutation ───────────────────────────────────────────────────────────────────


def delete_subtree(topic_id: str, forest: list[Topic]) -> bool:
    """Detach the first node matching *topic_id*, with all its descendants.

    Siblings are checked before descending, mirroring how the node would be
    found by a level-by-level search.

    Returns:
        True if a node was removed, False if the id was not present.
    """
    for index, topic in enumerate(forest):
        if topic.id == topic_id:
            del forest[index]
            return True
    for topic in forest:
        if delete_subtree(topic_id, topic.children):
            return True
    return False


# ── Paths ──────────────────────────────────────────────────────────────────────


def ancestors(topic_id: str, forest: list[Topic]) -> list[Topic]:
    """Return the ancestors of *topic_id*, root first.

    A root, or an id that cannot be resolved, has no ancestors.
    """
    chain: list[Topic] = []
    current = topic_id
    while True:
        lookup = find_parent(current, forest)
        if lookup.kind is not ParentKind.PARENT:
            break
        chain.insert(0, lookup.parent)
        current = lookup.parent.id
    return chain


def topic_path(topic_id: str, forest: list[Topic]) -> str:
    """Join ancestor titles and the topic's own title with ``" / "``.

    Returns an empty string for an unknown id.
    """
    topic = find_topic(topic_id, forest)
    if topic is None:
        return ""
    titles = [t.title for t in ancestors(topic_id, forest)]
    titles.append(topic.title)
    return PATH_SEPARATOR.join(titles)


# ── Flattening ─────────────────────────────────────────────────────────────────


def flatten(forest: list[Topic]) -> list[Topic]:
    """Every node of *forest* in preorder, roots included."""
    result: list[Topic] = []
    for topic in forest:
        result.append(topic)
        result.extend(flatten(topic.children))
    return result


def count_descendants(topic: Topic) -> int:
    """Number of nodes below *topic* at any depth."""
    return len(flatten(topic.children))
