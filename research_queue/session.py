"""
The running research queue: one active quarter, its forest, and a dirty flag.

All view-layer reads and writes go through a ``Session``. Structural changes
(create, delete, status change, import) are persisted to the local cache as
soon as the in-memory change is made; text edits are coalesced by a
``Debouncer`` and persisted once typing pauses.

A re-entrant lock serialises entry points because the HTTP layer may call in
from several request threads and the debouncer commits from a timer thread.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Mapping, Optional, Union

from config.settings import Settings
from research_queue.debounce import Debouncer
from research_queue.exchange import (
    ImportedForest,
    from_imported,
    parse_document,
    to_snapshot,
)
from research_queue.models import SnapshotDocument, Topic
from research_queue.quarters import current_quarter, is_quarter, next_quarter, previous_quarter
from research_queue.resolver import PersistenceResolver
from research_queue import tree

logger = logging.getLogger(__name__)

#: Fields whose edits are debounced.
TEXT_FIELDS: tuple[str, ...] = ("title", "description", "notes")
#: Every field the view layer may patch.
EDITABLE_FIELDS: frozenset[str] = frozenset(TEXT_FIELDS + ("status",))

#: ``flatten_filtered`` value meaning "no filter".
ALL_STATUSES = "all"


class Session:
    """Holds the active quarter and mediates every read and write of its forest.

    Args:
        resolver: Storage resolution for loading and saving forests.
        settings: Application configuration (autosave delay).
        debouncer: Override for the text-edit debouncer (tests).
    """

    def __init__(
        self,
        resolver: PersistenceResolver,
        settings: Optional[Settings] = None,
        debouncer: Optional[Debouncer] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.resolver = resolver
        self.active_quarter: str = current_quarter()
        self.available_quarters: list[str] = [self.active_quarter]
        self.topics: list[Topic] = []
        self.expanded: set[str] = set()
        #: True when there are edits not yet exported as a snapshot.
        self.dirty = False
        self._pending_edits: dict[str, dict[str, str]] = {}
        self._debouncer = debouncer or Debouncer(self.settings.autosave_delay)
        self._lock = threading.RLock()

    # ── Lifecycle ──────────────────────────────────────────────────────────

    async def open(self) -> None:
        """Load the quarter index and the default quarter (with legacy migration)."""
        index = await self.resolver.load_index()
        forest = await self.resolver.load(self.active_quarter, initial=True)
        with self._lock:
            self.available_quarters = sorted(
                set(index.quarters) | set(self.resolver.cached_quarters()) | {self.active_quarter}
            )
            self.topics = forest
            self.expanded = self.resolver.load_expanded()
            self.dirty = False
        logger.info("Session opened on %s", self.active_quarter)

    async def switch_quarter(self, quarter: str) -> None:
        """Save the current forest and make *quarter* active.

        Raises:
            ValueError: If *quarter* is not a ``YYYY-Qn`` token.
        """
        if not is_quarter(quarter):
            raise ValueError(f"Not a quarter token: {quarter!r}")

        with self._lock:
            self._debouncer.flush()
            self.resolver.save(self.active_quarter, self.topics)

        forest = await self.resolver.load(quarter)

        with self._lock:
            if self._pending_edits:
                # Staged while loading; they belong to the outgoing forest.
                self._debouncer.cancel()
                self._commit_edits()
                logger.info("Committed edits staged during switch to %s", quarter)
            self.active_quarter = quarter
            self.topics = forest
            if quarter not in self.available_quarters:
                self.available_quarters = sorted({*self.available_quarters, quarter})
            self.dirty = False
        logger.info("Switched to %s (%d roots)", quarter, len(forest))

    def close(self) -> None:
        """Commit pending edits and save; the session can be discarded after."""
        with self._lock:
            self._debouncer.flush()
            self.resolver.save(self.active_quarter, self.topics)

    def neighbours(self) -> tuple[str, str]:
        """Quarters immediately before and after the active one."""
        return previous_quarter(self.active_quarter), next_quarter(self.active_quarter)

    @property
    def can_go_next(self) -> bool:
        """False once the active quarter is the current calendar quarter."""
        return self.active_quarter != current_quarter()

    def _persist(self) -> None:
        self.resolver.save(self.active_quarter, self.topics)
        self.dirty = True

    # ── Structural mutation ────────────────────────────────────────────────

    def create_topic(self, title: str, description: str = "") -> Topic:
        """Append a new root topic."""
        topic = tree.new_topic(title, description)
        with self._lock:
            self.topics.append(topic)
            self._persist()
        logger.info("Created topic id=%s in %s", topic.id, self.active_quarter)
        return topic

    def create_child(self, parent_id: str, title: str, description: str = "") -> Optional[Topic]:
        """Append a new sub-topic under *parent_id*.

        Returns:
            The new topic, or None if the parent no longer exists.
        """
        with self._lock:
            parent = tree.find_topic(parent_id, self.topics)
            if parent is None:
                return None
            child = tree.new_topic(title, description)
            parent.children.append(child)
            self.expanded.add(parent.id)
            self.resolver.save_expanded(self.expanded)
            self._persist()
        logger.info("Created sub-topic id=%s under %s", child.id, parent_id)
        return child

    def delete_subtree(self, topic_id: str) -> bool:
        """Delete *topic_id* and all of its descendants.

        Confirmation is the caller's job; this deletes unconditionally.
        """
        with self._lock:
            removed = tree.delete_subtree(topic_id, self.topics)
            if removed:
                self._persist()
        if removed:
            logger.info("Deleted subtree id=%s from %s", topic_id, self.active_quarter)
        return removed

    def update_fields(self, topic_id: str, patch: Mapping[str, Any]) -> bool:
        """Apply a field patch to *topic_id*.

        ``status`` is written and persisted at once. ``title``, ``description``
        and ``notes`` are staged and committed after the autosave delay; a
        later edit restarts the delay.

        Returns:
            False if the topic does not exist (nothing is changed).

        Raises:
            ValueError: If *patch* names a field that cannot be edited, or
                gives a field a value that is not a string.
        """
        unknown = set(patch) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot edit field(s): {', '.join(sorted(unknown))}")
        not_text = sorted(name for name in patch if not isinstance(patch[name], str))
        if not_text:
            raise ValueError(f"Field(s) must be strings: {', '.join(not_text)}")

        with self._lock:
            topic = tree.find_topic(topic_id, self.topics)
            if topic is None:
                return False

            if "status" in patch:
                topic.status = patch["status"]
                self._persist()

            text = {name: patch[name] for name in TEXT_FIELDS if name in patch}
            if text:
                self._pending_edits.setdefault(topic_id, {}).update(text)
                self._debouncer.schedule(self._commit_edits)
        return True

    def _commit_edits(self) -> None:
        with self._lock:
            edits, self._pending_edits = self._pending_edits, {}
            applied = 0
            for topic_id, fields in edits.items():
                topic = tree.find_topic(topic_id, self.topics)
                if topic is None:
                    continue
                title = fields.get("title", "").strip()
                if title:
                    topic.title = title
                if "description" in fields:
                    topic.description = fields["description"]
                if "notes" in fields:
                    topic.notes = fields["notes"]
                applied += 1
            if applied:
                self._persist()
                logger.debug("Committed text edits to %d topic(s)", applied)

    def flush_edits(self) -> bool:
        """Commit staged text edits now. Returns False if none were staged."""
        with self._lock:
            return self._debouncer.flush()

    # ── Exchange ───────────────────────────────────────────────────────────

    def export_snapshot(self) -> SnapshotDocument:
        """Snapshot the active forest and clear the dirty flag."""
        with self._lock:
            self._debouncer.flush()
            snapshot = to_snapshot(self.active_quarter, self.topics)
            self.dirty = False
        return snapshot

    def preview_import(self, raw: Union[str, bytes]) -> ImportedForest:
        """Validate an import document without changing anything.

        Raises:
            InvalidFormatError: If *raw* is not an accepted document.
        """
        with self._lock:
            return from_imported(parse_document(raw), self.active_quarter)

    def import_document(self, raw: Union[str, bytes]) -> ImportedForest:
        """Replace the active forest with an imported document.

        Switches the active quarter when the document names another one.
        Confirmation is the caller's job; this replaces unconditionally.

        Raises:
            InvalidFormatError: If *raw* is not an accepted document; nothing
                is changed in that case.
        """
        with self._lock:
            imported = from_imported(parse_document(raw), self.active_quarter)
            self._debouncer.flush()
            if imported.quarter != self.active_quarter:
                self.resolver.save(self.active_quarter, self.topics)
                logger.info("Import switches quarter %s -> %s", self.active_quarter, imported.quarter)
                self.active_quarter = imported.quarter
                if imported.quarter not in self.available_quarters:
                    self.available_quarters = sorted({*self.available_quarters, imported.quarter})
            self.topics = imported.topics
            self._persist()
        logger.info("Imported %d topic(s) into %s", imported.total_count, imported.quarter)
        return imported

    # ── Reads ──────────────────────────────────────────────────────────────

    def find(self, topic_id: str) -> Optional[Topic]:
        with self._lock:
            return tree.find_topic(topic_id, self.topics)

    def parent_of(self, topic_id: str) -> tree.ParentLookup:
        with self._lock:
            return tree.find_parent(topic_id, self.topics)

    def resolve_ancestors(self, topic_id: str) -> list[Topic]:
        with self._lock:
            return tree.ancestors(topic_id, self.topics)

    def topic_path(self, topic_id: str) -> str:
        with self._lock:
            return tree.topic_path(topic_id, self.topics)

    def flatten_filtered(self, status: Optional[str] = None) -> list[Topic]:
        """All topics in preorder, optionally only those with *status*."""
        with self._lock:
            every = tree.flatten(self.topics)
        if status is None or status == ALL_STATUSES:
            return every
        return [topic for topic in every if topic.status == status]

    def set_expanded(self, node_ids: set[str]) -> None:
        with self._lock:
            self.expanded = set(node_ids)
            self.resolver.save_expanded(self.expanded)

    # ── Confirmation prompts ───────────────────────────────────────────────

    def deletion_message(self, topic_id: str) -> Optional[str]:
        """Text asking the user to confirm deleting *topic_id*, or None if absent."""
        topic = self.find(topic_id)
        if topic is None:
            return None
        count = tree.count_descendants(topic)
        if count > 0:
            return f'Delete "{topic.title}" and its {count} sub-topic(s)?'
        return f'Delete "{topic.title}"?'

    @staticmethod
    def import_message(imported: ImportedForest) -> str:
        return (
            f"Import {len(imported.topics)} topic(s) "
            f"({imported.total_count} total with sub-topics) into {imported.quarter}?"
        )
