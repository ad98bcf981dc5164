"""
Per-quarter storage resolution.

Flow
────
load(quarter)
  1. local cache      research-queue-<quarter>   (first hit wins)
  2. remote snapshot  <base>/<quarter>/queue.json → copied into the cache
  3. legacy record    research-queue-data        (initial quarter only,
                                                  copied, never deleted)
  4. empty forest

A missing key, unparsable JSON or an unreachable remote only moves
resolution on to the next tier. A record that parses is always a hit, even
when its topics carry odd or missing fields.
"""

from __future__ import annotations

import json
import logging
from typing import Iterable, Optional

from research_queue.models import QuarterIndex, Topic, load_forest
from research_queue.quarters import STORAGE_PREFIX, current_quarter, is_quarter, storage_key
from research_queue.remote import INDEX_DOCUMENT, RemoteSource, snapshot_path
from research_queue.store import LocalStore

logger = logging.getLogger(__name__)

#: Pre-quarter, single-forest record kept by older versions.
LEGACY_STORAGE_KEY = "research-queue-data"
#: Expanded tree nodes, shared by all quarters (view state).
EXPANDED_STORAGE_KEY = "research-expanded"


def forest_to_json(forest: list[Topic]) -> str:
    return json.dumps([topic.to_json_dict() for topic in forest])


class PersistenceResolver:
    """Chooses, per quarter, where the forest comes from and keeps the cache warm."""

    def __init__(self, store: LocalStore, remote: RemoteSource) -> None:
        self.store = store
        self.remote = remote

    # ── Tiers ──────────────────────────────────────────────────────────────

    def _read_local(self, key: str) -> Optional[list[Topic]]:
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Corrupt local record %r treated as absent", key)
            return None
        if not isinstance(data, list):
            logger.warning("Local record %r is not a topic list; loading it as empty", key)
        return load_forest(data)

    async def _read_remote(self, quarter: str) -> Optional[list[Topic]]:
        document = await self.remote.fetch_json(snapshot_path(quarter))
        if document is None:
            return None
        topics = document.get("topics") if isinstance(document, dict) else None
        return load_forest(topics or [])

    # ── Public API ─────────────────────────────────────────────────────────

    async def load(self, quarter: str, *, initial: bool = False) -> list[Topic]:
        """Resolve the forest of *quarter*.

        Args:
            quarter: Quarter token to load.
            initial: True only for the quarter opened at startup; enables the
                one-time migration of the legacy single-forest record.

        Returns:
            The forest; empty when no tier has data.
        """
        forest = self._read_local(storage_key(quarter))
        if forest is not None:
            logger.info("Loaded %s from local cache (%d roots)", quarter, len(forest))
            return forest

        forest = await self._read_remote(quarter)
        if forest is not None:
            logger.info("Loaded %s from remote snapshot (%d roots)", quarter, len(forest))
            self.save(quarter, forest)
            return forest

        if initial:
            forest = self._read_local(LEGACY_STORAGE_KEY)
            if forest is not None:
                logger.info("Migrated legacy record into %s (%d roots)", quarter, len(forest))
                self.save(quarter, forest)
                return forest

        logger.info("No stored data for %s; starting empty", quarter)
        return []

    def save(self, quarter: str, forest: list[Topic]) -> None:
        """Write *forest* to the local cache under *quarter*."""
        self.store.set(storage_key(quarter), forest_to_json(forest))

    async def load_index(self) -> QuarterIndex:
        """Fetch the published quarter list, defaulting to the current quarter."""
        document = await self.remote.fetch_json(INDEX_DOCUMENT)
        quarters = document.get("quarters") if isinstance(document, dict) else None
        if not quarters or not isinstance(quarters, list):
            return QuarterIndex(quarters=[current_quarter()])
        return QuarterIndex(quarters=[str(q) for q in quarters])

    def cached_quarters(self) -> list[str]:
        """Quarters that have a forest in the local cache."""
        prefix_len = len(STORAGE_PREFIX)
        return [
            key[prefix_len:]
            for key in self.store.keys(STORAGE_PREFIX)
            if is_quarter(key[prefix_len:])
        ]

    # ── View state ─────────────────────────────────────────────────────────

    def load_expanded(self) -> set[str]:
        raw = self.store.get(EXPANDED_STORAGE_KEY)
        if raw is None:
            return set()
        try:
            return {str(node_id) for node_id in json.loads(raw)}
        except (ValueError, TypeError):
            logger.warning("Corrupt expanded-node record treated as empty")
            return set()

    def save_expanded(self, node_ids: Iterable[str]) -> None:
        self.store.set(EXPANDED_STORAGE_KEY, json.dumps(sorted(node_ids)))
