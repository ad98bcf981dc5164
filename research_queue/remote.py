"""Read-only source of published quarter snapshots.

Layout under the configured base (URL or directory)
────────────────────────────────────────────────────
index.json               {"quarters": ["2024-Q1", ...]}
<quarter>/queue.json     SnapshotDocument

Every failure (connection error, non-2xx status, missing file, malformed
JSON) is reported as ``None``: to callers an unreachable snapshot and an
absent one are the same thing.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

import requests

logger = logging.getLogger(__name__)

INDEX_DOCUMENT = "index.json"
QUEUE_DOCUMENT = "queue.json"


def snapshot_path(quarter: str) -> str:
    """Relative location of a quarter's snapshot under the base."""
    return f"{quarter}/{QUEUE_DOCUMENT}"


class RemoteSource:
    """Fetches JSON documents from an http(s) base URL or a local directory.

    The blocking read runs in a worker thread so callers can ``await`` it
    without stalling the event loop.
    """

    def __init__(self, base: str, timeout: float = 5.0) -> None:
        self.base = base
        self.timeout = timeout

    @property
    def is_http(self) -> bool:
        return self.base.startswith(("http://", "https://"))

    async def fetch_json(self, relative: str) -> Optional[Any]:
        """Return the decoded document at *relative*, or None if unavailable."""
        return await asyncio.to_thread(self._fetch_blocking, relative)

    def _fetch_blocking(self, relative: str) -> Optional[Any]:
        if self.is_http:
            return self._fetch_http(relative)
        return self._fetch_file(relative)

    def _fetch_http(self, relative: str) -> Optional[Any]:
        url = f"{self.base.rstrip('/')}/{relative}"
        try:
            response = requests.get(
                url, timeout=self.timeout, headers={"Cache-Control": "no-cache"}
            )
        except requests.RequestException as exc:
            logger.warning("Remote fetch failed for %s: %s", url, exc)
            return None

        if not response.ok:
            logger.info("Remote document %s unavailable: HTTP %d", url, response.status_code)
            return None

        try:
            return response.json()
        except ValueError as exc:
            logger.warning("Remote document %s is not valid JSON: %s", url, exc)
            return None

    def _fetch_file(self, relative: str) -> Optional[Any]:
        path = Path(self.base) / relative
        try:
            text = path.read_text(encoding="utf-8")
        except OSError:
            logger.debug("Snapshot file %s not present", path)
            return None

        try:
            return json.loads(text)
        except ValueError as exc:
            logger.warning("Snapshot file %s is not valid JSON: %s", path, exc)
            return None
