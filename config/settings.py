"""Application settings — all configuration loaded from environment variables.

Usage:
    from config.settings import Settings
    settings = Settings()
    settings.validate()   # raises ValueError on an unusable configuration
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


@dataclass
class Settings:
    """Centralised application configuration.

    All values are read from environment variables at instantiation time
    so that tests can override them by patching ``os.environ``.
    """

    # ── Storage ─────────────────────────────────────────────────────────────
    #: SQLite file backing the local key-value cache.
    db_path: str = field(
        default_factory=lambda: os.environ.get("DB_PATH", os.path.join("data", "local.db"))
    )
    #: Base of the read-only snapshot tree: an http(s) URL or a directory.
    data_url: str = field(
        default_factory=lambda: os.environ.get("QUEUE_DATA_URL", "data")
    )
    remote_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REMOTE_TIMEOUT", "5"))
    )

    # ── Editing ─────────────────────────────────────────────────────────────
    autosave_delay_ms: int = field(
        default_factory=lambda: int(os.environ.get("AUTOSAVE_DELAY_MS", "300"))
    )
    #: Closed set of workflow states offered to the view layer.
    statuses: list[str] = field(
        default_factory=lambda: _split_csv(
            os.environ.get("TOPIC_STATUSES", "queued,in_progress,done")
        )
    )

    # ── Flask ───────────────────────────────────────────────────────────────
    debug: bool = field(
        default_factory=lambda: os.environ.get("FLASK_DEBUG", "0") == "1"
    )
    port: int = field(
        default_factory=lambda: int(os.environ.get("PORT", "5001"))
    )

    @property
    def autosave_delay(self) -> float:
        """Debounce delay in seconds."""
        return self.autosave_delay_ms / 1000

    def validate(self) -> None:
        """Raise ``ValueError`` if any setting is unusable."""
        if self.autosave_delay_ms < 0:
            raise ValueError("AUTOSAVE_DELAY_MS must not be negative.")
        if self.remote_timeout <= 0:
            raise ValueError("REMOTE_TIMEOUT must be a positive number of seconds.")
        if "queued" not in self.statuses:
            raise ValueError(
                "TOPIC_STATUSES must include 'queued', the status given to new topics."
            )
