"""Shared fixtures: isolated SQLite store, fake remote, manual timers."""

from __future__ import annotations

from typing import Any, Callable, Optional

import pytest

from config.settings import Settings
from research_queue.debounce import Debouncer
from research_queue.models import Topic
from research_queue.resolver import PersistenceResolver
from research_queue.session import Session
from research_queue.store import LocalStore


class FakeRemote:
    """In-memory stand-in for RemoteSource; unknown paths are absent."""

    def __init__(self, documents: Optional[dict[str, Any]] = None) -> None:
        self.documents = documents or {}
        self.requested: list[str] = []
        #: Called with the path on every fetch, before the document is returned.
        self.on_fetch: Optional[Callable[[str], None]] = None

    async def fetch_json(self, relative: str) -> Optional[Any]:
        self.requested.append(relative)
        if self.on_fetch is not None:
            self.on_fetch(relative)
        return self.documents.get(relative)


class ManualTimer:
    """``threading.Timer`` look-alike that only fires when told to."""

    created: list["ManualTimer"] = []

    def __init__(self, interval, function, args=None, kwargs=None) -> None:
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.daemon = False
        self.started = False
        self.cancelled = False
        ManualTimer.created.append(self)

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if not self.cancelled:
            self.function(*self.args, **self.kwargs)


def make_topic(topic_id: str, title: str, children: Optional[list[Topic]] = None, **fields) -> Topic:
    return Topic(id=topic_id, title=title, children=children or [], created_at=1, **fields)


@pytest.fixture
def sample_forest() -> list[Topic]:
    """
    a
    ├── b
    │   └── c
    └── d
    e
    """
    return [
        make_topic("a", "Alpha", [
            make_topic("b", "Beta", [make_topic("c", "Gamma")]),
            make_topic("d", "Delta", status="done"),
        ]),
        make_topic("e", "Epsilon"),
    ]


@pytest.fixture
def store(tmp_path) -> LocalStore:
    return LocalStore(tmp_path / "local.db")


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def resolver(store, remote) -> PersistenceResolver:
    return PersistenceResolver(store, remote)


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Settings:
    monkeypatch.setenv("DB_PATH", str(tmp_path / "local.db"))
    monkeypatch.setenv("QUEUE_DATA_URL", str(tmp_path / "data"))
    return Settings()


@pytest.fixture
def manual_debouncer() -> Debouncer:
    ManualTimer.created.clear()
    return Debouncer(0.3, timer_factory=ManualTimer)


@pytest.fixture
def session(resolver, settings, manual_debouncer) -> Session:
    s = Session(resolver, settings, debouncer=manual_debouncer)
    s.active_quarter = "2024-Q2"
    return s
