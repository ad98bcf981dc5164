"""
Tests for research_queue/store.py

Uses a temporary SQLite file so no real cache is ever touched.
"""

from research_queue.store import LocalStore


class TestLocalStore:
    def test_missing_key_returns_none(self, store):
        assert store.get("nope") is None

    def test_set_then_get(self, store):
        store.set("k", '{"a": 1}')
        assert store.get("k") == '{"a": 1}'

    def test_set_overwrites(self, store):
        store.set("k", "1")
        store.set("k", "2")
        assert store.get("k") == "2"

    def test_delete(self, store):
        store.set("k", "1")
        assert store.delete("k") is True
        assert store.get("k") is None
        assert store.delete("k") is False

    def test_keys_by_prefix(self, store):
        store.set("research-queue-2024-Q2", "[]")
        store.set("research-queue-2024-Q1", "[]")
        store.set("research-expanded", "[]")
        assert store.keys("research-queue-") == [
            "research-queue-2024-Q1",
            "research-queue-2024-Q2",
        ]
        assert len(store.keys()) == 3

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "nested" / "cache.db"
        LocalStore(path).set("k", "v")
        assert LocalStore(path).get("k") == "v"
