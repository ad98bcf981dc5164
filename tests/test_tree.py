"""Tests for research_queue/tree.py — forest traversal and mutation."""

from __future__ import annotations

from research_queue.tree import (
    ParentKind,
    ancestors,
    count_descendants,
    delete_subtree,
    find_parent,
    find_topic,
    flatten,
    generate_id,
    new_topic,
    topic_path,
)


class TestFind:
    def test_finds_root(self, sample_forest):
        assert find_topic("a", sample_forest).title == "Alpha"

    def test_finds_deep_node(self, sample_forest):
        assert find_topic("c", sample_forest).title == "Gamma"

    def test_missing_returns_none(self, sample_forest):
        assert find_topic("zzz", sample_forest) is None

    def test_empty_forest(self):
        assert find_topic("a", []) is None


class TestFindParent:
    def test_root_is_distinct_from_missing(self, sample_forest):
        root = find_parent("e", sample_forest)
        missing = find_parent("zzz", sample_forest)

        assert root.kind is ParentKind.ROOT
        assert root.parent is None
        assert missing.kind is ParentKind.NOT_FOUND
        assert root != missing

    def test_immediate_parent(self, sample_forest):
        lookup = find_parent("c", sample_forest)
        assert lookup.kind is ParentKind.PARENT
        assert lookup.parent.id == "b"

    def test_found_flag(self, sample_forest):
        assert find_parent("a", sample_forest).found
        assert not find_parent("zzz", sample_forest).found


class TestDeleteSubtree:
    def test_delete_root_removes_descendants(self, sample_forest):
        assert delete_subtree("a", sample_forest) is True
        for topic_id in ("a", "b", "c", "d"):
            assert find_topic(topic_id, sample_forest) is None
        assert [t.id for t in sample_forest] == ["e"]

    def test_delete_nested(self, sample_forest):
        assert delete_subtree("b", sample_forest) is True
        assert find_topic("c", sample_forest) is None
        assert [t.id for t in sample_forest[0].children] == ["d"]

    def test_delete_missing_is_noop(self, sample_forest):
        before = [t.model_dump() for t in sample_forest]
        assert delete_subtree("zzz", sample_forest) is False
        assert [t.model_dump() for t in sample_forest] == before


class TestPaths:
    def test_ancestors_root_first(self, sample_forest):
        assert [t.id for t in ancestors("c", sample_forest)] == ["a", "b"]

    def test_root_has_no_ancestors(self, sample_forest):
        assert ancestors("a", sample_forest) == []

    def test_unknown_has_no_ancestors(self, sample_forest):
        assert ancestors("zzz", sample_forest) == []

    def test_path_joins_titles(self, sample_forest):
        assert topic_path("c", sample_forest) == "Alpha / Beta / Gamma"

    def test_path_of_root_is_its_title(self, sample_forest):
        assert topic_path("e", sample_forest) == "Epsilon"

    def test_path_matches_ancestors(self, sample_forest):
        titles = [t.title for t in ancestors("d", sample_forest)]
        titles.append(find_topic("d", sample_forest).title)
        assert topic_path("d", sample_forest) == " / ".join(titles)

    def test_path_of_unknown_is_empty(self, sample_forest):
        assert topic_path("zzz", sample_forest) == ""


class TestFlatten:
    def test_preorder(self, sample_forest):
        assert [t.id for t in flatten(sample_forest)] == ["a", "b", "c", "d", "e"]

    def test_empty(self):
        assert flatten([]) == []

    def test_count_identity(self, sample_forest):
        total = len(sample_forest) + sum(count_descendants(t) for t in sample_forest)
        assert len(flatten(sample_forest)) == total

    def test_count_descendants(self, sample_forest):
        assert count_descendants(sample_forest[0]) == 3
        assert count_descendants(sample_forest[1]) == 0


class TestNewTopic:
    def test_defaults(self):
        topic = new_topic("A")
        assert topic.title == "A"
        assert topic.description == ""
        assert topic.status == "queued"
        assert topic.children == []
        assert topic.created_at > 0

    def test_ids_are_unique(self):
        ids = {generate_id() for _ in range(200)}
        assert len(ids) == 200
