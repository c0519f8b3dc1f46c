"""Tests for BranchRegistry and SnapshotStore."""

import pytest

from chatbranch.errors import BranchNotFoundError
from chatbranch.models import BranchMetadata, BranchPoint, make_main_branch
from chatbranch.registry import BranchRegistry
from chatbranch.snapshots import SnapshotStore

from conftest import ids, make_message, make_messages


def make_branch(id: str, parent: str | None = "main") -> BranchMetadata:
    return BranchMetadata(
        id=id,
        title=id,
        parent_branch_id=parent,
        branch_point=BranchPoint(message_id="m1", message_index=0),
    )


@pytest.fixture
def registry():
    """main -> a -> a1, main -> b."""
    reg = BranchRegistry()
    reg.add(make_main_branch())
    reg.add(make_branch("a"))
    reg.add(make_branch("b"))
    reg.add(make_branch("a1", parent="a"))
    return reg


class TestBranchRegistry:
    """Tests for registry lookup and derived tree shape."""

    def test_get_and_find(self, registry):
        """get raises on unknown ids, find returns None."""
        assert registry.get("a").id == "a"
        assert registry.find("missing") is None
        with pytest.raises(BranchNotFoundError):
            registry.get("missing")

    def test_insertion_order(self, registry):
        """Iteration follows insertion order."""
        assert [b.id for b in registry] == ["main", "a", "b", "a1"]
        assert len(registry) == 4

    def test_remove(self, registry):
        """remove returns the metadata and forgets it."""
        removed = registry.remove("b")
        assert removed.id == "b"
        assert "b" not in registry
        with pytest.raises(BranchNotFoundError):
            registry.remove("b")

    def test_children(self, registry):
        """Children are derived from parent pointers."""
        assert [b.id for b in registry.children_of("main")] == ["a", "b"]
        assert registry.has_children("a") is True
        assert registry.has_children("b") is False

    def test_roots(self, registry):
        """Only main is a root."""
        assert [b.id for b in registry.roots()] == ["main"]

    def test_orphan_becomes_root(self, registry):
        """A branch whose parent is missing is grouped with the roots."""
        registry.add(make_branch("orphan", parent="gone"))
        assert [b.id for b in registry.roots()] == ["main", "orphan"]

    def test_walk(self, registry):
        """Depth-first walk with depths."""
        assert [(d, b.id) for d, b in registry.walk()] == [(0, "main"), (1, "a"), (2, "a1"), (1, "b")]

    def test_walk_survives_cycle(self):
        """A malformed parent cycle does not loop forever."""
        reg = BranchRegistry()
        reg.add(make_main_branch())
        reg.add(make_branch("x", parent="y"))
        reg.add(make_branch("y", parent="x"))
        assert [b.id for _, b in reg.walk()] == ["main"]


class TestSnapshotStore:
    """Tests for SnapshotStore."""

    def test_put_copies(self):
        """The stored list is independent of the caller's list."""
        store = SnapshotStore()
        source = make_messages(1, 2)
        assert store.put("b", source) == 2
        source.append(make_message("3"))
        assert ids(store.get("b")) == ["1", "2"]

    def test_get_returns_copy(self):
        """Mutating a returned list does not change the snapshot."""
        store = SnapshotStore()
        store.put("b", make_messages(1))
        store.get("b").append(make_message("x"))
        assert store.length("b") == 1

    def test_append(self):
        """append returns the new length."""
        store = SnapshotStore()
        store.put("b", [])
        assert store.append("b", make_message("1")) == 1
        assert store.append("b", make_message("2")) == 2

    def test_unknown_raises(self):
        """Reads and appends on unknown branches raise."""
        store = SnapshotStore()
        with pytest.raises(BranchNotFoundError):
            store.get("missing")
        with pytest.raises(BranchNotFoundError):
            store.append("missing", make_message("1"))

    def test_remove_is_idempotent(self):
        """Removing twice is fine."""
        store = SnapshotStore()
        store.put("b", [])
        store.remove("b")
        store.remove("b")
        assert "b" not in store
