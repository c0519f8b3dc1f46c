"""Branch registry: branch id -> BranchMetadata.

The registry stores parent pointers only. Children and roots are derived
on demand from those pointers, so metadata never references its children.
"""

from __future__ import annotations

from collections.abc import Iterator

from .errors import BranchNotFoundError
from .models import BranchMetadata


class BranchRegistry:
    """Authoritative map of branch metadata, in insertion order."""

    def __init__(self) -> None:
        self._branches: dict[str, BranchMetadata] = {}

    def __contains__(self, branch_id: object) -> bool:
        return branch_id in self._branches

    def __len__(self) -> int:
        return len(self._branches)

    def __iter__(self) -> Iterator[BranchMetadata]:
        return iter(list(self._branches.values()))

    def ids(self) -> list[str]:
        return list(self._branches)

    def find(self, branch_id: str) -> BranchMetadata | None:
        """Return the live metadata object, or None."""
        return self._branches.get(branch_id)

    def get(self, branch_id: str) -> BranchMetadata:
        """Return the live metadata object.

        Raises:
            BranchNotFoundError: If no branch has this id
        """
        branch = self._branches.get(branch_id)
        if branch is None:
            raise BranchNotFoundError(branch_id)
        return branch

    def add(self, branch: BranchMetadata) -> None:
        self._branches[branch.id] = branch

    def remove(self, branch_id: str) -> BranchMetadata:
        try:
            return self._branches.pop(branch_id)
        except KeyError:
            raise BranchNotFoundError(branch_id) from None

    # ─────────────────────────────────────────────────────────────────────────
    # Derived tree shape
    # ─────────────────────────────────────────────────────────────────────────

    def children_index(self) -> dict[str | None, list[BranchMetadata]]:
        """Group branches by parent id. Roots are grouped under None.

        A branch whose parent is no longer registered is treated as a root.
        """
        index: dict[str | None, list[BranchMetadata]] = {}
        for branch in self._branches.values():
            parent = branch.parent_branch_id
            if parent is not None and parent not in self._branches:
                parent = None
            index.setdefault(parent, []).append(branch)
        return index

    def children_of(self, branch_id: str) -> list[BranchMetadata]:
        return [b for b in self._branches.values() if b.parent_branch_id == branch_id]

    def has_children(self, branch_id: str) -> bool:
        return any(b.parent_branch_id == branch_id for b in self._branches.values())

    def roots(self) -> list[BranchMetadata]:
        return self.children_index().get(None, [])

    def walk(self) -> Iterator[tuple[int, BranchMetadata]]:
        """Depth-first (depth, branch) pairs over the whole forest.

        Uses an explicit stack and a visited set, so a malformed parent chain
        cannot loop forever.
        """
        index = self.children_index()
        visited: set[str] = set()
        stack = [(0, b) for b in reversed(index.get(None, []))]

        while stack:
            depth, branch = stack.pop()
            if branch.id in visited:
                continue
            visited.add(branch.id)
            yield depth, branch
            for child in reversed(index.get(branch.id, [])):
                stack.append((depth + 1, child))
