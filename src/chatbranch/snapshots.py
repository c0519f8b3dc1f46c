"""Snapshot store: branch id -> the message sequence that branch represents.

Snapshots hold references to immutable Message records. A snapshot is only
ever appended to or replaced as a whole; reads hand out copies of the list
so callers cannot reorder a branch's history behind the engine's back.
"""

from __future__ import annotations

from collections.abc import Iterable

from .errors import BranchNotFoundError
from .models import Message


class SnapshotStore:
    def __init__(self) -> None:
        self._snapshots: dict[str, list[Message]] = {}

    def __contains__(self, branch_id: object) -> bool:
        return branch_id in self._snapshots

    def ids(self) -> list[str]:
        return list(self._snapshots)

    def get(self, branch_id: str) -> list[Message]:
        """Copy of a branch's messages.

        Raises:
            BranchNotFoundError: If no snapshot exists for the branch
        """
        try:
            return list(self._snapshots[branch_id])
        except KeyError:
            raise BranchNotFoundError(branch_id) from None

    def length(self, branch_id: str) -> int:
        try:
            return len(self._snapshots[branch_id])
        except KeyError:
            raise BranchNotFoundError(branch_id) from None

    def put(self, branch_id: str, messages: Iterable[Message]) -> int:
        """Replace a branch's snapshot with a copy of `messages`.

        Returns:
            New snapshot length
        """
        snapshot = list(messages)
        self._snapshots[branch_id] = snapshot
        return len(snapshot)

    def append(self, branch_id: str, message: Message) -> int:
        """Append one message to an existing snapshot.

        Returns:
            New snapshot length
        """
        try:
            snapshot = self._snapshots[branch_id]
        except KeyError:
            raise BranchNotFoundError(branch_id) from None
        snapshot.append(message)
        return len(snapshot)

    def remove(self, branch_id: str) -> None:
        self._snapshots.pop(branch_id, None)
