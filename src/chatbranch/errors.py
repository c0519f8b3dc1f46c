"""Exceptions raised by the branch engine.

Every error subclasses BranchError, which is a ValueError, so callers that
already catch ValueError around branch operations keep working.
"""


class BranchError(ValueError):
    """Base class for branch engine failures."""


class NotFoundError(BranchError):
    """A referenced branch or message does not exist."""


class BranchNotFoundError(NotFoundError):
    def __init__(self, branch_id: str) -> None:
        self.branch_id = branch_id
        super().__init__(f"Branch not found: {branch_id}")


class MessageNotFoundError(NotFoundError):
    def __init__(self, message_id: str) -> None:
        self.message_id = message_id
        super().__init__(f"Message not found in conversation: {message_id}")


class ProtectedBranchError(BranchError):
    def __init__(self, branch_id: str) -> None:
        self.branch_id = branch_id
        super().__init__(f"Cannot delete {branch_id} branch")


class BranchHasChildrenError(BranchError):
    def __init__(self, branch_id: str, child_ids: list[str]) -> None:
        self.branch_id = branch_id
        self.child_ids = child_ids
        super().__init__(
            f"Cannot delete branch with children: {branch_id}. "
            f"Delete child branches first: {', '.join(child_ids)}"
        )


class NoActiveBranchError(BranchError):
    def __init__(self) -> None:
        super().__init__("No active branch")


class MergeConflictError(BranchError):
    """Both branches diverged and the caller did not opt into keeping both."""

    def __init__(self, source_id: str, target_id: str, conflicts: list[str]) -> None:
        self.source_id = source_id
        self.target_id = target_id
        self.conflicts = conflicts
        super().__init__(
            f"Branches have conflicts and cannot be merged "
            f"({source_id} -> {target_id}): {'; '.join(conflicts)}"
        )
