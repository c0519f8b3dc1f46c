"""In-memory branch engine for forked conversation histories.

Public API:
- BranchManager: branch lifecycle, comparison, merging, chat load/export
- Message, Chat, BranchRecord: caller-shaped conversation records
- BranchMetadata, BranchPoint, BranchDiff, BranchComparison, MergeOptions
- find_common_ancestor_length, similarity_score: sequence diff helpers
- BranchError and its subclasses
"""

from .branches import BranchManager
from .diff import find_common_ancestor_length, similarity_score
from .errors import (
    BranchError,
    BranchHasChildrenError,
    BranchNotFoundError,
    MergeConflictError,
    MessageNotFoundError,
    NoActiveBranchError,
    NotFoundError,
    ProtectedBranchError,
)
from .models import (
    BranchComparison,
    BranchDiff,
    BranchMetadata,
    BranchPoint,
    BranchRecord,
    Chat,
    MergeOptions,
    Message,
)

__all__ = [
    "BranchManager",
    "find_common_ancestor_length",
    "similarity_score",
    "BranchError",
    "BranchHasChildrenError",
    "BranchNotFoundError",
    "MergeConflictError",
    "MessageNotFoundError",
    "NoActiveBranchError",
    "NotFoundError",
    "ProtectedBranchError",
    "BranchComparison",
    "BranchDiff",
    "BranchMetadata",
    "BranchPoint",
    "BranchRecord",
    "Chat",
    "MergeOptions",
    "Message",
]
