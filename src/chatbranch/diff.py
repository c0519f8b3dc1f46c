"""Diffing two message sequences.

Messages are compared by identity (their id), position by position from the
start. Two messages with the same id are "the same" even if one was edited,
so the functions here detect structural fork points, not content drift.
"""

from __future__ import annotations

from collections.abc import Sequence

from .models import BranchDiff, BranchPoint, Message


def find_common_ancestor_length(
    messages_a: Sequence[Message], messages_b: Sequence[Message]
) -> int:
    """Length of the longest shared id-prefix of two sequences.

    Returns 0 if they diverge immediately and min(len) if one is a prefix
    of the other.

    Examples:
        ids [1, 2, 3] vs [1, 2, 3, 4, 5] -> 3
        ids [1, 2] vs [9, 2] -> 0
    """
    limit = min(len(messages_a), len(messages_b))
    i = 0
    while i < limit and messages_a[i].id == messages_b[i].id:
        i += 1
    return i


def similarity_score(messages_a: Sequence[Message], messages_b: Sequence[Message]) -> float:
    """Shared-prefix length over the longer sequence's length, in [0, 1].

    Two empty sequences are identical (1.0).
    """
    total = max(len(messages_a), len(messages_b))
    if total == 0:
        return 1.0
    return find_common_ancestor_length(messages_a, messages_b) / total


def detect_conflicts(
    messages_a: Sequence[Message], messages_b: Sequence[Message]
) -> list[str]:
    """Conflicts between two sequences.

    The only conflict is two-sided divergence: both sequences have messages
    past their common ancestor. One-sided divergence is a fast-forward.
    """
    common = find_common_ancestor_length(messages_a, messages_b)
    divergent_a = len(messages_a) - common
    divergent_b = len(messages_b) - common

    if divergent_a > 0 and divergent_b > 0:
        return [
            f"Both branches have divergent messages after message {common} "
            f"({divergent_a} vs {divergent_b} new)"
        ]
    return []


def diff_messages(
    source: Sequence[Message],
    target: Sequence[Message],
    branch_point: BranchPoint,
) -> BranchDiff:
    """Suffixes of source and target past their common ancestor."""
    common = find_common_ancestor_length(source, target)
    return BranchDiff(
        added=list(source[common:]),
        removed=list(target[common:]),
        modified=[],
        branch_point=branch_point,
    )
