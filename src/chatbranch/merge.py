"""Merge strategies for two message sequences.

Pure functions: they build a new list and never touch either input or any
branch state. BranchManager.merge_branches() decides whether a merge is
allowed and writes the result into the target branch.
"""

from __future__ import annotations

from collections.abc import Sequence

from .diff import find_common_ancestor_length
from .models import Message, MergeOptions


def merge_messages(
    source: Sequence[Message],
    target: Sequence[Message],
    options: MergeOptions,
) -> list[Message]:
    """Combine source into target according to `options.strategy`.

    - replace: the source sequence verbatim; target's own history is dropped
    - append:  target, then source's messages past the common ancestor
    - merge:   see smart_merge()

    Conflict policy (keep_both_on_conflict) is not checked here.
    """
    if options.strategy == "replace":
        return list(source)
    if options.strategy == "append":
        return append_merge(source, target)
    if options.strategy == "merge":
        return smart_merge(source, target, prefer_source=options.prefer_source)
    raise ValueError(f"Unknown merge strategy: {options.strategy}")


def append_merge(source: Sequence[Message], target: Sequence[Message]) -> list[Message]:
    """Target unchanged, followed by source's divergent suffix.

    Both suffixes are kept in full with no reordering, so messages written at
    different times can end up adjacent.
    """
    common = find_common_ancestor_length(source, target)
    return [*target, *source[common:]]


def smart_merge(
    source: Sequence[Message],
    target: Sequence[Message],
    prefer_source: bool = False,
) -> list[Message]:
    """Shared prefix plus the divergent suffixes.

    prefer_source=True:  prefix + source suffix (target's suffix dropped)
    prefer_source=False: prefix + target suffix + source suffix

    Individual messages are never merged with each other.
    """
    common = find_common_ancestor_length(source, target)
    base = list(source[:common])

    if prefer_source:
        return [*base, *source[common:]]
    return [*base, *target[common:], *source[common:]]
