"""Branch management for forked conversation histories.

Branches are snapshots, not filters: each branch owns its own list of
message references, copied from the conversation when the branch is created
and extended by appends or replaced by merges afterwards. The 'main' branch
always exists and is the root of the branch tree.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any

from .constants import (
    DEFAULT_BRANCH_REASON,
    DESCRIPTION_PREVIEW_CHARS,
    LOADED_BRANCH_REASON,
    MAIN_BRANCH_ID,
    META_ACTIVE_BRANCH,
    META_BRANCH_COUNT,
    TAG_HAS_CHILDREN,
    TAG_LOADED,
    TAG_MERGED,
    TAG_USER_CREATED,
)
from .diff import detect_conflicts, diff_messages, similarity_score
from .errors import (
    BranchHasChildrenError,
    MergeConflictError,
    MessageNotFoundError,
    NoActiveBranchError,
    ProtectedBranchError,
)
from .merge import merge_messages
from .models import (
    BranchComparison,
    BranchMetadata,
    BranchPoint,
    BranchRecord,
    Chat,
    Message,
    MergeOptions,
    make_main_branch,
    utc_now,
)
from .registry import BranchRegistry
from .snapshots import SnapshotStore

logger = logging.getLogger(__name__)


def _as_chat(chat: Chat | Mapping) -> Chat:
    return chat if isinstance(chat, Chat) else Chat.model_validate(chat)


def _as_message(message: Message | dict) -> Message:
    return message if isinstance(message, Message) else Message.model_validate(message)


def _as_messages(messages: Chat | Mapping | Iterable[Message | dict]) -> list[Message]:
    if isinstance(messages, Mapping):
        messages = _as_chat(messages)
    if isinstance(messages, Chat):
        return list(messages.messages)
    return [_as_message(m) for m in messages]


def _index_of(messages: Sequence[Message], message_id: str) -> int | None:
    for i, message in enumerate(messages):
        if message.id == message_id:
            return i
    return None


class BranchManager:
    """Manages branch lifecycle, comparison and merging for one conversation.

    Holds a BranchRegistry (metadata) and a SnapshotStore (messages) keyed by
    the same branch ids, and keeps exactly one branch active.

    Thread-safety: BranchManager is designed for a single actor. Mutating
    calls update the registry and the snapshot store in separate steps, so a
    multi-threaded host must guard the whole instance with one lock.

    Every mutator validates its inputs before changing anything; a raised
    error leaves the manager exactly as it was.
    """

    def __init__(
        self,
        chat: Chat | dict | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the branch manager.

        Args:
            chat: Optional chat to load (see load_from_chat). Without one the
                manager starts with an empty, active 'main' branch.
            clock: Returns the current timezone-aware time for metadata stamps
        """
        self._clock = clock
        self._registry = BranchRegistry()
        self._snapshots = SnapshotStore()
        self._active_branch_id: str | None = None

        if chat is None:
            self._initialize()
        else:
            self.load_from_chat(chat)

    def _initialize(self) -> None:
        main = make_main_branch(created_at=self._clock())
        self._registry.add(main)
        self._snapshots.put(main.id, [])
        self._active_branch_id = main.id

    # ─────────────────────────────────────────────────────────────────────────
    # Lookup
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def active_branch_id(self) -> str | None:
        return self._active_branch_id

    def exists(self, branch_id: str) -> bool:
        """Check if a branch exists."""
        return branch_id in self._registry

    def get_branch(self, branch_id: str) -> BranchMetadata | None:
        """Copy of a branch's metadata, or None if unknown."""
        branch = self._registry.find(branch_id)
        return branch.model_copy(deep=True) if branch else None

    def get_branch_messages(self, branch_id: str) -> list[Message]:
        """Copy of a branch's messages. Unknown branches have no messages."""
        if branch_id not in self._snapshots:
            return []
        return self._snapshots.get(branch_id)

    def get_active_branch(self) -> BranchMetadata | None:
        """Copy of the active branch's metadata."""
        if self._active_branch_id is None:
            return None
        return self.get_branch(self._active_branch_id)

    def list_branches(self) -> list[BranchMetadata]:
        """All branches in creation order, main first."""
        return [b.model_copy(deep=True) for b in self._registry]

    # ─────────────────────────────────────────────────────────────────────────
    # Branch Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    def create_branch(
        self,
        chat_messages: Chat | Mapping | Iterable[Message | dict],
        from_message_id: str,
        title: str,
        reason: str = DEFAULT_BRANCH_REASON,
    ) -> tuple[str, BranchMetadata]:
        """Create a new branch from a specific message.

        The new branch's snapshot is every message up to and including
        `from_message_id`. Its parent is the active branch. It is not
        switched to.

        Args:
            chat_messages: Chat (or chat dict), or the conversation's message sequence
            from_message_id: Message to branch from
            title: Branch title
            reason: Why the branch was created (stored on the branch point)

        Returns:
            (branch_id, metadata copy)

        Raises:
            MessageNotFoundError: If from_message_id is not in the messages
        """
        messages = _as_messages(chat_messages)
        index = _index_of(messages, from_message_id)
        if index is None:
            raise MessageNotFoundError(from_message_id)

        now = self._clock()
        parent_id = self._active_branch_id or MAIN_BRANCH_ID
        snapshot = messages[: index + 1]
        preview = messages[index].content[:DESCRIPTION_PREVIEW_CHARS]

        branch = BranchMetadata(
            title=title,
            description=f'Branched from message: "{preview}..."',
            created_at=now,
            updated_at=now,
            parent_branch_id=parent_id,
            branch_point=BranchPoint(
                message_id=from_message_id,
                message_index=index,
                timestamp=now,
                reason=reason,
            ),
            message_count=len(snapshot),
            is_active=False,
            tags=[TAG_USER_CREATED],
        )

        self._registry.add(branch)
        self._snapshots.put(branch.id, snapshot)

        parent = self._registry.find(parent_id)
        if parent is not None:
            parent.updated_at = now

        logger.debug(
            f"Created branch {branch.id} from {parent_id} at message "
            f"{from_message_id} (index {index})"
        )
        return branch.id, branch.model_copy(deep=True)

    def switch_branch(self, branch_id: str) -> list[Message]:
        """Make a branch the active one.

        Returns:
            Copy of the newly active branch's messages

        Raises:
            BranchNotFoundError: If branch not found
        """
        target = self._registry.get(branch_id)
        previous = (
            self._registry.find(self._active_branch_id)
            if self._active_branch_id is not None
            else None
        )

        if previous is not None and previous is not target:
            previous.is_active = False
        target.is_active = True
        target.updated_at = self._clock()
        self._active_branch_id = branch_id

        logger.debug(f"Switched branch {previous.id if previous else None} -> {branch_id}")
        return self._snapshots.get(branch_id)

    def add_message(self, message: Message | dict) -> None:
        """Append a message to the active branch.

        Raises:
            NoActiveBranchError: If no branch is active
        """
        if self._active_branch_id is None:
            raise NoActiveBranchError()

        message = _as_message(message)
        branch = self._registry.get(self._active_branch_id)

        branch.message_count = self._snapshots.append(branch.id, message)
        branch.updated_at = self._clock()

    def delete_branch(self, branch_id: str) -> None:
        """Delete a branch permanently.

        Child branches must be deleted first. Deleting the active branch
        switches to its parent (or main) before removal.

        Raises:
            ProtectedBranchError: If branch_id is main
            BranchNotFoundError: If branch not found
            BranchHasChildrenError: If another branch names it as parent
        """
        if branch_id == MAIN_BRANCH_ID:
            raise ProtectedBranchError(branch_id)

        branch = self._registry.get(branch_id)

        children = self._registry.children_of(branch_id)
        if children:
            raise BranchHasChildrenError(branch_id, [c.id for c in children])

        if self._active_branch_id == branch_id:
            parent_id = branch.parent_branch_id
            if parent_id is None or parent_id not in self._registry:
                parent_id = MAIN_BRANCH_ID
            self.switch_branch(parent_id)

        self._registry.remove(branch_id)
        self._snapshots.remove(branch_id)
        logger.debug(f"Deleted branch {branch_id}")

    def rename_branch(self, branch_id: str, new_title: str) -> None:
        """Rename a branch.

        Raises:
            BranchNotFoundError: If branch not found
        """
        branch = self._registry.get(branch_id)
        branch.title = new_title
        branch.updated_at = self._clock()

    # ─────────────────────────────────────────────────────────────────────────
    # Tree
    # ─────────────────────────────────────────────────────────────────────────

    def _annotated(self, branch: BranchMetadata, index: dict) -> BranchMetadata:
        annotated = branch.model_copy(deep=True)
        if index.get(branch.id):
            annotated.add_tag(TAG_HAS_CHILDREN)
        return annotated

    def get_branch_tree(self) -> list[BranchMetadata]:
        """Root branches, tagged 'has-children' when they have children.

        The result is flat. Use get_children() or walk_branch_tree() for
        the nested shape.
        """
        index = self._registry.children_index()
        return [self._annotated(b, index) for b in index.get(None, [])]

    def get_children(self, branch_id: str) -> list[BranchMetadata]:
        """Direct children of a branch, tagged like get_branch_tree().

        Raises:
            BranchNotFoundError: If branch not found
        """
        self._registry.get(branch_id)
        index = self._registry.children_index()
        return [self._annotated(b, index) for b in index.get(branch_id, [])]

    def walk_branch_tree(self) -> list[tuple[int, BranchMetadata]]:
        """Every branch as (depth, metadata), depth-first from the roots."""
        index = self._registry.children_index()
        return [(depth, self._annotated(b, index)) for depth, b in self._registry.walk()]

    # ─────────────────────────────────────────────────────────────────────────
    # Compare & Merge
    # ─────────────────────────────────────────────────────────────────────────

    def compare_branches(self, source_branch_id: str, target_branch_id: str) -> BranchComparison:
        """Compare two branches.

        Returns:
            BranchComparison with the diff (named from the source's point of
            view), similarity score and conflicts. can_merge is True unless
            both branches have messages past their common ancestor.

        Raises:
            BranchNotFoundError: If either branch is not found
        """
        source = self._registry.get(source_branch_id)
        target = self._registry.get(target_branch_id)

        source_messages = self._snapshots.get(source_branch_id)
        target_messages = self._snapshots.get(target_branch_id)

        conflicts = detect_conflicts(source_messages, target_messages)

        return BranchComparison(
            source_branch=source.model_copy(deep=True),
            target_branch=target.model_copy(deep=True),
            differences=diff_messages(source_messages, target_messages, source.branch_point),
            similarity_score=similarity_score(source_messages, target_messages),
            can_merge=not conflicts,
            conflicts=conflicts,
        )

    def merge_branches(
        self,
        source_branch_id: str,
        target_branch_id: str,
        options: MergeOptions | dict | None = None,
    ) -> list[Message]:
        """Merge one branch into another.

        Only the target is modified: its snapshot is replaced by the merged
        sequence and it gains the 'merged' tag (once). The source branch is
        left untouched.

        Args:
            source_branch_id: Branch to merge from
            target_branch_id: Branch to merge into
            options: MergeOptions (or a dict of its fields); defaults to a
                smart merge that refuses conflicts

        Returns:
            Copy of the merged message list

        Raises:
            BranchNotFoundError: If either branch is not found
            MergeConflictError: If both branches diverged and
                keep_both_on_conflict is False
        """
        if options is None:
            options = MergeOptions()
        elif not isinstance(options, MergeOptions):
            options = MergeOptions.model_validate(options)

        comparison = self.compare_branches(source_branch_id, target_branch_id)
        if not comparison.can_merge and not options.keep_both_on_conflict:
            raise MergeConflictError(source_branch_id, target_branch_id, comparison.conflicts)

        merged = merge_messages(
            self._snapshots.get(source_branch_id),
            self._snapshots.get(target_branch_id),
            options,
        )

        target = self._registry.get(target_branch_id)
        target.message_count = self._snapshots.put(target_branch_id, merged)
        target.updated_at = self._clock()
        target.add_tag(TAG_MERGED)

        logger.debug(
            f"Merged {source_branch_id} into {target_branch_id} "
            f"(strategy={options.strategy}, {len(merged)} messages)"
        )
        return list(merged)

    # ─────────────────────────────────────────────────────────────────────────
    # Chat Serialization
    # ─────────────────────────────────────────────────────────────────────────

    def load_from_chat(self, chat: Chat | dict) -> None:
        """Replace all branches with the ones described by a chat.

        The chat's messages become main's snapshot, unless a branch record
        with id 'main' is present (as update_chat_with_branch writes), in
        which case that record's messages do. Every other record becomes a
        child of main. If chat.metadata['activeBranch'] names a known branch
        it becomes active, otherwise main is.

        Records reusing an id already loaded are skipped with a warning.
        """
        chat = _as_chat(chat)
        now = self._clock()

        registry = BranchRegistry()
        snapshots = SnapshotStore()

        # An exported chat's messages are the exported branch, not main
        main_record = next((r for r in chat.branches if r.id == MAIN_BRANCH_ID), None)
        main_messages = main_record.messages if main_record else chat.messages

        main = make_main_branch(
            created_at=chat.created_at,
            updated_at=chat.updated_at,
            message_count=len(main_messages),
        )
        registry.add(main)
        snapshots.put(main.id, main_messages)

        for record in chat.branches:
            if record is main_record:
                continue
            if record.id in registry:
                logger.warning(f"Skipping branch record with duplicate id '{record.id}'")
                continue

            registry.add(
                BranchMetadata(
                    id=record.id,
                    title=record.title or f"Branch {record.id}",
                    description=f"Branch with {len(record.messages)} messages",
                    created_at=record.created_at,
                    updated_at=now,
                    parent_branch_id=MAIN_BRANCH_ID,
                    branch_point=BranchPoint(
                        message_id=record.parent_message_id,
                        message_index=_index_of(main_messages, record.parent_message_id),
                        timestamp=record.created_at,
                        reason=LOADED_BRANCH_REASON,
                    ),
                    message_count=len(record.messages),
                    is_active=False,
                    tags=[TAG_LOADED],
                )
            )
            snapshots.put(record.id, record.messages)

        self._registry = registry
        self._snapshots = snapshots
        self._active_branch_id = MAIN_BRANCH_ID

        active_hint: Any = chat.metadata.get(META_ACTIVE_BRANCH)
        if active_hint and active_hint != MAIN_BRANCH_ID:
            if active_hint in self._registry:
                self.switch_branch(active_hint)
            else:
                logger.debug(f"Ignoring unknown active branch hint '{active_hint}'")

        logger.debug(
            f"Loaded chat {chat.id}: {len(self._registry)} branches, "
            f"active={self._active_branch_id}"
        )

    def update_chat_with_branch(self, chat: Chat | dict, branch_id: str) -> Chat:
        """Build a copy of `chat` showing `branch_id`.

        The copy's messages are the branch's snapshot, its branches are every
        registered branch (main included) as BranchRecords, and its metadata
        records the active branch and branch count. Other chat fields are
        preserved. The manager's own active branch is not changed.

        Raises:
            BranchNotFoundError: If branch not found
        """
        chat = _as_chat(chat)
        self._registry.get(branch_id)

        records = [
            BranchRecord(
                id=b.id,
                parent_message_id=b.branch_point.message_id,
                messages=self._snapshots.get(b.id),
                title=b.title,
                created_at=b.created_at,
            )
            for b in self._registry
        ]

        return chat.model_copy(
            update={
                "messages": self._snapshots.get(branch_id),
                "branches": records,
                "metadata": {
                    **chat.metadata,
                    META_ACTIVE_BRANCH: branch_id,
                    META_BRANCH_COUNT: len(self._registry),
                },
            }
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Consistency
    # ─────────────────────────────────────────────────────────────────────────

    def check_consistency(self) -> list[str]:
        """Validate registry/snapshot invariants. Returns list of errors.

        This is a debug/test utility. An empty list means:
        - main exists, is a root, and exactly one branch is active
        - the active flag agrees with active_branch_id
        - registry and snapshot store hold the same branch ids
        - every message_count equals its snapshot length
        - every parent_branch_id refers to a registered branch
        """
        errors: list[str] = []

        main = self._registry.find(MAIN_BRANCH_ID)
        if main is None:
            errors.append("main branch missing")
        elif main.parent_branch_id is not None:
            errors.append(f"main has parent {main.parent_branch_id}")

        active = [b.id for b in self._registry if b.is_active]
        if len(active) != 1:
            errors.append(f"expected exactly one active branch, found {active}")
        elif active[0] != self._active_branch_id:
            errors.append(
                f"active flag on {active[0]} but active_branch_id is {self._active_branch_id}"
            )

        registry_ids = set(self._registry.ids())
        snapshot_ids = set(self._snapshots.ids())
        if registry_ids != snapshot_ids:
            errors.append(
                f"registry/snapshot mismatch: only in registry {registry_ids - snapshot_ids}, "
                f"only in snapshots {snapshot_ids - registry_ids}"
            )

        for branch in self._registry:
            if branch.id in snapshot_ids:
                length = self._snapshots.length(branch.id)
                if branch.message_count != length:
                    errors.append(
                        f"{branch.id}: message_count {branch.message_count} != snapshot length {length}"
                    )
            parent = branch.parent_branch_id
            if parent is not None and parent not in registry_ids:
                errors.append(f"{branch.id}: parent {parent} not registered")

        return errors
