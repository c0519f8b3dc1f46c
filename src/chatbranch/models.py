"""Core data models for the branch engine.

Uses Pydantic v2 for validation, ULID for sortable unique IDs.

Two families of models live here:
- Caller-shaped records (Message, BranchRecord, Chat) accept and emit
  camelCase keys and preserve unknown fields, since the chat object belongs
  to the surrounding application.
- Engine records (BranchPoint, BranchMetadata, BranchDiff, ...) are plain
  snake_case models owned by BranchManager.
"""

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from ulid import ULID

from .constants import (
    MAIN_BRANCH_DESCRIPTION,
    MAIN_BRANCH_ID,
    MAIN_BRANCH_REASON,
    MAIN_BRANCH_TITLE,
    ROOT_MESSAGE_ID,
    TAG_MAIN,
)
from .timeutil import parse_timestamp


def generate_id() -> str:
    """Generate a ULID (sortable, unique identifier)."""
    return str(ULID())


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


def _normalize_timestamp(value: Any) -> Any:
    # Let pydantic report anything that is not a str/datetime
    if isinstance(value, (str, datetime)):
        return parse_timestamp(value)
    return value


# ─────────────────────────────────────────────────────────────────────────────
# Caller-shaped records
# ─────────────────────────────────────────────────────────────────────────────

MessageRole = Literal["user", "assistant", "system"]


class Message(BaseModel):
    """A single conversational turn.

    Immutable: branches share message references, so an edit must produce a
    new Message with a new id rather than mutate one in place.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )

    id: str
    content: str = ""
    role: MessageRole = "user"
    timestamp: datetime = Field(default_factory=utc_now)
    is_edited: bool = False

    normalize_timestamps = field_validator("timestamp", mode="before")(_normalize_timestamp)


class BranchRecord(BaseModel):
    """A branch as stored on the caller's chat object."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    parent_message_id: str
    messages: list[Message] = Field(default_factory=list)
    title: str | None = None
    created_at: datetime = Field(default_factory=utc_now)

    normalize_timestamps = field_validator("created_at", mode="before")(_normalize_timestamp)


class Chat(BaseModel):
    """The caller-owned chat: a flat message list plus optional branches."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str = Field(default_factory=generate_id)
    title: str = ""
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    messages: list[Message] = Field(default_factory=list)
    branches: list[BranchRecord] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    normalize_timestamps = field_validator("created_at", "updated_at", mode="before")(
        _normalize_timestamp
    )

    def to_dict(self) -> dict:
        """Serialize to the caller's camelCase JSON shape."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_dict(cls, data: dict) -> "Chat":
        """Deserialize from camelCase or snake_case JSON."""
        return cls.model_validate(data)


# ─────────────────────────────────────────────────────────────────────────────
# Branch metadata
# ─────────────────────────────────────────────────────────────────────────────


class BranchPoint(BaseModel):
    """Where a branch forked. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    message_id: str
    message_index: int | None  # None (never -1) when the message is not in main's history
    timestamp: datetime = Field(default_factory=utc_now)
    reason: str = ""


class BranchMetadata(BaseModel):
    """Registry entry for one branch. Owns no messages.

    message_count mirrors the length of the branch's snapshot and is
    re-synced by BranchManager on every snapshot mutation.
    """

    id: str = Field(default_factory=generate_id)
    title: str
    description: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    parent_branch_id: str | None = None  # None only for main
    branch_point: BranchPoint
    message_count: int = Field(default=0, ge=0)
    is_active: bool = False
    tags: list[str] = Field(default_factory=list)

    @property
    def is_main(self) -> bool:
        return self.id == MAIN_BRANCH_ID

    def add_tag(self, tag: str) -> bool:
        """Add a tag unless already present. Returns True if it was added."""
        if tag in self.tags:
            return False
        self.tags.append(tag)
        return True

    def to_summary(self) -> dict:
        """Return a compact summary of this branch."""
        return {
            "id": self.id,
            "title": self.title,
            "parent_branch_id": self.parent_branch_id,
            "message_count": self.message_count,
            "is_active": self.is_active,
            "tags": list(self.tags),
            "branched_at": self.branch_point.message_id,
            "updated_at": self.updated_at.isoformat(),
        }


def make_main_branch(
    created_at: datetime | None = None,
    updated_at: datetime | None = None,
    message_count: int = 0,
) -> BranchMetadata:
    """Create the root branch every registry starts with."""
    created_at = created_at or utc_now()
    return BranchMetadata(
        id=MAIN_BRANCH_ID,
        title=MAIN_BRANCH_TITLE,
        description=MAIN_BRANCH_DESCRIPTION,
        created_at=created_at,
        updated_at=updated_at or created_at,
        parent_branch_id=None,
        branch_point=BranchPoint(
            message_id=ROOT_MESSAGE_ID,
            message_index=0,
            timestamp=created_at,
            reason=MAIN_BRANCH_REASON,
        ),
        message_count=message_count,
        is_active=True,
        tags=[TAG_MAIN],
    )


# ─────────────────────────────────────────────────────────────────────────────
# Comparison & merge
# ─────────────────────────────────────────────────────────────────────────────


class BranchDiff(BaseModel):
    """Structural diff between a source and a target snapshot.

    Named from the source's point of view: `added` is the source suffix past
    the common ancestor, `removed` is the target suffix past it. `modified`
    stays empty because messages are compared by identity only.
    """

    added: list[Message] = Field(default_factory=list)
    removed: list[Message] = Field(default_factory=list)
    modified: list[Message] = Field(default_factory=list)
    branch_point: BranchPoint


class BranchComparison(BaseModel):
    """Result of BranchManager.compare_branches()."""

    source_branch: BranchMetadata
    target_branch: BranchMetadata
    differences: BranchDiff
    similarity_score: float = Field(ge=0.0, le=1.0)
    can_merge: bool
    conflicts: list[str] = Field(default_factory=list)


MergeStrategy = Literal[
    "replace",  # target := source
    "append",   # target + source's divergent messages
    "merge",    # shared prefix + divergent suffixes (see prefer_source)
]


class MergeOptions(BaseModel):
    """How merge_branches() combines two snapshots."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    strategy: MergeStrategy = "merge"
    keep_both_on_conflict: bool = False
    prefer_source: bool = False
