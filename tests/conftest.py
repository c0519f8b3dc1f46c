"""Shared test fixtures and helpers for chatbranch tests."""

from datetime import datetime, timedelta, timezone

import pytest

from chatbranch.branches import BranchManager
from chatbranch.models import Chat, Message


class FakeClock:
    """Deterministic clock: every call is one second after the previous."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 1, 10, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(seconds=1)
        return self.now


# --- Fixtures ---


@pytest.fixture
def clock():
    """Provide a fresh FakeClock."""
    return FakeClock()


@pytest.fixture
def manager(clock):
    """Provide a fresh BranchManager with only the main branch."""
    return BranchManager(clock=clock)


@pytest.fixture
def messages():
    """Three-turn conversation used across tests."""
    return [
        make_message("msg-1", "Hello, how are you?", "user", minute=0),
        make_message("msg-2", "I am doing well, thank you!", "assistant", minute=1),
        make_message("msg-3", "What can you help me with?", "user", minute=2),
    ]


@pytest.fixture
def chat(messages):
    """Chat holding the three-turn conversation and no branches."""
    return Chat(
        id="chat-1",
        title="Test Chat",
        created_at=datetime(2023, 1, 1, 10, 0, 0, tzinfo=timezone.utc),
        updated_at=datetime(2023, 1, 1, 10, 2, 0, tzinfo=timezone.utc),
        messages=messages,
    )


@pytest.fixture
def loaded_manager(manager, chat):
    """BranchManager loaded with the three-turn chat."""
    manager.load_from_chat(chat)
    return manager


# --- Helper Functions (not fixtures) ---


def make_message(id: str, content: str | None = None, role: str = "user", minute: int = 0) -> Message:
    """Helper to create a test message.

    Args:
        id: Message ID
        content: Message text (default: "Message <id>")
        role: "user" or "assistant"
        minute: Minutes after 2023-01-01T10:00Z for the timestamp

    Returns:
        A Message instance for testing.
    """
    return Message(
        id=id,
        content=content if content is not None else f"Message {id}",
        role=role,
        timestamp=datetime(2023, 1, 1, 10, minute, 0, tzinfo=timezone.utc),
    )


def make_messages(*ids) -> list[Message]:
    """Helper to create a sequence of messages from bare ids."""
    return [make_message(str(i)) for i in ids]


def ids(messages) -> list[str]:
    """Message ids, for compact assertions."""
    return [m.id for m in messages]
