"""Core domain models used across the application."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal

Priority = Literal["high", "medium", "low"]
DateRange = Literal["all", "today", "week", "month"]
ChatRole = Literal["user", "assistant"]

CATEGORIES: tuple[str, ...] = (
    "work",
    "personal",
    "promotions",
    "alerts",
    "urgent",
    "newsletter",
    "social",
    "updates",
    "finance",
    "travel",
    "other",
)
PRIORITIES: tuple[Priority, ...] = ("high", "medium", "low")


# pylint: disable=too-many-instance-attributes
@dataclass(frozen=True, slots=True)
class MessageMeta:
    """List-level metadata for a message as returned by the mail provider."""

    id: str
    thread_id: str
    sender: str
    subject: str
    date: str
    snippet: str
    is_unread: bool = False
    has_attachment: bool = False
    label_ids: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class MessagePage:
    """One page of message metadata plus the provider's continuation cursor."""

    messages: tuple[MessageMeta, ...]
    next_cursor: str | None
    result_size_estimate: int = 0


@dataclass(frozen=True, slots=True)
class FullMessage:
    """Full message content used by the detail surface."""

    id: str
    thread_id: str
    sender: str
    to: str
    subject: str
    date: str
    body: str
    is_html: bool


@dataclass(frozen=True, slots=True)
class MessageSummary:
    """Minimal projection of a message handed to AI services."""

    id: str
    sender: str
    subject: str
    snippet: str
    date: str
    body: str | None = None

    @classmethod
    def from_meta(cls, message: MessageMeta) -> MessageSummary:
        return cls(
            id=message.id,
            sender=message.sender,
            subject=message.subject,
            snippet=message.snippet,
            date=message.date,
        )


@dataclass(frozen=True, slots=True)
class Classification:
    """Category, priority and redundancy judgment for one message."""

    message_id: str
    category: str
    priority: Priority
    is_redundant: bool = False
    redundant_of: str | None = None
    confidence: float | None = None
    reason: str | None = None
    manual: bool = False


@dataclass(frozen=True, slots=True)
class UserTag:
    """User-defined label that can be attached to messages."""

    id: str
    name: str
    color: str


@dataclass(frozen=True, slots=True)
class FilterState:
    """Session filter state; empty sets mean no constraint."""

    search: str = ""
    unread_only: bool = False
    has_attachment: bool = False
    date_range: DateRange = "all"
    categories: frozenset[str] = frozenset()
    priorities: frozenset[Priority] = frozenset()
    tags: frozenset[str] = frozenset()
    exclude_redundant: bool = False


@dataclass(frozen=True, slots=True)
class SelectionState:
    """Keyboard focus plus the independent multi-selection set."""

    active_id: str | None = None
    selected_ids: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class ChatTurn:
    """One entry of the assistant conversation."""

    role: ChatRole
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


__all__ = [
    "CATEGORIES",
    "ChatRole",
    "ChatTurn",
    "Classification",
    "DateRange",
    "FilterState",
    "FullMessage",
    "MessageMeta",
    "MessagePage",
    "MessageSummary",
    "PRIORITIES",
    "Priority",
    "SelectionState",
    "UserTag",
]
