"""Core domain models used across layers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Union


@dataclass(frozen=True, slots=True)
class ReplyTarget:
    """Where a reply to an event goes: a group or a single user."""

    kind: Literal["group", "private"]
    id: int


@dataclass(frozen=True, slots=True)
class Segment:
    """One token of a structured message body.

    `text` is set for text segments; `target_name`/`target_id` for mentions.
    Any other segment type carries only its type name.
    """

    type: str
    text: str = ""
    target_name: str = ""
    target_id: int = 0


@dataclass(frozen=True, slots=True)
class GroupMessage:
    """Message posted in a group chat."""

    group_id: int
    sender_id: int
    display_name: str
    message_id: int
    text: str
    segments: tuple[Segment, ...] = ()
    # Text following a leading mention of the bot, if any.
    mention_request: str | None = None

    @property
    def dedup_id(self) -> int | None:
        return self.message_id if self.message_id > 0 else None

    @property
    def reply_target(self) -> ReplyTarget:
        return ReplyTarget("group", self.group_id)


@dataclass(frozen=True, slots=True)
class PrivateMessage:
    """Direct message sent to the bot."""

    sender_id: int
    display_name: str
    message_id: int
    text: str

    @property
    def dedup_id(self) -> int | None:
        return self.message_id if self.message_id > 0 else None

    @property
    def reply_target(self) -> ReplyTarget:
        return ReplyTarget("private", self.sender_id)


@dataclass(frozen=True, slots=True)
class Heartbeat:
    """Gateway keep-alive meta event."""


@dataclass(frozen=True, slots=True)
class Lifecycle:
    """Gateway lifecycle meta event (connect, enable, disable)."""

    subtype: str


@dataclass(frozen=True, slots=True)
class Unknown:
    """Frame that could not be decoded or classified."""

    raw: str
    reason: str = ""


Event = Union[GroupMessage, PrivateMessage, Heartbeat, Lifecycle, Unknown]
MessageEvent = Union[GroupMessage, PrivateMessage]
MESSAGE_EVENT_TYPES = (GroupMessage, PrivateMessage)


@dataclass(slots=True)
class LLMResponse:
    """Result from a language-model generation request."""

    content: str
    raw: dict[str, Any] | None = None


@dataclass(slots=True)
class UserRecord:
    """Check-in ledger row for one user."""

    qq_id: int
    points: int
    last_check_in: datetime | None
    registered_at: datetime | None


@dataclass(slots=True)
class TipRecord:
    """A submitted tip."""

    id: int
    tip: str
    reg_user: str
    reg_time: datetime | None
