"""Gateway frame decoding.

Turns one raw OneBot-style JSON frame into a typed event. Decoding never
raises: anything malformed or unrecognised becomes an `Unknown` event.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable

from napbot.models import (
    Event,
    GroupMessage,
    Heartbeat,
    Lifecycle,
    PrivateMessage,
    Segment,
    Unknown,
)

LOGGER = logging.getLogger(__name__)

_CQ_CODE_RE = re.compile(r"\[CQ:[^]]+\]")
_UNKNOWN_NAME = "未知"


class EventCodec:
    """Decodes gateway frames into events.

    Args:
        bot_names: Display names that count as a mention of the bot.
        bot_user_id: The bot's own account id, 0 when not known.
    """

    def __init__(self, bot_names: Iterable[str] = (), bot_user_id: int = 0) -> None:
        self._bot_names = frozenset(bot_names)
        self.bot_user_id = bot_user_id

    def decode(self, raw: str) -> Event:
        try:
            payload = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as exc:
            LOGGER.warning("Dropping malformed frame: %s", exc)
            return Unknown(raw=raw, reason="malformed json")
        if not isinstance(payload, dict):
            LOGGER.warning("Dropping non-object frame: %.200s", raw)
            return Unknown(raw=raw, reason="not an object")

        try:
            return self._classify(payload, raw)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            LOGGER.warning("Failed to decode frame (%s): %.200s", exc, raw)
            return Unknown(raw=raw, reason=str(exc))

    def _classify(self, payload: dict[str, Any], raw: str) -> Event:
        post_type = payload.get("post_type", "")
        if post_type == "message":
            message_type = payload.get("message_type", "")
            if message_type == "group":
                return self._group_message(payload, raw)
            if message_type == "private":
                return self._private_message(payload, raw)
        elif post_type == "meta_event":
            meta_type = payload.get("meta_event_type", "")
            if meta_type == "heartbeat":
                return Heartbeat()
            if meta_type == "lifecycle":
                return Lifecycle(subtype=str(payload.get("sub_type", "")))
        LOGGER.debug(
            "Unclassified event: post_type=%r message_type=%r notice_type=%r",
            post_type,
            payload.get("message_type"),
            payload.get("notice_type"),
        )
        return Unknown(raw=raw, reason=f"unhandled post_type {post_type!r}")

    def _group_message(self, payload: dict[str, Any], raw: str) -> Event:
        group_id = _as_int(payload.get("group_id"))
        if group_id <= 0:
            LOGGER.warning("Group message without group_id: %.200s", raw)
            return Unknown(raw=raw, reason="missing group_id")

        sender = payload.get("sender")
        sender = sender if isinstance(sender, dict) else {}
        sender_id = _as_int(sender.get("user_id")) or _as_int(payload.get("user_id"))
        card = sender.get("card")
        nickname = sender.get("nickname") or _UNKNOWN_NAME
        display_name = card if isinstance(card, str) and card else str(nickname)

        segments = parse_segments(payload.get("message"))
        return GroupMessage(
            group_id=group_id,
            sender_id=sender_id,
            display_name=display_name,
            message_id=_message_id(payload),
            text=extract_text(payload),
            segments=segments,
            mention_request=self.extract_mention_request(segments),
        )

    def _private_message(self, payload: dict[str, Any], raw: str) -> Event:
        sender = payload.get("sender")
        sender = sender if isinstance(sender, dict) else {}
        sender_id = _as_int(sender.get("user_id")) or _as_int(payload.get("user_id"))
        if sender_id <= 0:
            LOGGER.warning("Private message without a sender id: %.200s", raw)
            return Unknown(raw=raw, reason="missing user_id")

        return PrivateMessage(
            sender_id=sender_id,
            display_name=str(sender.get("nickname") or _UNKNOWN_NAME),
            message_id=_message_id(payload),
            text=extract_text(payload),
        )

    def extract_mention_request(self, segments: tuple[Segment, ...]) -> str | None:
        """Return the request text after a leading mention of the bot.

        The first segment must be a mention whose name is in the allow-list,
        or whose id is the bot's own id. Only text segments after it are kept.
        Returns None when there is no such mention or the request is empty.
        """
        if not segments or segments[0].type != "at":
            return None
        mention = segments[0]
        if mention.target_name not in self._bot_names:
            if not (self.bot_user_id and mention.target_id == self.bot_user_id):
                return None
        request = "".join(s.text for s in segments[1:] if s.type == "text").strip()
        return request or None


def parse_segments(message: object) -> tuple[Segment, ...]:
    """Parse an array-form message body. String bodies have no segments."""

    if not isinstance(message, list):
        return ()
    segments: list[Segment] = []
    for item in message:
        if not isinstance(item, dict):
            continue
        seg_type = str(item.get("type", ""))
        data = item.get("data")
        data = data if isinstance(data, dict) else {}
        if seg_type == "text":
            segments.append(Segment(type="text", text=str(data.get("text", ""))))
        elif seg_type == "at":
            # Some gateways omit the display name; fall back to the raw id.
            name = str(data.get("name") or data.get("qq") or "")
            segments.append(Segment(type="at", target_name=name, target_id=_as_int(data.get("qq"))))
        else:
            segments.append(Segment(type=seg_type))
    return tuple(segments)


def render_segments(segments: Iterable[Segment]) -> str:
    """Concatenate text segments; other segments render as `[type]`."""

    return "".join(s.text if s.type == "text" else f"[{s.type}]" for s in segments)


def extract_text(payload: dict[str, Any]) -> str:
    """Return the plain text of a message event.

    A non-empty `raw_message` wins, with inline CQ codes removed. Otherwise
    the `message` body is used, either as a string or as rendered segments.
    """
    raw_message = payload.get("raw_message")
    if isinstance(raw_message, str) and raw_message:
        return strip_cq_codes(raw_message)
    message = payload.get("message")
    if isinstance(message, str):
        return message.strip()
    return render_segments(parse_segments(message)).strip()


def strip_cq_codes(text: str) -> str:
    return _CQ_CODE_RE.sub("", text).strip()


def _message_id(payload: dict[str, Any]) -> int:
    return _as_int(payload.get("message_id")) or _as_int(payload.get("message_seq"))


def _as_int(value: object) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value)
    return 0
