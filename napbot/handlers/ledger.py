"""Check-in points and tip submission responders backed by the database."""

from __future__ import annotations

import logging
import sqlite3
from abc import abstractmethod
from datetime import datetime, timedelta
from typing import Callable

from napbot.db import Database
from napbot.handlers.base import Handler, HandlerContext
from napbot.handlers.basic import group_text
from napbot.models import Event, GroupMessage

LOGGER = logging.getLogger(__name__)

CHECK_IN_INTERVAL = timedelta(hours=24)
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
DB_UNAVAILABLE = "数据库暂时不可用，请稍后重试"

Clock = Callable[[], datetime]


def _format_time(value: datetime | None, default: str = "未知") -> str:
    return value.strftime(TIMESTAMP_FORMAT) if value else default


def format_remaining(remaining: timedelta) -> str:
    total_minutes = max(int(remaining.total_seconds() // 60), 0)
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}小时{minutes}分钟"
    return f"{minutes}分钟"


class _LedgerHandler(Handler):
    trigger: str
    failure_prefix: str
    requires_sender = True

    def __init__(self, db: Database, clock: Clock = datetime.now) -> None:
        self._db = db
        self._clock = clock

    def matches(self, event: Event) -> bool:
        return group_text(event) == self.trigger

    async def execute(self, event: Event, ctx: HandlerContext) -> None:
        if not isinstance(event, GroupMessage):
            return
        if self.requires_sender and event.sender_id <= 0:
            LOGGER.warning("%s: no sender id on message %s", self.name, event.message_id)
            await ctx.reply(event, f"{self.failure_prefix}：无法获取QQ号")
            return
        try:
            reply = self._handle(event)
        except sqlite3.Error:
            LOGGER.exception("%s: database error for user %s", self.name, event.sender_id)
            reply = f"{self.failure_prefix}：{DB_UNAVAILABLE}"
        await ctx.reply(event, reply)

    @abstractmethod
    def _handle(self, event: GroupMessage) -> str:
        """Build the reply for a message from a known sender."""


class CheckInHandler(_LedgerHandler):
    """Daily check-in: one point per 24 hours, registering new users on first use."""

    name = "check_in"
    trigger = "签到"
    failure_prefix = "签到失败"

    def _handle(self, event: GroupMessage) -> str:
        now = self._clock()
        user = self._db.get_user(event.sender_id)
        if user is None:
            user = self._db.register_user(event.sender_id, now)
            LOGGER.info("Registered user %s on first check-in", event.sender_id)
            return f"首次签到成功，当前积分：{user.points}，注册时间：{_format_time(user.registered_at)}"

        if user.last_check_in is not None:
            elapsed = now - user.last_check_in
            if elapsed < CHECK_IN_INTERVAL:
                remaining = format_remaining(CHECK_IN_INTERVAL - elapsed)
                LOGGER.info("Check-in refused for %s, %s remaining", event.sender_id, remaining)
                return f"签到失败，与上一次签到未满24小时，还剩：{remaining}"

        user = self._db.record_check_in(event.sender_id, now)
        LOGGER.info("Check-in for %s, points now %d", event.sender_id, user.points)
        return f"签到成功，当前积分：{user.points}"


class PointsQueryHandler(_LedgerHandler):
    """Reports the sender's current points."""

    name = "points_query"
    trigger = "查询积分"
    failure_prefix = "查询失败"

    def _handle(self, event: GroupMessage) -> str:
        user = self._db.get_user(event.sender_id)
        if user is None:
            return '未注册用户，请先发送"签到"注册'
        return f"查询成功，当前积分：{user.points}"


class TipSubmissionHandler(_LedgerHandler):
    """Stores a tip sent as `投稿 <content>`."""

    name = "tip_submission"
    trigger = "投稿"
    failure_prefix = "投稿失败"
    usage = "投稿失败：请使用格式「投稿 （内容）」，内容不能为空"

    def matches(self, event: Event) -> bool:
        text = group_text(event)
        return text is not None and text.startswith(self.trigger)

    def _handle(self, event: GroupMessage) -> str:
        content = extract_tip_content(event.text)
        if content is None:
            return self.usage
        tip_id = self._db.insert_tip(content, str(event.sender_id), self._clock())
        LOGGER.info("Stored tip #%d from %s (%d chars)", tip_id, event.sender_id, len(content))
        return "投稿成功！感谢您的投稿。"


def extract_tip_content(text: str) -> str | None:
    """Return the content after `投稿 `, or None if the format is wrong."""

    text = text.strip()
    prefix = TipSubmissionHandler.trigger
    if not text.startswith(prefix + " "):
        return None
    content = text[len(prefix) + 1 :].strip()
    return content or None


class TipHandler(_LedgerHandler):
    """Replies with a random stored tip."""

    name = "tip"
    trigger = "tip"
    failure_prefix = "tip查询失败"
    requires_sender = False

    def matches(self, event: Event) -> bool:
        text = group_text(event)
        return text is not None and text.lower() == self.trigger

    def _handle(self, event: GroupMessage) -> str:
        tip = self._db.random_tip()
        if tip is None:
            return "暂无投稿内容，请先发送「投稿 （内容）」进行投稿。"
        return (
            f"————Tip：#{tip.id}\n"
            f"{tip.tip}\n"
            f"————由{tip.reg_user}在{_format_time(tip.reg_time, '未知时间')}投稿————"
        )
