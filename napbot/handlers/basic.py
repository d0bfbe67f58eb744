"""Fixed-text responders."""

from __future__ import annotations

import logging

from napbot.handlers.base import Handler, HandlerContext
from napbot.models import Event, GroupMessage

LOGGER = logging.getLogger(__name__)

HELP_TEXT = (
    "xiaofanbot帮助菜单\n\n"
    "可用命令：\n\n"
    "1. oi：基础回复（回复io）\n"
    "2. 人数查询：查询Minecraft服务器在线人数\n"
    "3. 签到：每日签到获得积分（24小时冷却）\n"
    "4. 查询积分：查询当前签到积分\n"
    "5. 投稿 （内容）：投稿内容到数据库（投稿和内容之间必须有空格）\n"
    "6. tip：随机获取一条投稿内容\n"
    "7. /c （内容）：发送消息到Minecraft服务器（仅限指定群组）\n"
    "8. @机器人 （问题）：和猫娘聊天，也可以直接私聊\n"
    "9. 帮助：显示此帮助菜单"
)


def group_text(event: Event) -> str | None:
    """Return the stripped text of a group message, or None for anything else."""

    if isinstance(event, GroupMessage):
        return event.text.strip()
    return None


class EchoHandler(Handler):
    """Replies with a fixed message when the trigger word is sent on its own."""

    name = "echo"

    def __init__(self, trigger: str = "oi", reply: str = "io") -> None:
        self._trigger = trigger
        self._reply = reply

    def matches(self, event: Event) -> bool:
        return group_text(event) == self._trigger

    async def execute(self, event: Event, ctx: HandlerContext) -> None:
        await ctx.reply(event, self._reply)


class HelpHandler(Handler):
    """Lists the available commands."""

    name = "help"
    trigger = "帮助"

    def matches(self, event: Event) -> bool:
        return group_text(event) == self.trigger

    async def execute(self, event: Event, ctx: HandlerContext) -> None:
        await ctx.reply(event, HELP_TEXT)
