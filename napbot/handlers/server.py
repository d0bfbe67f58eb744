"""Responders that talk to the game-server bridge API."""

from __future__ import annotations

import logging
from typing import Any, Iterable

import httpx

from napbot.handlers.base import Handler, HandlerContext
from napbot.handlers.basic import group_text
from napbot.models import Event, GroupMessage

LOGGER = logging.getLogger(__name__)

SERVER_NAME = "邦国崛起"
COMMAND_PREFIX = "/c"


def format_player_count(data: dict[str, Any]) -> str:
    """Render a `need_server_info` payload as a chat message."""

    lines = [f"{SERVER_NAME}在线人数：{int(data.get('count') or 0)}"]
    players = data.get("online_players") or []
    if not players:
        lines.append("当前无在线玩家")
    for index, player in enumerate(players):
        number = "" if index == 0 else str(index + 1)
        username = player.get("username") or "未知"
        latency = int(player.get("latency") or 0)
        lines.append(f"在线玩家{number}：（{username}）延迟：（{latency}）")
    return "\n".join(lines)


def extract_command_content(text: str) -> str | None:
    """Return what follows the `/c` prefix, or None if there is no prefix."""

    text = text.strip()
    if not text.startswith(COMMAND_PREFIX):
        return None
    return text[len(COMMAND_PREFIX) :].strip()


class PlayerCountHandler(Handler):
    """Reports who is online on the game server."""

    name = "player_count"
    trigger = "人数查询"
    failure = "查询失败：无法连接到服务器"

    def __init__(self, server_api_url: str, timeout: httpx.Timeout = httpx.Timeout(10.0, connect=5.0)) -> None:
        self._server_api_url = server_api_url.rstrip("/")
        self._timeout = timeout

    def matches(self, event: Event) -> bool:
        return group_text(event) == self.trigger

    async def execute(self, event: Event, ctx: HandlerContext) -> None:
        data = await self._fetch()
        await ctx.reply(event, self.failure if data is None else format_player_count(data))

    async def _fetch(self) -> dict[str, Any] | None:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(f"{self._server_api_url}/need_server_info")
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.error("Player count query failed: %s", exc)
            return None

        if not isinstance(data, dict):
            LOGGER.error("Unexpected player count payload: %.200s", data)
            return None
        if "error" in data:
            LOGGER.error("Server info API returned an error: %s", data["error"])
            return None
        return data


class ServerCommandHandler(Handler):
    """Relays `/c <message>` from a bridge group to the game server chat."""

    name = "server_command"

    def __init__(
        self,
        server_api_url: str,
        group_ids: Iterable[int],
        timeout: httpx.Timeout = httpx.Timeout(5.0, connect=2.0),
    ) -> None:
        self._server_api_url = server_api_url.rstrip("/")
        self._group_ids = frozenset(group_ids)
        self._timeout = timeout

    def matches(self, event: Event) -> bool:
        if not isinstance(event, GroupMessage) or event.group_id not in self._group_ids:
            return False
        return event.text.strip().startswith(COMMAND_PREFIX)

    async def execute(self, event: Event, ctx: HandlerContext) -> None:
        if not isinstance(event, GroupMessage):
            return
        content = extract_command_content(event.text)
        if not content:
            LOGGER.warning("Empty /c command in group %s", event.group_id)
            await ctx.reply(event, "发送失败：命令内容为空")
            return

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    f"{self._server_api_url}/send_message_to_server",
                    json={"qq_id": event.display_name, "message": content},
                )
        except httpx.HTTPError as exc:
            LOGGER.error("Relaying /c from %s failed: %s", event.sender_id, exc)
            await ctx.reply(event, "发送失败（无法连接到服务器）")
            return

        if response.status_code == 200:
            LOGGER.info("Relayed /c from %s (%s) in group %s", event.display_name, event.sender_id, event.group_id)
            await ctx.reply(event, "发送成功")
        else:
            LOGGER.warning("Server rejected /c from %s: HTTP %d", event.sender_id, response.status_code)
            await ctx.reply(event, f"发送失败（{response.status_code}）")
