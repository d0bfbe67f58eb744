"""Tests for the game-server responders."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from napbot.handlers.base import HandlerContext
from napbot.handlers.server import (
    PlayerCountHandler,
    ServerCommandHandler,
    extract_command_content,
    format_player_count,
)
from napbot.models import GroupMessage


def _mock_response(data: object = None, status_code: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = data
    resp.raise_for_status = MagicMock()
    return resp


def _mock_client(**methods: AsyncMock) -> AsyncMock:
    client = AsyncMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    for name, method in methods.items():
        setattr(client, name, method)
    return client


def _group(text: str, group_id: int = 555) -> GroupMessage:
    return GroupMessage(group_id=group_id, sender_id=10001, display_name="Steve", message_id=1, text=text)


def _ctx() -> HandlerContext:
    gateway = MagicMock()
    gateway.send = AsyncMock(return_value=True)
    return HandlerContext(gateway=gateway)


def test_format_player_count_lists_players():
    data = {
        "count": 2,
        "online_players": [
            {"username": "Steve", "latency": 35},
            {"username": "Alex", "latency": 120},
        ],
    }

    assert format_player_count(data) == (
        "邦国崛起在线人数：2\n在线玩家：（Steve）延迟：（35）\n在线玩家2：（Alex）延迟：（120）"
    )


def test_format_player_count_without_players():
    assert format_player_count({"count": 0, "online_players": []}) == "邦国崛起在线人数：0\n当前无在线玩家"


@pytest.mark.asyncio
async def test_player_count_query():
    payload = {"count": 1, "online_players": [{"username": "Steve", "latency": 35}]}
    client = _mock_client(get=AsyncMock(return_value=_mock_response(payload)))
    ctx = _ctx()
    handler = PlayerCountHandler("http://127.0.0.1:2000/")

    assert handler.matches(_group("人数查询"))
    with patch("napbot.handlers.server.httpx.AsyncClient", return_value=client):
        await handler.execute(_group("人数查询"), ctx)

    client.get.assert_awaited_once_with("http://127.0.0.1:2000/need_server_info")
    assert ctx.gateway.send.await_args.args[1] == "邦国崛起在线人数：1\n在线玩家：（Steve）延迟：（35）"


@pytest.mark.asyncio
async def test_player_count_reports_api_error():
    client = _mock_client(get=AsyncMock(return_value=_mock_response({"error": "not connected"})))
    ctx = _ctx()

    with patch("napbot.handlers.server.httpx.AsyncClient", return_value=client):
        await PlayerCountHandler("http://server").execute(_group("人数查询"), ctx)

    assert ctx.gateway.send.await_args.args[1] == "查询失败：无法连接到服务器"


@pytest.mark.asyncio
async def test_player_count_reports_connection_failure():
    client = _mock_client(get=AsyncMock(side_effect=httpx.ConnectError("refused")))
    ctx = _ctx()

    with patch("napbot.handlers.server.httpx.AsyncClient", return_value=client):
        await PlayerCountHandler("http://server").execute(_group("人数查询"), ctx)

    assert ctx.gateway.send.await_args.args[1] == "查询失败：无法连接到服务器"


def test_server_command_matches_only_bridge_groups():
    handler = ServerCommandHandler("http://server", group_ids={555})

    assert handler.matches(_group("/c hello"))
    assert handler.matches(_group("/chello"))
    assert not handler.matches(_group("/c hello", group_id=777))
    assert not handler.matches(_group("hello /c"))


def test_extract_command_content():
    assert extract_command_content("/c hello world") == "hello world"
    assert extract_command_content("/c") == ""
    assert extract_command_content("hello") is None


@pytest.mark.asyncio
async def test_server_command_relays_message():
    client = _mock_client(post=AsyncMock(return_value=_mock_response(status_code=200)))
    ctx = _ctx()

    with patch("napbot.handlers.server.httpx.AsyncClient", return_value=client):
        await ServerCommandHandler("http://server", {555}).execute(_group("/c hello all"), ctx)

    client.post.assert_awaited_once_with(
        "http://server/send_message_to_server",
        json={"qq_id": "Steve", "message": "hello all"},
    )
    assert ctx.gateway.send.await_args.args[1] == "发送成功"


@pytest.mark.asyncio
async def test_server_command_reports_status_code():
    client = _mock_client(post=AsyncMock(return_value=_mock_response(status_code=503)))
    ctx = _ctx()

    with patch("napbot.handlers.server.httpx.AsyncClient", return_value=client):
        await ServerCommandHandler("http://server", {555}).execute(_group("/c hello"), ctx)

    assert ctx.gateway.send.await_args.args[1] == "发送失败（503）"


@pytest.mark.asyncio
async def test_server_command_with_empty_content():
    ctx = _ctx()

    with patch("napbot.handlers.server.httpx.AsyncClient") as client_cls:
        await ServerCommandHandler("http://server", {555}).execute(_group("/c   "), ctx)

    client_cls.assert_not_called()
    assert ctx.gateway.send.await_args.args[1] == "发送失败：命令内容为空"
