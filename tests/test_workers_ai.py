"""Tests for WorkersAIProvider."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from napbot.config import Settings
from napbot.llm.workers_ai import WorkersAIProvider


def _settings(**overrides: str) -> Settings:
    values = {
        "NAPCAT_TOKEN": "token",
        "AI_API_KEY": "cf-key",
        "CLOUDFLARE_ACCOUNT_ID": "acct",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def _mock_response(data: dict, status_code: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = data
    resp.raise_for_status = MagicMock()
    return resp


def _mock_client(post: AsyncMock) -> AsyncMock:
    client = AsyncMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    client.post = post
    return client


def test_url_and_availability():
    provider = WorkersAIProvider(_settings())

    assert provider.is_available
    assert provider.url == (
        "https://api.cloudflare.com/client/v4/accounts/acct/ai/run/@cf/meta/llama-3.1-8b-instruct"
    )
    assert not WorkersAIProvider(_settings(AI_API_KEY="")).is_available
    assert not WorkersAIProvider(_settings(CLOUDFLARE_ACCOUNT_ID="")).is_available


@pytest.mark.asyncio
async def test_generate_returns_stripped_response():
    client = _mock_client(AsyncMock(return_value=_mock_response({"result": {"response": " 你好喵 \n"}})))
    messages = [{"role": "user", "content": "hi"}]

    with patch("napbot.llm.workers_ai.httpx.AsyncClient", return_value=client):
        response = await WorkersAIProvider(_settings()).generate(messages)

    assert response.content == "你好喵"
    kwargs = client.post.await_args.kwargs
    assert kwargs["json"] == {"messages": messages}
    assert kwargs["headers"]["Authorization"] == "Bearer cf-key"


@pytest.mark.asyncio
async def test_generate_retries_on_429():
    post = AsyncMock(
        side_effect=[
            _mock_response({}, status_code=429),
            _mock_response({"result": {"response": "ok"}}),
        ]
    )
    client = _mock_client(post)

    with (
        patch("napbot.llm.workers_ai.httpx.AsyncClient", return_value=client),
        patch("napbot.llm.workers_ai.asyncio.sleep", new=AsyncMock()) as sleep,
    ):
        response = await WorkersAIProvider(_settings()).generate([{"role": "user", "content": "hi"}])

    assert response.content == "ok"
    assert post.await_count == 2
    sleep.assert_awaited_once_with(2)


@pytest.mark.asyncio
async def test_generate_rejects_unexpected_payload():
    client = _mock_client(AsyncMock(return_value=_mock_response({"success": False, "errors": []})))

    with patch("napbot.llm.workers_ai.httpx.AsyncClient", return_value=client):
        with pytest.raises(ValueError):
            await WorkersAIProvider(_settings()).generate([{"role": "user", "content": "hi"}])
