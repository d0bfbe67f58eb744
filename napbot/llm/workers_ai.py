"""Cloudflare Workers AI implementation of LLMProvider."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from napbot.config import Settings
from napbot.llm.base import LLMProvider
from napbot.models import LLMResponse

_LOGGER = logging.getLogger(__name__)

_MAX_RETRIES = 2
_RETRY_BACKOFF_SECONDS = [2, 5]


class WorkersAIProvider(LLMProvider):
    """LLM provider using the Workers AI `ai/run/<model>` endpoint."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @property
    def is_available(self) -> bool:
        return bool(self._settings.ai_api_key and self._settings.cloudflare_account_id)

    @property
    def url(self) -> str:
        base = self._settings.ai_base_url.rstrip("/")
        return f"{base}/{self._settings.cloudflare_account_id}/ai/run/{self._settings.ai_model}"

    async def generate(self, messages: list[dict[str, str]]) -> LLMResponse:
        payload: dict[str, Any] = {"messages": messages}

        timeout = httpx.Timeout(self._settings.request_timeout_seconds)
        async with httpx.AsyncClient(timeout=timeout) as client:
            for attempt in range(_MAX_RETRIES + 1):
                response = await client.post(
                    self.url,
                    headers={
                        "Authorization": f"Bearer {self._settings.ai_api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
                if response.status_code == 429 and attempt < _MAX_RETRIES:
                    wait = _RETRY_BACKOFF_SECONDS[attempt]
                    _LOGGER.warning(
                        "Workers AI rate limited (429), retrying in %ds (attempt %d/%d)",
                        wait,
                        attempt + 1,
                        _MAX_RETRIES,
                    )
                    await asyncio.sleep(wait)
                    continue
                response.raise_for_status()
                break
            data = response.json()

        result = data.get("result") if isinstance(data, dict) else None
        if not isinstance(result, dict) or not isinstance(result.get("response"), str):
            raise ValueError(f"Unexpected Workers AI response: {str(data)[:200]}")
        content = result["response"].strip()
        _LOGGER.info("LLM response: length=%d content=%r", len(content), content[:200])
        return LLMResponse(content=content, raw=data)
