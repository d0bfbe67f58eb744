"""Outbound messages to the NapCat HTTP API."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from napbot.models import ReplyTarget

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=10.0)


class OutboundGateway(ABC):
    """Sends text replies back to the chat platform."""

    @abstractmethod
    async def send(self, target: ReplyTarget, text: str) -> bool:
        """Send `text` to `target`; return whether the gateway accepted it."""


class NapCatGateway(OutboundGateway):
    """Gateway client for the OneBot `send_group_msg`/`send_private_msg` endpoints."""

    def __init__(
        self,
        api_url: str,
        token: str,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._token = token
        self._client = client or httpx.AsyncClient(base_url=api_url.rstrip("/"), timeout=timeout)

    async def send(self, target: ReplyTarget, text: str) -> bool:
        if target.kind == "group":
            endpoint = "/send_group_msg"
            payload: dict[str, Any] = {"group_id": str(target.id)}
        else:
            endpoint = "/send_private_msg"
            payload = {"user_id": str(target.id)}
        payload["message"] = [{"type": "text", "data": {"text": text}}]

        try:
            response = await self._client.post(
                endpoint,
                headers={
                    "Authorization": f"Bearer {self._token}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )
        except httpx.HTTPError as exc:
            LOGGER.error("Failed to send %s message to %s: %s", target.kind, target.id, exc)
            return False

        if response.status_code >= 400:
            LOGGER.error(
                "Gateway rejected %s message to %s: HTTP %d %s",
                target.kind,
                target.id,
                response.status_code,
                response.text[:200],
            )
            return False
        LOGGER.info("Sent %s message to %s", target.kind, target.id)
        return True

    async def aclose(self) -> None:
        await self._client.aclose()
