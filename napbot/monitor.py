"""Relays game-server chat into the bridge groups."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

import httpx

from napbot.gateway import OutboundGateway
from napbot.models import ReplyTarget

LOGGER = logging.getLogger(__name__)

MESSAGE_PREFIX = "邦国崛起服务器消息："


class ServerMessageMonitor:
    """Polls the server's last chat line and forwards it to every bridge group."""

    def __init__(
        self,
        server_api_url: str,
        gateway: OutboundGateway,
        group_ids: Iterable[int],
        poll_interval_seconds: float = 3.0,
        timeout: httpx.Timeout = httpx.Timeout(2.0),
    ) -> None:
        self._server_api_url = server_api_url.rstrip("/")
        self._gateway = gateway
        self._group_ids = tuple(sorted(group_ids))
        self._poll_interval_seconds = poll_interval_seconds
        self._timeout = timeout
        self._stop_event = asyncio.Event()

    async def run_forever(self) -> None:
        """Run the poll loop until stop() is called."""

        if not self._group_ids:
            LOGGER.info("No bridge groups configured; server message relay disabled")
            return
        LOGGER.info(
            "Relaying server messages to %s every %.0fs", list(self._group_ids), self._poll_interval_seconds
        )
        while not self._stop_event.is_set():
            await self.poll_once()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._poll_interval_seconds)
            except asyncio.TimeoutError:
                pass

    async def poll_once(self) -> None:
        try:
            message = await self._fetch()
        except Exception as exc:  # noqa: BLE001
            LOGGER.debug("Server message poll failed: %s", exc)
            return
        if not message:
            return

        text = MESSAGE_PREFIX + message
        for group_id in self._group_ids:
            if await self._gateway.send(ReplyTarget("group", group_id), text):
                LOGGER.info("Relayed server message to group %s", group_id)
            else:
                LOGGER.warning("Failed to relay server message to group %s", group_id)

    def stop(self) -> None:
        """Signal the loop to stop."""

        self._stop_event.set()

    async def _fetch(self) -> str | None:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.get(f"{self._server_api_url}/get_server_last_message")
        if response.status_code != 200:
            LOGGER.debug("Server message API returned HTTP %d", response.status_code)
            return None
        data = response.json()
        message = data.get("message") if isinstance(data, dict) else None
        if message is None or not str(message).strip():
            return None
        return str(message)
