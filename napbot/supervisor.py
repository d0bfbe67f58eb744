"""WebSocket connection to the NapCat gateway with automatic reconnect."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Protocol

import aiohttp

LOGGER = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSING = "closing"
    FAILED = "failed"


class Transport(Protocol):
    """The subset of `aiohttp.ClientWebSocketResponse` the supervisor uses."""

    def __aiter__(self) -> AsyncIterator[Any]: ...

    async def close(self) -> Any: ...

    def exception(self) -> BaseException | None: ...


TransportFactory = Callable[[str, dict[str, str]], Awaitable[Transport]]
FrameHandler = Callable[[str], Awaitable[None]]
Sleep = Callable[[float], Awaitable[Any]]


class ConnectionSupervisor:
    """Owns the gateway connection lifecycle.

    Frames are passed to `on_frame` one at a time in arrival order. When the
    connection closes or fails, a reconnect is scheduled after a fixed delay
    on a separate task, for as long as `stop()` has not been called.
    """

    def __init__(
        self,
        url: str,
        token: str,
        on_frame: FrameHandler,
        reconnect_delay_seconds: float = 5.0,
        transport_factory: TransportFactory | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._url = url
        self._token = token
        self._on_frame = on_frame
        self._reconnect_delay_seconds = reconnect_delay_seconds
        self._transport_factory = transport_factory or self._open_websocket
        self._sleep = sleep
        self._session: aiohttp.ClientSession | None = None
        self._transport: Transport | None = None
        self._receive_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._should_reconnect = False
        self._state = ConnectionState.DISCONNECTED
        self.reconnects_scheduled = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    async def connect(self) -> None:
        """Open the connection and keep it open until `stop()`."""

        self._should_reconnect = True
        await self._open()

    async def stop(self) -> None:
        """Close the connection; no reconnect is attempted afterwards."""

        self._should_reconnect = False
        self._state = ConnectionState.CLOSING
        reconnect_task, self._reconnect_task = self._reconnect_task, None
        if reconnect_task is not None and reconnect_task is not asyncio.current_task():
            reconnect_task.cancel()
            await asyncio.gather(reconnect_task, return_exceptions=True)

        transport, self._transport = self._transport, None
        if transport is not None:
            try:
                await transport.close()
            except Exception:  # noqa: BLE001
                LOGGER.warning("Error while closing gateway connection", exc_info=True)

        receive_task = self._receive_task
        if receive_task is not None and receive_task is not asyncio.current_task():
            await asyncio.gather(receive_task, return_exceptions=True)
        if self._session is not None:
            await self._session.close()
            self._session = None
        self._state = ConnectionState.DISCONNECTED
        LOGGER.info("Gateway connection stopped")

    async def _open(self) -> None:
        self._state = ConnectionState.CONNECTING
        LOGGER.info("Connecting to gateway %s", self._url)
        try:
            transport = await self._transport_factory(
                self._url, {"Authorization": f"Bearer {self._token}"}
            )
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("Gateway connection failed: %s", exc)
            self._state = ConnectionState.FAILED
            self._handle_disconnect()
            return

        if not self._should_reconnect:
            # stop() was called while the handshake was in flight.
            await transport.close()
            self._state = ConnectionState.DISCONNECTED
            return

        self._transport = transport
        self._state = ConnectionState.CONNECTED
        LOGGER.info("Gateway connection established")
        self._receive_task = asyncio.create_task(self._receive_loop(transport), name="gateway-receive")

    async def _receive_loop(self, transport: Transport) -> None:
        try:
            async for msg in transport:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self._deliver(msg.data)
                elif msg.type == aiohttp.WSMsgType.BINARY:
                    await self._deliver(msg.data.decode("utf-8", errors="replace"))
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    LOGGER.error("Gateway connection error: %s", transport.exception())
                    self._state = ConnectionState.FAILED
                    break
                elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                    self._state = ConnectionState.CLOSING
                    break
            else:
                self._state = ConnectionState.CLOSING
            if self._should_reconnect:
                LOGGER.warning("Gateway connection closed (%s)", self._state.value)
        except Exception:  # noqa: BLE001
            LOGGER.exception("Gateway receive loop failed")
            self._state = ConnectionState.FAILED
        finally:
            if self._transport is transport:
                self._transport = None
                try:
                    await transport.close()
                except Exception:  # noqa: BLE001
                    LOGGER.debug("Error closing failed transport", exc_info=True)
            self._handle_disconnect()

    async def _deliver(self, frame: str) -> None:
        LOGGER.debug("Received frame: %.500s", frame)
        try:
            await self._on_frame(frame)
        except Exception:  # noqa: BLE001
            LOGGER.exception("Error handling gateway frame")

    def _handle_disconnect(self) -> None:
        self._state = ConnectionState.DISCONNECTED
        if self._should_reconnect:
            self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        self.reconnects_scheduled += 1
        LOGGER.info("Reconnecting in %.1fs", self._reconnect_delay_seconds)
        self._reconnect_task = asyncio.create_task(self._reconnect_after_delay(), name="gateway-reconnect")

    async def _reconnect_after_delay(self) -> None:
        await self._sleep(self._reconnect_delay_seconds)
        if not self._should_reconnect:
            LOGGER.debug("Reconnect skipped; supervisor was stopped")
            return
        LOGGER.info("Attempting to reconnect to gateway")
        await self._open()

    async def _open_websocket(self, url: str, headers: dict[str, str]) -> Transport:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=None, connect=10.0))
        return await self._session.ws_connect(url, headers=headers, heartbeat=30.0)
