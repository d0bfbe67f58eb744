"""Tests for ConnectionSupervisor."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import aiohttp
import pytest

from napbot.supervisor import ConnectionState, ConnectionSupervisor


class FakeTransport:
    def __init__(self, frames: list[str], hold_open: bool = False) -> None:
        self._frames = frames
        self._hold_open = hold_open
        self._closed = asyncio.Event()
        self.close_calls = 0

    def __aiter__(self):  # noqa: ANN204
        return self._iterate()

    async def _iterate(self):  # noqa: ANN202
        for frame in self._frames:
            yield SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=frame)
        if self._hold_open:
            await self._closed.wait()

    async def close(self) -> bool:
        self.close_calls += 1
        self._closed.set()
        return True

    def exception(self) -> BaseException | None:
        return None


class FakeFactory:
    def __init__(self, *outcomes: object) -> None:
        self._outcomes = list(outcomes)
        self.calls: list[dict[str, str]] = []

    async def __call__(self, url: str, headers: dict[str, str]) -> FakeTransport:
        self.calls.append(headers)
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class GatedSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []
        self.release = asyncio.Event()

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await self.release.wait()


async def _settle(predicate, attempts: int = 200) -> None:  # noqa: ANN001
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


def _supervisor(factory: FakeFactory, sleep: GatedSleep, frames: list[str]) -> ConnectionSupervisor:
    async def on_frame(raw: str) -> None:
        frames.append(raw)

    return ConnectionSupervisor(
        url="ws://gateway",
        token="secret",
        on_frame=on_frame,
        reconnect_delay_seconds=5.0,
        transport_factory=factory,
        sleep=sleep,
    )


@pytest.mark.asyncio
async def test_frames_are_delivered_in_order_with_bearer_token():
    frames: list[str] = []
    transport = FakeTransport(["one", "two", "three"], hold_open=True)
    factory = FakeFactory(transport)
    supervisor = _supervisor(factory, GatedSleep(), frames)

    await supervisor.connect()
    await _settle(lambda: len(frames) == 3)

    assert frames == ["one", "two", "three"]
    assert supervisor.state is ConnectionState.CONNECTED
    assert factory.calls == [{"Authorization": "Bearer secret"}]

    await supervisor.stop()
    assert supervisor.state is ConnectionState.DISCONNECTED
    assert supervisor.reconnects_scheduled == 0
    assert transport.close_calls >= 1


@pytest.mark.asyncio
async def test_closed_connection_schedules_reconnect_after_delay():
    frames: list[str] = []
    sleep = GatedSleep()
    second = FakeTransport([], hold_open=True)
    factory = FakeFactory(FakeTransport(["one"]), second)
    supervisor = _supervisor(factory, sleep, frames)

    await supervisor.connect()
    await _settle(lambda: supervisor.reconnects_scheduled == 1)
    assert sleep.delays == [5.0]
    assert len(factory.calls) == 1

    sleep.release.set()
    await _settle(lambda: supervisor.state is ConnectionState.CONNECTED)
    assert len(factory.calls) == 2

    await supervisor.stop()


@pytest.mark.asyncio
async def test_failed_connect_is_retried():
    sleep = GatedSleep()
    sleep.release.set()
    factory = FakeFactory(OSError("refused"), FakeTransport([], hold_open=True))
    supervisor = _supervisor(factory, sleep, [])

    await supervisor.connect()
    await _settle(lambda: supervisor.state is ConnectionState.CONNECTED)

    assert supervisor.reconnects_scheduled == 1
    assert len(factory.calls) == 2
    await supervisor.stop()


@pytest.mark.asyncio
async def test_stop_during_delay_prevents_reconnect():
    sleep = GatedSleep()
    factory = FakeFactory(OSError("refused"), FakeTransport([], hold_open=True))
    supervisor = _supervisor(factory, sleep, [])

    await supervisor.connect()
    await _settle(lambda: supervisor.reconnects_scheduled == 1)
    await supervisor.stop()

    sleep.release.set()
    for _ in range(20):
        await asyncio.sleep(0)

    assert len(factory.calls) == 1
    assert supervisor.state is ConnectionState.DISCONNECTED


@pytest.mark.asyncio
async def test_frame_handler_errors_do_not_break_the_loop():
    delivered: list[str] = []

    async def on_frame(raw: str) -> None:
        if raw == "bad":
            raise ValueError("cannot handle")
        delivered.append(raw)

    supervisor = ConnectionSupervisor(
        url="ws://gateway",
        token="secret",
        on_frame=on_frame,
        transport_factory=FakeFactory(FakeTransport(["bad", "good"], hold_open=True)),
        sleep=GatedSleep(),
    )

    await supervisor.connect()
    await _settle(lambda: delivered == ["good"])

    assert supervisor.state is ConnectionState.CONNECTED
    await supervisor.stop()


@pytest.mark.asyncio
async def test_reconnect_pending_at_stop_does_not_fire_after_new_connect():
    frames: list[str] = []
    sleep = GatedSleep()
    fresh = FakeTransport(["hello"], hold_open=True)
    factory = FakeFactory(OSError("refused"), fresh, FakeTransport(["hello"], hold_open=True))
    supervisor = _supervisor(factory, sleep, frames)

    await supervisor.connect()
    await _settle(lambda: supervisor.reconnects_scheduled == 1)
    await supervisor.stop()

    await supervisor.connect()
    await _settle(lambda: frames == ["hello"])

    sleep.release.set()
    for _ in range(20):
        await asyncio.sleep(0)

    assert len(factory.calls) == 2
    assert frames == ["hello"]
    assert supervisor.state is ConnectionState.CONNECTED
    await supervisor.stop()
    assert fresh.close_calls >= 1
