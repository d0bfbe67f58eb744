"""Bounded pool for slow background replies."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

LOGGER = logging.getLogger(__name__)

Job = Callable[[], Awaitable[None]]


class BackgroundWorkers:
    """Runs queued jobs on a fixed number of worker tasks.

    `submit` never waits: when the queue is full the job is refused and the
    caller decides what to tell the user. Each job is cut off after
    `task_timeout_seconds`.
    """

    def __init__(
        self,
        max_workers: int = 4,
        max_queue: int = 32,
        task_timeout_seconds: float = 60.0,
    ) -> None:
        self._max_workers = max_workers
        self._task_timeout_seconds = task_timeout_seconds
        self._queue: asyncio.Queue[Job] = asyncio.Queue(maxsize=max_queue)
        self._workers: list[asyncio.Task[None]] = []

    def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._run_worker(), name=f"background-worker-{i}")
            for i in range(self._max_workers)
        ]
        LOGGER.info("Started %d background workers", self._max_workers)

    def submit(self, job: Job) -> bool:
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            LOGGER.warning("Background queue full (%d jobs); refusing new job", self._queue.qsize())
            return False
        return True

    async def join(self) -> None:
        """Wait until every queued job has finished."""

        await self._queue.join()

    async def stop(self) -> None:
        """Cancel the workers; queued jobs that have not started are dropped."""

        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()

    async def _run_worker(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await asyncio.wait_for(job(), timeout=self._task_timeout_seconds)
            except asyncio.TimeoutError:
                LOGGER.warning("Background job timed out after %.0fs", self._task_timeout_seconds)
            except Exception:  # noqa: BLE001
                LOGGER.exception("Background job failed")
            finally:
                self._queue.task_done()
