"""Duplicate delivery suppression."""

from __future__ import annotations

import logging
import threading

LOGGER = logging.getLogger(__name__)


class DedupCache:
    """Bounded set of message ids that have already been dispatched.

    When the set grows past `capacity` it is cleared in full rather than
    evicted entry by entry, so ids recorded just before the clear can be
    processed again if the gateway redelivers them.
    """

    def __init__(self, capacity: int = 1000) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._ids: set[int] = set()
        self._lock = threading.Lock()

    def seen(self, event_id: int | None) -> bool:
        if event_id is None or event_id <= 0:
            return False
        with self._lock:
            return event_id in self._ids

    def record(self, event_id: int | None) -> None:
        if event_id is None or event_id <= 0:
            return
        with self._lock:
            self._ids.add(event_id)
            if len(self._ids) > self._capacity:
                self._ids.clear()
                LOGGER.debug("Dedup cache exceeded %d ids and was cleared", self._capacity)

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)
