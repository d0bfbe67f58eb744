"""Blocked-sender list."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Iterable

LOGGER = logging.getLogger(__name__)


def parse_ban_list(lines: Iterable[str]) -> frozenset[int]:
    """Parse a line-oriented ban list into user ids.

    Blank lines and `#` comments are skipped and one trailing `;` is
    dropped. Lines that are not a positive integer are logged and ignored.
    """
    ids: set[int] = set()
    for line_number, line in enumerate(lines, start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if line.endswith(";"):
            line = line[:-1].strip()
        if not (line.isascii() and line.lstrip("+").isdigit()):
            LOGGER.warning("Ban list line %d: cannot parse user id %r", line_number, line)
            continue
        user_id = int(line)
        if user_id <= 0:
            LOGGER.warning("Ban list line %d: user id must be positive, got %r", line_number, line)
            continue
        ids.add(user_id)
    return frozenset(ids)


class BanGate:
    """Answers whether a sender is banned, backed by a reloadable file.

    The id set is rebuilt in full and swapped in one assignment, so readers
    see either the old list or the new one.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._banned: frozenset[int] = frozenset()
        self._reload_lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def initialize(self) -> None:
        """Create an empty ban list if none exists, then load it."""

        if not self._path.exists():
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                self._path.touch()
                LOGGER.info("Created empty ban list at %s", self._path)
            except OSError:
                LOGGER.exception("Could not create ban list at %s", self._path)
        self.reload()

    def reload(self) -> int:
        """Re-read the ban list and return the number of banned ids.

        If the file cannot be read the current list stays in effect.
        """
        with self._reload_lock:
            try:
                with self._path.open(encoding="utf-8") as handle:
                    banned = parse_ban_list(handle)
            except OSError:
                LOGGER.exception("Failed to read ban list %s; keeping %d entries", self._path, len(self._banned))
                return len(self._banned)
            self._banned = banned
        LOGGER.info("Loaded %d banned user ids from %s", len(banned), self._path)
        return len(banned)

    def is_banned(self, sender_id: int) -> bool:
        return sender_id > 0 and sender_id in self._banned
