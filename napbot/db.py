"""SQLite persistence for the check-in ledger and submitted tips."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator

from napbot.models import TipRecord, UserRecord

SCHEMA_VERSION = 1


class Database:
    """Small SQLite wrapper with explicit schema management."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path, timeout=5.0)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create or migrate schema."""

        with self._connect() as conn:
            conn.execute("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER NOT NULL)")
            row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
            if row is None:
                self._create_schema(conn)
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
            elif row["version"] != SCHEMA_VERSION:
                raise RuntimeError(
                    f"Unsupported schema version {row['version']} (expected {SCHEMA_VERSION})"
                )

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS users (
                qq_id INTEGER PRIMARY KEY,
                username TEXT NOT NULL,
                points INTEGER NOT NULL DEFAULT 0,
                last_check_in TEXT,
                registered_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS tips (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                tip TEXT NOT NULL,
                reg_user TEXT NOT NULL,
                reg_time TEXT NOT NULL
            );
            """
        )

    def get_user(self, qq_id: int) -> UserRecord | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT qq_id, points, last_check_in, registered_at FROM users WHERE qq_id = ?",
                (qq_id,),
            ).fetchone()
        return _to_user(row) if row else None

    def register_user(self, qq_id: int, now: datetime) -> UserRecord:
        """Create a user with one point, counting registration as a check-in."""

        stamp = now.isoformat()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO users(qq_id, username, points, last_check_in, registered_at)
                VALUES (?, ?, 1, ?, ?)
                """,
                (qq_id, str(qq_id), stamp, stamp),
            )
        return UserRecord(qq_id=qq_id, points=1, last_check_in=now, registered_at=now)

    def record_check_in(self, qq_id: int, now: datetime) -> UserRecord:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE users SET points = points + 1, last_check_in = ? WHERE qq_id = ?",
                (now.isoformat(), qq_id),
            )
            if cur.rowcount == 0:
                raise LookupError(f"Unknown user {qq_id}")
            row = conn.execute(
                "SELECT qq_id, points, last_check_in, registered_at FROM users WHERE qq_id = ?",
                (qq_id,),
            ).fetchone()
        return _to_user(row)

    def insert_tip(self, tip: str, reg_user: str, now: datetime) -> int:
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO tips(tip, reg_user, reg_time) VALUES (?, ?, ?)",
                (tip, reg_user, now.isoformat()),
            )
            return int(cur.lastrowid)

    def random_tip(self) -> TipRecord | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, tip, reg_user, reg_time FROM tips ORDER BY RANDOM() LIMIT 1"
            ).fetchone()
        if row is None:
            return None
        return TipRecord(
            id=int(row["id"]),
            tip=row["tip"],
            reg_user=row["reg_user"],
            reg_time=_parse_time(row["reg_time"]),
        )


def _to_user(row: sqlite3.Row) -> UserRecord:
    return UserRecord(
        qq_id=int(row["qq_id"]),
        points=int(row["points"]),
        last_check_in=_parse_time(row["last_check_in"]),
        registered_at=_parse_time(row["registered_at"]),
    )


def _parse_time(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None
