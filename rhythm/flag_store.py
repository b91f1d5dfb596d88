"""Key-value storage for suggestion dismissal/acceptance flags.

The engine only reads these flags; callers own them. The in-memory store backs
tests and single-process use, the SQLite store is the durable option.
"""
from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterator, Optional, Protocol, Tuple

from .schemas import SubPattern

DISMISSED_PREFIX = "dismissed"
ACCEPTED_PREFIX = "accepted"
ACCEPTANCE_TTL = timedelta(minutes=2)


class FlagStore(Protocol):
    def get(self, key: str, *, now: Optional[datetime] = None) -> Optional[str]:
        ...

    def put(
        self,
        key: str,
        value: str,
        *,
        ttl: Optional[timedelta] = None,
        now: Optional[datetime] = None,
    ) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


def _utc(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(tz=timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def dismissal_key(household_id: str, sub_pattern: SubPattern, day: date) -> str:
    return f"{DISMISSED_PREFIX}:{household_id}:{sub_pattern.kind.value}:{sub_pattern.slug}:{day.isoformat()}"


def minute_bucket(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%d-%H:%M")


def acceptance_key(household_id: str, sub_pattern: SubPattern, moment: datetime) -> str:
    return f"{ACCEPTED_PREFIX}:{household_id}:{sub_pattern.kind.value}:{sub_pattern.slug}:{minute_bucket(moment)}"


class InMemoryFlagStore:
    def __init__(self) -> None:
        self._entries: Dict[str, Tuple[str, Optional[datetime]]] = {}
        self._lock = threading.Lock()

    def get(self, key: str, *, now: Optional[datetime] = None) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and _utc(now) >= expires_at:
            with self._lock:
                if self._entries.get(key) == entry:
                    del self._entries[key]
            return None
        return value

    def put(
        self,
        key: str,
        value: str,
        *,
        ttl: Optional[timedelta] = None,
        now: Optional[datetime] = None,
    ) -> None:
        current = _utc(now)
        expires_at = current + ttl if ttl is not None else None
        with self._lock:
            lapsed = [
                stored_key
                for stored_key, (_, stored_expiry) in self._entries.items()
                if stored_expiry is not None and current >= stored_expiry
            ]
            for stored_key in lapsed:
                del self._entries[stored_key]
            self._entries[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def keys(self) -> list:
        with self._lock:
            return sorted(self._entries)


class SqliteFlagStore:
    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self.initialize()

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._db_path)
        try:
            yield conn
        finally:
            conn.close()

    def initialize(self) -> None:
        with self.get_connection() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS suggestion_flags (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at TEXT,
                    created_at TEXT NOT NULL
                );
                """
            )
            conn.commit()

    def get(self, key: str, *, now: Optional[datetime] = None) -> Optional[str]:
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT value, expires_at FROM suggestion_flags WHERE key = ?",
                (key,),
            ).fetchone()
        if not row:
            return None
        value, expires_at = row
        if expires_at and _utc(now) >= datetime.fromisoformat(expires_at):
            return None
        return value

    def put(
        self,
        key: str,
        value: str,
        *,
        ttl: Optional[timedelta] = None,
        now: Optional[datetime] = None,
    ) -> None:
        created = _utc(now)
        expires_at = (created + ttl).isoformat() if ttl is not None else None
        with self.get_connection() as conn:
            conn.execute(
                """
                INSERT INTO suggestion_flags (key, value, expires_at, created_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    expires_at = excluded.expires_at,
                    created_at = excluded.created_at
                """,
                (key, value, expires_at, created.isoformat()),
            )
            # Acceptances add a row per minute bucket; drop whatever has lapsed.
            conn.execute(
                "DELETE FROM suggestion_flags WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (created.isoformat(),),
            )
            conn.commit()

    def delete(self, key: str) -> None:
        with self.get_connection() as conn:
            conn.execute("DELETE FROM suggestion_flags WHERE key = ?", (key,))
            conn.commit()

    def purge_expired(self, *, now: Optional[datetime] = None) -> int:
        with self.get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM suggestion_flags WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (_utc(now).isoformat(),),
            )
            conn.commit()
        return cursor.rowcount
