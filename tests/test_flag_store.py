from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from rhythm.flag_store import InMemoryFlagStore, SqliteFlagStore, acceptance_key, dismissal_key, minute_bucket
from rhythm.schemas import SubPattern

from .event_helpers import BASE_DAY, at


@pytest.fixture(params=["memory", "sqlite"])
def store(request: pytest.FixtureRequest, tmp_path: Path):
    if request.param == "memory":
        return InMemoryFlagStore()
    return SqliteFlagStore(tmp_path / "flags" / "rhythm.db")


def test_put_and_get(store) -> None:
    store.put("dismissed:h:nap:bedtime:2024-06-15", "true", now=at(BASE_DAY, 21))
    assert store.get("dismissed:h:nap:bedtime:2024-06-15", now=at(BASE_DAY, 22)) == "true"
    assert store.get("missing", now=at(BASE_DAY, 22)) is None


def test_entries_expire(store) -> None:
    now = at(BASE_DAY, 21)
    store.put("accepted:h", "x", ttl=timedelta(minutes=2), now=now)
    assert store.get("accepted:h", now=now + timedelta(minutes=1)) == "x"
    assert store.get("accepted:h", now=now + timedelta(minutes=2)) is None


def test_put_overwrites_and_delete_removes(store) -> None:
    now = at(BASE_DAY, 21)
    store.put("key", "first", now=now)
    store.put("key", "second", now=now)
    assert store.get("key", now=now) == "second"
    store.delete("key")
    assert store.get("key", now=now) is None


def test_sqlite_store_persists_and_purges(tmp_path: Path) -> None:
    path = tmp_path / "rhythm.db"
    now = at(BASE_DAY, 21)
    SqliteFlagStore(path).put("short", "1", ttl=timedelta(minutes=2), now=now)
    SqliteFlagStore(path).put("long", "1", ttl=timedelta(days=2), now=now)

    reopened = SqliteFlagStore(path)
    assert reopened.get("long", now=now) == "1"
    assert reopened.purge_expired(now=now + timedelta(hours=1)) == 1
    assert reopened.get("short", now=now) is None


def test_key_formats() -> None:
    assert dismissal_key("h1", SubPattern.MORNING_WAKE, BASE_DAY) == "dismissed:h1:nap:morning-wake:2024-06-15"
    assert dismissal_key("h1", SubPattern.FEED, BASE_DAY) == "dismissed:h1:feed:default:2024-06-15"
    assert minute_bucket(at(BASE_DAY, 7, 5)) == "2024-06-15-07:05"
    assert acceptance_key("h1", SubPattern.FIRST_DAYTIME_NAP, at(BASE_DAY, 9)) == "accepted:h1:nap:first-nap:2024-06-15-09:00"


def test_memory_store_forgets_lapsed_entries() -> None:
    store = InMemoryFlagStore()
    now = at(BASE_DAY, 21)
    store.put("accepted:h:a", "x", ttl=timedelta(minutes=2), now=now)
    store.put("accepted:h:b", "x", ttl=timedelta(minutes=2), now=now)
    assert store.get("accepted:h:a", now=now + timedelta(minutes=3)) is None
    assert store.keys() == ["accepted:h:b"]

    store.put("dismissed:h", "true", ttl=timedelta(days=2), now=now + timedelta(minutes=3))
    assert store.keys() == ["dismissed:h"]


def test_sqlite_put_drops_lapsed_rows(tmp_path: Path) -> None:
    store = SqliteFlagStore(tmp_path / "rhythm.db")
    now = at(BASE_DAY, 21)
    for minute in range(5):
        store.put(f"accepted:h:{minute}", "x", ttl=timedelta(minutes=2), now=now + timedelta(minutes=minute))

    with store.get_connection() as conn:
        keys = [row[0] for row in conn.execute("SELECT key FROM suggestion_flags ORDER BY key")]
    assert keys == ["accepted:h:3", "accepted:h:4"]
