"""Content-addressed memo for analysis results.

Keys are a sha256 over the serialized inputs, so two requests with the same
events, clock and settings share a result regardless of object identity.
"""
from __future__ import annotations

import hashlib
import json
import threading
from collections import OrderedDict
from datetime import datetime
from typing import Any, Callable, Iterable, Optional, TypeVar

from .config import EngineSettings
from .schemas import ActivityEvent

T = TypeVar("T")


def fingerprint(
    events: Iterable[ActivityEvent],
    *,
    now: datetime,
    settings: EngineSettings,
    scope: str,
    extra: Optional[Any] = None,
) -> str:
    serialized = [
        event.model_dump(mode="json", by_alias=True)
        for event in sorted(events, key=lambda item: item.id)
    ]
    raw = json.dumps(
        {
            "scope": scope,
            "events": serialized,
            "now": now.isoformat(),
            "settings": settings.model_dump(mode="json"),
            "extra": extra,
        },
        sort_keys=True,
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class AnalysisCache:
    def __init__(self, max_entries: int = 256) -> None:
        self._max_entries = max_entries
        self._entries: "OrderedDict[str, Any]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get_or_compute(self, key: str, compute: Callable[[], T]) -> T:
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                self.hits += 1
                return self._entries[key]
        value = compute()
        with self._lock:
            self.misses += 1
            self._entries[key] = value
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)
        return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)
