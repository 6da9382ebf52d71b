"""Result caching for driver calls."""

from __future__ import annotations

import hashlib
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from ..drivers.base import IlsMethod


class CacheStorage(str, Enum):
    """Where a cached result lives: per user session or shared by everyone."""

    session = "session"
    shared = "shared"


DEFAULT_CACHE_STORAGE: Dict[IlsMethod, CacheStorage] = {
    IlsMethod.patron_login: CacheStorage.session,
    IlsMethod.get_proxied_users: CacheStorage.session,
    IlsMethod.get_proxying_users: CacheStorage.session,
    IlsMethod.get_purchase_history: CacheStorage.shared,
}


@dataclass(frozen=True)
class CacheEntry:
    """A cached payload; wrapping lets ``None`` be cached too."""

    value: Any
    expires_at: float


class ResultCache:
    """Thread-safe TTL mapping."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                del self._entries[key]
                return None
            return entry

    def set(self, key: str, value: Any, life_time: float) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(value, self._clock() + life_time)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def cache_key(method: IlsMethod, params: Sequence[Any]) -> str:
    digest = hashlib.md5(repr(tuple(params)).encode("utf-8")).hexdigest()
    return f"{method.value}{digest}"


def cache_settings(method: IlsMethod, life_times: Mapping[str, int]) -> Tuple[Optional[CacheStorage], int]:
    """Return the storage and life time (seconds) for ``method``.

    Methods without a storage entry are not cached.
    """
    storage = DEFAULT_CACHE_STORAGE.get(method)
    life_time = int(life_times.get(method.value, life_times.get("*", 0)) or 0)
    return storage, life_time
