"""
Short-lived result cache

Successful query results are kept for a few seconds so bursts of identical
requests hit the game server once. Entries carry their own expiry, which
cachetools.TLRUCache honours per item.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from cachetools import TLRUCache

from hytale_query.models import OnlineResult, QueryMethod
from hytale_query.protocol.fields import FieldName, fields_cache_token


logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 1024


@dataclass(frozen=True)
class CacheEntry:
    payload: OnlineResult
    expires_at: float


def make_cache_key(method: QueryMethod, host: str, port: int, fields: Iterable[FieldName]) -> str:
    """
    Build the cache key for a query.

    Example:
        >>> make_cache_key(QueryMethod.HYQUERY, 'play.example.com', 5520, [FieldName.PLAYERS, FieldName.SERVER])
        'server_hyquery_play.example.com_5520_players_server'
    """
    return f"server_{QueryMethod(method).value}_{host}_{port}_{fields_cache_token(fields)}"


def _entry_expiry(_key, entry: CacheEntry, _now: float) -> float:
    return entry.expires_at


class ResultCache:
    """
    Thread-safe in-memory cache of online query results.

    Args:
        max_entries: Upper bound on stored entries (least recently used go first)
        timer: Monotonic clock, injectable for tests
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES, timer: Callable[[], float] = time.monotonic):
        self._entries = TLRUCache(maxsize=max_entries, ttu=_entry_expiry, timer=timer)
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[OnlineResult]:
        """
        Return the cached result for key, or None if absent or expired.

        Expired entries are evicted as a side effect.
        """
        with self._lock:
            self._entries.expire()
            entry = self._entries.get(key)

        if entry is None:
            logger.debug(f"[Cache] Miss: {key}")
            return None

        logger.debug(f"[Cache] Hit: {key}")
        return entry.payload

    def put(self, key: str, result: OnlineResult, duration_seconds: float):
        """
        Store result under key for duration_seconds, replacing any prior entry.

        Raises:
            TypeError: result is not an OnlineResult
        """
        if not isinstance(result, OnlineResult):
            raise TypeError(f"Only online results can be cached, got {type(result).__name__}")
        if duration_seconds <= 0:
            return

        with self._lock:
            entry = CacheEntry(payload=result, expires_at=self._entries.timer() + duration_seconds)
            self._entries[key] = entry

        logger.debug(f"[Cache] Stored {key} for {duration_seconds}s")

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            self._entries.expire()
            return len(self._entries)
