# src/dealengine/adapters/comps_cache.py
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from dealengine.adapters.config import config
from dealengine.adapters.logging_utils import get_logger, log_event
from dealengine.domain.comps import CompQuery, CompRecord
from dealengine.domain.ports import CacheStore

logger = get_logger(__name__)

KEY_PREFIX = "comps_"

Clock = Callable[[], float]


def make_comps_key(address: str, city: str, state: str, zipcode: str) -> str:
    parts = [
        (address or "").strip().lower(),
        (city or "").strip().lower(),
        (state or "").strip().lower(),
        (zipcode or "").strip(),
    ]
    return KEY_PREFIX + "_".join(parts)


def key_for(query: CompQuery) -> str:
    return make_comps_key(query.address, query.city, query.state, query.zipcode)


class CacheEntry(BaseModel):
    comps: List[CompRecord] = Field(default_factory=list)
    created_at: float                 # epoch seconds
    source_key: str = ""


class InMemoryCacheStore(CacheStore):
    """
    Process-local store that honors the storage TTL it is given. Writes are
    serialized by a lock so concurrent hosts don't lose updates.
    """

    def __init__(self, clock: Clock = time.time) -> None:
        self._items: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> str | None:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            value, expires_at = item
            if self._clock() >= expires_at:
                del self._items[key]
                return None
            return value

    def put(self, key: str, value: str, ttl_s: int) -> None:
        with self._lock:
            self._items[key] = (value, self._clock() + ttl_s)

    def remove(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def remove_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [k for k in self._items if k.startswith(prefix)]
            for k in doomed:
                del self._items[k]
            return len(doomed)


class CompCache:
    """
    Comp lists keyed by normalized location.

    Two horizons: the store keeps an entry for ``storage_ttl_s``, but reuse
    is governed by ``freshness_ttl_s`` measured from ``created_at``. A stale
    entry is evicted on read. Any store or decode failure is logged and
    reported as a miss (reads) or ``False`` (writes).
    """

    def __init__(
        self,
        store: CacheStore | None = None,
        freshness_ttl_s: int | None = None,
        storage_ttl_s: int | None = None,
        max_bytes: int | None = None,
        truncate_to: int | None = None,
        clock: Clock = time.time,
    ) -> None:
        self.store = store if store is not None else InMemoryCacheStore(clock=clock)
        self.freshness_ttl_s = freshness_ttl_s or config.COMPS_CACHE_FRESHNESS_TTL_S
        self.storage_ttl_s = storage_ttl_s or config.COMPS_CACHE_STORAGE_TTL_S
        self.max_bytes = max_bytes or config.COMPS_CACHE_MAX_BYTES
        self.truncate_to = truncate_to or config.COMPS_CACHE_TRUNCATE_TO
        self._clock = clock
        self._write_lock = threading.Lock()

    # -----------------------------------------------------------------
    # read
    # -----------------------------------------------------------------
    def _load(self, key: str) -> Optional[CacheEntry]:
        raw = self.store.get(key)
        if raw is None:
            return None
        return CacheEntry.model_validate_json(raw)

    def get(self, key: str) -> Optional[List[CompRecord]]:
        try:
            entry = self._load(key)
            if entry is None:
                log_event(logger, "comps_cache_miss", logging.DEBUG, key=key)
                return None

            age_s = self._clock() - entry.created_at
            if age_s > self.freshness_ttl_s:
                log_event(logger, "comps_cache_stale", key=key, age_hours=round(age_s / 3600, 1))
                self.store.remove(key)
                return None

            log_event(logger, "comps_cache_hit", key=key, age_minutes=round(age_s / 60))
            return list(entry.comps)
        except Exception as e:
            log_event(logger, "comps_cache_read_failed", logging.WARNING, key=key, error=repr(e))
            return None

    # -----------------------------------------------------------------
    # write
    # -----------------------------------------------------------------
    def put(self, key: str, comps: Sequence[CompRecord], source_key: str = "") -> bool:
        try:
            entry = CacheEntry(comps=list(comps), created_at=self._clock(), source_key=source_key or key)
            serialized = entry.model_dump_json()

            if len(serialized.encode("utf-8")) > self.max_bytes:
                log_event(
                    logger, "comps_cache_entry_truncated", logging.WARNING,
                    key=key, size=len(serialized), kept=self.truncate_to,
                )
                entry = entry.model_copy(update={"comps": entry.comps[: self.truncate_to]})
                serialized = entry.model_dump_json()

            with self._write_lock:
                self.store.put(key, serialized, self.storage_ttl_s)

            log_event(logger, "comps_cache_put", key=key, count=len(entry.comps))
            return True
        except Exception as e:
            log_event(logger, "comps_cache_write_failed", logging.WARNING, key=key, error=repr(e))
            return False

    # -----------------------------------------------------------------
    # maintenance
    # -----------------------------------------------------------------
    def invalidate(self, key: str) -> bool:
        try:
            self.store.remove(key)
            return True
        except Exception as e:
            log_event(logger, "comps_cache_invalidate_failed", logging.WARNING, key=key, error=repr(e))
            return False

    def clear(self) -> int:
        try:
            return self.store.remove_prefix(KEY_PREFIX)
        except Exception as e:
            log_event(logger, "comps_cache_clear_failed", logging.WARNING, error=repr(e))
            return 0

    def stats(self, key: str) -> Dict[str, Any]:
        try:
            raw = self.store.get(key)
            if raw is None:
                return {"exists": False, "key": key}
            entry = CacheEntry.model_validate_json(raw)
        except Exception as e:
            log_event(logger, "comps_cache_read_failed", logging.WARNING, key=key, error=repr(e))
            return {"exists": False, "key": key}

        age_s = self._clock() - entry.created_at
        return {
            "exists": True,
            "key": key,
            "comps_count": len(entry.comps),
            "age_minutes": round(age_s / 60),
            "age_hours": round(age_s / 3600, 1),
            "fresh": age_s <= self.freshness_ttl_s,
            "created_at": entry.created_at,
            "size": len(raw),
        }
