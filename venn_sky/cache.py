"""Session-scoped TTL cache for Bluesky graph data.

Entries live in a pluggable key/value storage under keys of the form
``{prefix}:{type}:{lowercased-handle}``. Each value is a JSON envelope::

    {"data": ..., "storedAt": <epoch ms>, "ttl": <ms>}

Caching is best-effort: read failures look like misses, write failures are
logged and dropped. Eviction is lazy (on ``get``) or triggered by a full
storage on ``set``; nothing runs in the background.
"""

from __future__ import annotations

import json
import logging
import os
import time
from typing import Any, Callable, Iterable, Protocol, runtime_checkable

from venn_sky.models import CacheType

_log = logging.getLogger(__name__)

CACHE_PREFIX = "venn-sky-cache"
DEFAULT_TTL_MS = 1000 * 60 * 30  # 30 minutes


class StorageQuotaExceeded(Exception):
    """Raised by a storage backend when a write would exceed its capacity."""


# ── Storage protocol ─────────────────────────────────────────────────────────

@runtime_checkable
class KeyValueStorage(Protocol):
    """String key/value storage the cache writes its envelopes into."""

    def get_item(self, key: str) -> str | None:
        ...

    def set_item(self, key: str, value: str) -> None:
        """Store value; raise StorageQuotaExceeded when out of space."""
        ...

    def remove_item(self, key: str) -> None:
        ...

    def keys(self) -> Iterable[str]:
        ...


class MemoryStorage:
    """In-process storage with an optional size quota (characters of key + value)."""

    def __init__(self, quota: int | None = None) -> None:
        self.quota = quota
        self._items: dict[str, str] = {}

    def _used(self) -> int:
        return sum(len(k) + len(v) for k, v in self._items.items())

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.quota is not None:
            current = self._items.get(key)
            freed = len(key) + len(current) if current is not None else 0
            if self._used() - freed + len(key) + len(value) > self.quota:
                raise StorageQuotaExceeded(f"storage quota of {self.quota} exceeded")
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


# ── CacheStore ───────────────────────────────────────────────────────────────

def _now_ms() -> float:
    return time.time() * 1000


def cache_key(handle: str, type_: CacheType, prefix: str = CACHE_PREFIX) -> str:
    return f"{prefix}:{type_}:{handle.lower()}"


def _is_valid(entry: dict[str, Any], now: float) -> bool:
    return now - entry["storedAt"] < entry["ttl"]


class CacheStore:
    """TTL cache keyed by (handle, type) on top of a KeyValueStorage."""

    def __init__(
        self,
        storage: KeyValueStorage | None = None,
        *,
        prefix: str = CACHE_PREFIX,
        default_ttl: float = DEFAULT_TTL_MS,
        clock: Callable[[], float] = _now_ms,
    ) -> None:
        self.storage = storage if storage is not None else MemoryStorage()
        self.prefix = prefix
        self.default_ttl = default_ttl
        self._clock = clock

    @classmethod
    def from_env(cls) -> "CacheStore":
        """Build a store configured by VENN_SKY_CACHE_TTL_MS and VENN_SKY_CACHE_QUOTA."""
        ttl = float(os.getenv("VENN_SKY_CACHE_TTL_MS", DEFAULT_TTL_MS))
        quota = os.getenv("VENN_SKY_CACHE_QUOTA")
        storage = MemoryStorage(quota=int(quota) if quota else None)
        return cls(storage, default_ttl=ttl)

    def _key(self, handle: str, type_: CacheType) -> str:
        return cache_key(handle, type_, self.prefix)

    def _own_keys(self) -> list[str]:
        return [k for k in self.storage.keys() if k.startswith(f"{self.prefix}:")]

    def get(self, handle: str, type_: CacheType) -> Any | None:
        """Return the cached payload, or None on miss, expiry or a corrupt entry."""
        key = self._key(handle, type_)
        try:
            raw = self.storage.get_item(key)
        except Exception as exc:
            _log.warning("cache read failed (key=%s): %s", key, exc)
            return None
        if raw is None:
            return None

        try:
            entry = json.loads(raw)
            valid = _is_valid(entry, self._clock())
            data = entry["data"]
        except (ValueError, TypeError, KeyError) as exc:
            _log.warning("dropping unreadable cache entry (key=%s): %s", key, exc)
            self._remove(key)
            return None

        if not valid:
            _log.debug("cache entry expired (key=%s)", key)
            self._remove(key)
            return None
        return data

    def set(self, handle: str, type_: CacheType, value: Any, ttl: float | None = None) -> None:
        """Store value under (handle, type). Never raises."""
        key = self._key(handle, type_)
        ttl = self.default_ttl if ttl is None else ttl
        try:
            self._write(key, value, ttl)
        except StorageQuotaExceeded as exc:
            _log.warning("cache full writing %s (%s); sweeping expired entries", key, exc)
            self.clear_expired()
            try:
                self._write(key, value, ttl)
            except Exception as retry_exc:
                _log.warning("cache write dropped (key=%s): %s", key, retry_exc)
        except Exception as exc:
            _log.warning("cache write dropped (key=%s): %s", key, exc)

    def _write(self, key: str, value: Any, ttl: float) -> None:
        envelope = {"data": value, "storedAt": self._clock(), "ttl": ttl}
        self.storage.set_item(key, json.dumps(envelope, ensure_ascii=False))

    def _remove(self, key: str) -> None:
        try:
            self.storage.remove_item(key)
        except Exception as exc:
            _log.warning("cache remove failed (key=%s): %s", key, exc)

    def clear_expired(self) -> int:
        """Remove every expired or unreadable entry owned by this store."""
        removed = 0
        now = self._clock()
        try:
            keys = self._own_keys()
        except Exception as exc:
            _log.warning("cache sweep failed: %s", exc)
            return 0
        for key in keys:
            try:
                raw = self.storage.get_item(key)
            except Exception as exc:
                _log.warning("cache read failed (key=%s): %s", key, exc)
                continue
            if raw is None:
                continue
            try:
                entry = json.loads(raw)
                expired = not _is_valid(entry, now) or "data" not in entry
            except (ValueError, TypeError, KeyError):
                expired = True
            if expired:
                self._remove(key)
                removed += 1
        _log.debug("cache sweep removed %d entries", removed)
        return removed

    def clear_all(self) -> None:
        """Remove every entry with this store's prefix, expired or not."""
        try:
            keys = self._own_keys()
        except Exception as exc:
            _log.warning("cache clear failed: %s", exc)
            return
        for key in keys:
            self._remove(key)
