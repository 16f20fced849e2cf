"""In-memory TTL cache for full message bodies."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

LOGGER = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300


@dataclass(slots=True)
class CacheEntry:
    value: Any
    expires_at: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(tz=UTC)) > self.expires_at


class SimpleCache:
    """TTL cache keyed by ``namespace:id`` strings."""

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        self._ttl_seconds = ttl_seconds
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired():
            LOGGER.debug("Cache expired for key: %s", key)
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        ttl = self._ttl_seconds if ttl_seconds is None else ttl_seconds
        expires_at = datetime.now(tz=UTC) + timedelta(seconds=ttl)
        self._entries[key] = CacheEntry(value, expires_at)

    def invalidate(self, prefix: str | None = None) -> int:
        """Drop entries whose key starts with ``prefix`` (all when ``None``)."""
        if prefix is None:
            count = len(self._entries)
            self._entries.clear()
            return count
        keys = [key for key in self._entries if key.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        LOGGER.debug("Invalidated %d cache entries for %s", len(keys), prefix)
        return len(keys)

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def make_key(namespace: str, identifier: str) -> str:
        return f"{namespace}:{identifier}"


__all__ = ["CacheEntry", "SimpleCache"]
