from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from fantasy_ingest.core.logging import get_logger
from fantasy_ingest.ingestion.providers.base.types import RequestDescriptor

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    key: str
    provider: str
    league_id: str
    value: Any
    expires_at: float | None
    timer: asyncio.TimerHandle | None = field(default=None, repr=False)

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class ResponseCache:
    """
    In-process TTL cache for validated provider payloads.

    Keys come from `RequestDescriptor.cache_key()`, so descriptors that only
    differ in parameter ordering share an entry.

    TTL policy: `ttl_seconds <= 0` caches indefinitely. Expiry is enforced on
    read; when an event loop is running an expiry timer also evicts the entry
    proactively, and that timer is cancelled whenever the entry is replaced
    or removed.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, descriptor: object) -> bool:
        if not isinstance(descriptor, RequestDescriptor):
            return False
        return self.get(descriptor) is not None

    def get(self, descriptor: RequestDescriptor) -> Any | None:
        key = descriptor.cache_key()
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            self._drop(key)
            return None
        return entry.value

    def set(self, descriptor: RequestDescriptor, value: Any, ttl_seconds: float) -> None:
        key = descriptor.cache_key()
        self._drop(key)

        expires_at = self._clock() + ttl_seconds if ttl_seconds > 0 else None
        entry = CacheEntry(
            key=key,
            provider=descriptor.provider,
            league_id=descriptor.league_id,
            value=value,
            expires_at=expires_at,
        )
        if expires_at is not None:
            entry.timer = self._schedule_expiry(key, ttl_seconds)
        self._entries[key] = entry

    def delete(self, descriptor: RequestDescriptor) -> bool:
        return self._drop(descriptor.cache_key())

    def clear(self) -> int:
        count = len(self._entries)
        for entry in self._entries.values():
            if entry.timer is not None:
                entry.timer.cancel()
        self._entries.clear()
        return count

    def invalidate(self, *, provider: str | None = None, league_id: str | None = None) -> int:
        """Drop every entry matching the given provider and/or league."""
        doomed = [
            key
            for key, entry in self._entries.items()
            if (provider is None or entry.provider == provider)
            and (league_id is None or entry.league_id == str(league_id))
        ]
        for key in doomed:
            self._drop(key)
        if doomed:
            logger.debug(
                "cache_invalidated", provider=provider, league_id=league_id, count=len(doomed)
            )
        return len(doomed)

    def _drop(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        if entry.timer is not None:
            entry.timer.cancel()
        return True

    def _expire(self, key: str) -> None:
        entry = self._entries.get(key)
        # The timer may fire slightly early relative to an injected clock.
        if entry is not None and entry.is_expired(self._clock()):
            self._drop(key)

    def _schedule_expiry(self, key: str, ttl_seconds: float) -> asyncio.TimerHandle | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return None
        return loop.call_later(ttl_seconds, self._expire, key)
