from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

from fantasy_ingest.core.logging import get_logger
from fantasy_ingest.ingestion.config import ProviderConfig
from fantasy_ingest.ingestion.providers.base.errors import ConfigurationError

logger = get_logger(__name__)

T = TypeVar("T")


class _ProviderLane:
    """FIFO admission gate for a single provider.

    A waiter is admitted only when fewer than `max_concurrent` tasks are in
    flight AND at least `min_spacing_s` has elapsed since the previous start.
    """

    def __init__(
        self,
        provider_id: str,
        *,
        max_concurrent: int,
        min_spacing_s: float,
        clock: Callable[[], float],
    ) -> None:
        if max_concurrent <= 0:
            raise ConfigurationError(
                f"max_concurrent must be > 0 for provider={provider_id}, got {max_concurrent}"
            )
        if min_spacing_s < 0:
            raise ConfigurationError(
                f"min_spacing must be >= 0 for provider={provider_id}, got {min_spacing_s}"
            )
        self.provider_id = provider_id
        self.max_concurrent = max_concurrent
        self.min_spacing_s = min_spacing_s
        self._clock = clock

        self.active = 0
        self.last_start: float | None = None
        self._waiters: deque[asyncio.Future[None]] = deque()
        self._wakeup: asyncio.TimerHandle | None = None

    @property
    def queued(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    async def acquire(self) -> None:
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[None] = loop.create_future()
        self._waiters.append(waiter)
        self._pump()

        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Admitted and cancelled in the same tick: give the slot back.
                self.release()
            else:
                self._discard(waiter)
            raise

    def release(self) -> None:
        self.active -= 1
        self._pump()

    def _discard(self, waiter: asyncio.Future[None]) -> None:
        try:
            self._waiters.remove(waiter)
        except ValueError:
            pass
        self._pump()

    def _pump(self) -> None:
        while self._waiters and self.active < self.max_concurrent:
            head = self._waiters[0]
            if head.done():
                self._waiters.popleft()
                continue

            now = self._clock()
            if self.last_start is not None and self.min_spacing_s > 0:
                wait_s = self.last_start + self.min_spacing_s - now
                if wait_s > 0:
                    self._schedule_wakeup(wait_s)
                    return

            self._waiters.popleft()
            self.active += 1
            self.last_start = now
            head.set_result(None)

    def _schedule_wakeup(self, delay_s: float) -> None:
        if self._wakeup is not None:
            return
        loop = asyncio.get_running_loop()

        def _fire() -> None:
            self._wakeup = None
            self._pump()

        self._wakeup = loop.call_later(delay_s, _fire)


class ProviderRateLimiter:
    """
    Per-provider admission control.

    Each provider gets an independent lane, so a slow provider never blocks
    another provider's queue. Tasks are admitted first-submitted-first-admitted
    within a provider.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lanes: dict[str, _ProviderLane] = {}

    @classmethod
    def from_configs(
        cls,
        configs: Iterable[ProviderConfig],
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> ProviderRateLimiter:
        limiter = cls(clock=clock)
        for cfg in configs:
            limiter.configure(
                cfg.id, max_concurrent=cfg.max_concurrent, min_spacing_s=cfg.min_spacing_s
            )
        return limiter

    def configure(self, provider_id: str, *, max_concurrent: int, min_spacing_s: float) -> None:
        lane = self._lanes.get(provider_id)
        if lane is not None and (lane.active or lane.queued):
            raise ConfigurationError(f"Cannot reconfigure busy provider lane: {provider_id}")
        self._lanes[provider_id] = _ProviderLane(
            provider_id,
            max_concurrent=max_concurrent,
            min_spacing_s=min_spacing_s,
            clock=self._clock,
        )

    def is_configured(self, provider_id: str) -> bool:
        return provider_id in self._lanes

    def in_flight(self, provider_id: str) -> int:
        return self._lane(provider_id).active

    def queued(self, provider_id: str) -> int:
        return self._lane(provider_id).queued

    async def schedule(self, provider_id: str, task: Callable[[], Awaitable[T]]) -> T:
        lane = self._lane(provider_id)
        await lane.acquire()
        try:
            return await task()
        finally:
            lane.release()

    def _lane(self, provider_id: str) -> _ProviderLane:
        lane = self._lanes.get(provider_id)
        if lane is None:
            raise ConfigurationError(f"No rate limit configured for provider={provider_id}")
        return lane
