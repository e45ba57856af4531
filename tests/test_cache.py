from __future__ import annotations

import asyncio

import pytest

from fantasy_ingest.ingestion.cache import ResponseCache
from fantasy_ingest.ingestion.providers.base.types import DataType, RequestDescriptor


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _descriptor(league_id: str = "L1", **params: object) -> RequestDescriptor:
    return RequestDescriptor(
        provider="sleeper",
        data_type=DataType.MATCHUPS,
        league_id=league_id,
        params=params,
    )


def test_cache_get_returns_value_until_ttl_elapses() -> None:
    clock = FakeClock()
    cache = ResponseCache(clock=clock)
    d = _descriptor(week=3)

    cache.set(d, [{"team_id": 1, "points": 99.5}], ttl_seconds=60)
    clock.now += 59.9
    assert cache.get(d) == [{"team_id": 1, "points": 99.5}]

    clock.now += 0.2
    assert cache.get(d) is None
    assert len(cache) == 0


def test_cache_key_ignores_param_ordering() -> None:
    cache = ResponseCache(clock=FakeClock())
    a = RequestDescriptor("mfl", DataType.STANDINGS, "42", params={"year": 2024, "week": 1})
    b = RequestDescriptor("mfl", DataType.STANDINGS, "42", params={"week": 1, "year": 2024})

    cache.set(a, ["x"], ttl_seconds=60)
    assert cache.get(b) == ["x"]


def test_cache_distinguishes_provider_league_and_params() -> None:
    cache = ResponseCache(clock=FakeClock())
    cache.set(_descriptor("L1", week=1), ["w1"], ttl_seconds=60)

    assert cache.get(_descriptor("L1", week=2)) is None
    assert cache.get(_descriptor("L2", week=1)) is None
    assert cache.get(RequestDescriptor("espn", DataType.MATCHUPS, "L1", params={"week": 1})) is None


def test_cache_zero_ttl_caches_indefinitely() -> None:
    clock = FakeClock()
    cache = ResponseCache(clock=clock)
    d = _descriptor()

    cache.set(d, ["forever"], ttl_seconds=0)
    clock.now += 10**9
    assert cache.get(d) == ["forever"]


def test_cache_set_replaces_and_delete_clear_report_counts() -> None:
    cache = ResponseCache(clock=FakeClock())
    d1, d2 = _descriptor("L1"), _descriptor("L2")

    cache.set(d1, ["old"], ttl_seconds=60)
    cache.set(d1, ["new"], ttl_seconds=60)
    cache.set(d2, ["other"], ttl_seconds=60)
    assert cache.get(d1) == ["new"]
    assert len(cache) == 2

    assert cache.delete(d1) is True
    assert cache.delete(d1) is False
    assert cache.clear() == 1
    assert cache.clear() == 0


def test_cache_invalidate_by_provider_and_league() -> None:
    cache = ResponseCache(clock=FakeClock())
    cache.set(_descriptor("L1"), ["a"], ttl_seconds=60)
    cache.set(_descriptor("L2"), ["b"], ttl_seconds=60)
    espn = RequestDescriptor("espn", DataType.STANDINGS, "L1")
    cache.set(espn, ["c"], ttl_seconds=60)

    assert cache.invalidate(provider="sleeper", league_id="L1") == 1
    assert cache.get(_descriptor("L2")) == ["b"]
    assert cache.invalidate(league_id="L1") == 1
    assert espn not in cache
    assert cache.invalidate(provider="sleeper") == 1
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_cache_expiry_timer_evicts_entry_on_running_loop() -> None:
    cache = ResponseCache()
    d = _descriptor()

    cache.set(d, ["soon gone"], ttl_seconds=0.02)
    assert len(cache) == 1

    await asyncio.sleep(0.06)
    # Evicted by the timer, without a read.
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_cache_replacing_entry_cancels_previous_timer() -> None:
    cache = ResponseCache()
    d = _descriptor()

    cache.set(d, ["short"], ttl_seconds=0.02)
    cache.set(d, ["long"], ttl_seconds=60)

    await asyncio.sleep(0.06)
    assert cache.get(d) == ["long"]
    cache.clear()
