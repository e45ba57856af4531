from __future__ import annotations

import asyncio
import dataclasses
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from tenacity import AsyncRetrying, RetryCallState

from fantasy_ingest.core.logging import get_logger
from fantasy_ingest.ingestion.cache import ResponseCache
from fantasy_ingest.ingestion.config import LeagueConfig, ProviderConfig, parse_league_config
from fantasy_ingest.ingestion.observability import IngestionObserver, NullObserver, ObserverGroup
from fantasy_ingest.ingestion.providers.base.adapter import ProviderAdapter
from fantasy_ingest.ingestion.providers.base.client import BaseHttpClient, Transport
from fantasy_ingest.ingestion.providers.base.errors import (
    ConfigurationError,
    NetworkError,
    ProviderError,
    UnsupportedDataTypeError,
)
from fantasy_ingest.ingestion.providers.base.registry import AdapterRegistry
from fantasy_ingest.ingestion.providers.base.types import (
    DataType,
    IngestionResult,
    LeagueIngestion,
    ProviderRequest,
    RequestDescriptor,
)
from fantasy_ingest.ingestion.providers.catalog import default_registry
from fantasy_ingest.ingestion.rate_limiter import ProviderRateLimiter
from fantasy_ingest.ingestion.retry import QueueItem, QueueState, RetryController
from fantasy_ingest.ingestion.store import SnapshotStore
from fantasy_ingest.ingestion.validation import validate

logger = get_logger(__name__)

TransportFactory = Callable[[ProviderConfig], Transport]
Sleep = Callable[[float], Awaitable[None]]
PreparedLeague = tuple[LeagueConfig, ProviderConfig, ProviderAdapter]


def default_transport_factory(cfg: ProviderConfig) -> Transport:
    return BaseHttpClient(base_url=cfg.base_address, timeout_s=cfg.timeout_s)


def _coerce_data_type(value: DataType | str) -> DataType:
    try:
        return DataType(value)
    except ValueError as e:
        raise UnsupportedDataTypeError(f"Unknown data type {value!r}") from e


class IngestionOrchestrator:
    """
    Drives cache -> rate limiter -> adapter -> transport -> retry -> validation
    -> cache -> persistence for single requests and for bulk league ingestion.

    Every collaborator is injected; nothing here is a module-level singleton,
    so independent orchestrators (per tenant, per test) never share state.
    """

    def __init__(
        self,
        providers: Mapping[str, ProviderConfig] | Iterable[ProviderConfig],
        *,
        registry: AdapterRegistry | None = None,
        cache: ResponseCache | None = None,
        limiter: ProviderRateLimiter | None = None,
        transport_factory: TransportFactory = default_transport_factory,
        store: SnapshotStore | None = None,
        observer: IngestionObserver | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.perf_counter,
        now: Callable[[], datetime] = lambda: datetime.now(UTC),
        coalesce_in_flight: bool = False,
    ) -> None:
        configs = list(providers.values()) if isinstance(providers, Mapping) else list(providers)
        self._providers: dict[str, ProviderConfig] = {}
        for cfg in configs:
            if cfg.id in self._providers:
                raise ConfigurationError(f"Duplicate provider config: {cfg.id}")
            self._providers[cfg.id] = cfg

        self.registry = registry if registry is not None else default_registry()
        self.cache = cache if cache is not None else ResponseCache()
        self.limiter = limiter if limiter is not None else ProviderRateLimiter()
        for cfg in self._providers.values():
            if not self.limiter.is_configured(cfg.id):
                self.limiter.configure(
                    cfg.id, max_concurrent=cfg.max_concurrent, min_spacing_s=cfg.min_spacing_s
                )

        self._transport_factory = transport_factory
        self._transports: dict[str, Transport] = {}
        self._store = store
        # Observer failures are logged and never reach a fetch.
        self._observer: IngestionObserver = (
            ObserverGroup([observer]) if observer is not None else NullObserver()
        )
        self._sleep = sleep
        self._clock = clock
        self._now = now
        self._coalesce = coalesce_in_flight
        self._in_flight: dict[str, asyncio.Future[Any]] = {}

    async def __aenter__(self) -> IngestionOrchestrator:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        transports, self._transports = self._transports, {}
        for transport in transports.values():
            await transport.aclose()

    # -----------------------------
    # Lookups
    # -----------------------------

    def provider_config(self, provider_id: str) -> ProviderConfig:
        cfg = self._providers.get(provider_id)
        if cfg is None:
            raise ConfigurationError(f"Unknown provider: {provider_id}")
        return cfg

    def _transport(self, cfg: ProviderConfig) -> Transport:
        transport = self._transports.get(cfg.id)
        if transport is None:
            transport = self._transport_factory(cfg)
            self._transports[cfg.id] = transport
        return transport

    def _preflight(self, league: LeagueConfig) -> tuple[ProviderConfig, ProviderAdapter]:
        cfg = self.provider_config(league.provider)
        adapter = self.registry.get(league.provider)
        adapter.check_credentials(cfg.credentials)
        return cfg, adapter

    def _rejected(
        self, league_id: str, provider_id: str, error: ConfigurationError
    ) -> LeagueIngestion:
        logger.warning(
            "league_rejected", league_id=league_id, provider=provider_id, error=error.summary()
        )
        return LeagueIngestion(
            league_id=league_id,
            provider=provider_id,
            results={},
            error=IngestionResult.failure(error),
        )

    # -----------------------------
    # Single request
    # -----------------------------

    async def fetch_one(
        self,
        provider_id: str,
        data_type: DataType | str,
        league_id: str | int,
        params: Mapping[str, Any] | None = None,
        *,
        method: str = "GET",
        body: Mapping[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> Any:
        """
        Fetch one (provider, data type, league) payload.

        Returns the sanitized payload, or raises the terminal ProviderError.
        ConfigurationError for an unknown provider is raised before anything
        is queued or counted.
        """
        cfg = self.provider_config(provider_id)
        adapter = self.registry.get(provider_id)
        descriptor = RequestDescriptor(
            provider=provider_id,
            data_type=_coerce_data_type(data_type),
            league_id=str(league_id),
            method=method,
            params=dict(params or {}),
            body=dict(body) if body is not None else None,
            idempotency_key=idempotency_key,
        )

        self._observer.request_started(descriptor)
        started = self._clock()
        try:
            data, cached = await self._fetch(cfg, adapter, descriptor)
        except ProviderError as e:
            duration_s = self._clock() - started
            self._observer.request_failed(descriptor, e, duration_s)
            logger.warning(
                "fetch_failed",
                provider=provider_id,
                league_id=descriptor.league_id,
                data_type=descriptor.data_type.value,
                error_kind=e.kind.value,
                error=e.summary(),
            )
            raise

        duration_s = self._clock() - started
        self._observer.request_succeeded(descriptor, duration_s, cached=cached)
        return data

    async def fetch_many(self, requests: Iterable[RequestDescriptor]) -> list[IngestionResult]:
        """Run arbitrary requests concurrently; one result per request, in input order."""

        async def one(descriptor: RequestDescriptor) -> IngestionResult:
            try:
                data = await self.fetch_one(
                    descriptor.provider,
                    descriptor.data_type,
                    descriptor.league_id,
                    descriptor.params,
                    method=descriptor.method,
                    body=descriptor.body,
                    idempotency_key=descriptor.idempotency_key,
                )
            except ProviderError as e:
                return IngestionResult.failure(e)
            return IngestionResult.success(data)

        return list(await asyncio.gather(*(one(d) for d in requests)))

    async def _fetch(
        self, cfg: ProviderConfig, adapter: ProviderAdapter, descriptor: RequestDescriptor
    ) -> tuple[Any, bool]:
        if not descriptor.is_cacheable:
            return await self._fetch_uncached(cfg, adapter, descriptor), False

        hit = self.cache.get(descriptor)
        if hit is not None:
            logger.debug(
                "cache_hit",
                provider=descriptor.provider,
                league_id=descriptor.league_id,
                data_type=descriptor.data_type.value,
            )
            return hit, True

        if not self._coalesce:
            return await self._fetch_uncached(cfg, adapter, descriptor), False

        key = descriptor.cache_key()
        pending = self._in_flight.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._fetch_uncached(cfg, adapter, descriptor))
            self._in_flight[key] = pending
            pending.add_done_callback(lambda f: self._forget_in_flight(key, f))
        # Shielded so one abandoned caller does not cancel the shared call.
        return await asyncio.shield(pending), False

    def _forget_in_flight(self, key: str, future: asyncio.Future[Any]) -> None:
        self._in_flight.pop(key, None)
        # Every waiter may have been cancelled; mark the outcome as retrieved.
        if not future.cancelled():
            future.exception()

    async def _fetch_uncached(
        self, cfg: ProviderConfig, adapter: ProviderAdapter, descriptor: RequestDescriptor
    ) -> Any:
        request = adapter.build_request(
            league_id=descriptor.league_id,
            data_type=descriptor.data_type,
            params=descriptor.params,
            credentials=cfg.credentials,
            method=descriptor.method,
            body=descriptor.body,
        )
        if descriptor.idempotency_key:
            request = dataclasses.replace(
                request, headers={**request.headers, "Idempotency-Key": descriptor.idempotency_key}
            )

        data = await self._call_with_retries(cfg, adapter, descriptor, request)

        if descriptor.is_cacheable:
            self.cache.set(descriptor, data, cfg.cache_ttl_seconds)
        self._persist(descriptor, data)
        return data

    async def _call_with_retries(
        self,
        cfg: ProviderConfig,
        adapter: ProviderAdapter,
        descriptor: RequestDescriptor,
        request: ProviderRequest,
    ) -> Any:
        controller = RetryController.from_config(cfg)
        item = QueueItem(descriptor=descriptor, max_attempts=controller.ceiling + 1)
        transport = self._transport(cfg)

        async def execute() -> Any:
            item.admitted()
            item.executing()
            try:
                async with asyncio.timeout(cfg.timeout_s):
                    return await transport.send(request, timeout_s=cfg.timeout_s)
            except ProviderError:
                raise
            except TimeoutError as e:
                raise NetworkError(
                    f"Timed out after {cfg.timeout_s:.1f}s: {request.method} {request.path}"
                ) from e
            except Exception as e:
                raise NetworkError(f"Transport failure: {type(e).__name__}") from e

        async def attempt() -> Any:
            if item.state is QueueState.RETRY_SCHEDULED:
                item.requeued()
            raw = await self.limiter.schedule(cfg.id, execute)
            return validate(descriptor.data_type, adapter.unwrap(descriptor.data_type, raw))

        def before_sleep(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            delay_s = retry_state.next_action.sleep if retry_state.next_action else 0.0
            item.retry_scheduled(error)
            self._observer.retry_scheduled(descriptor, item.attempts, delay_s, error)
            logger.info(
                "retry_scheduled",
                provider=descriptor.provider,
                league_id=descriptor.league_id,
                data_type=descriptor.data_type.value,
                attempt=item.attempts,
                delay_s=delay_s,
                error=error.summary() if isinstance(error, ProviderError) else repr(error),
            )

        retrying = AsyncRetrying(
            sleep=self._sleep,
            retry=controller.retry_strategy,
            wait=controller.wait_strategy,
            stop=controller.stop_strategy,
            before_sleep=before_sleep,
            reraise=True,
        )
        try:
            data = await retrying(attempt)
        except ProviderError as e:
            item.failed(e)
            raise

        item.succeeded()
        logger.debug(
            "fetch_succeeded",
            provider=descriptor.provider,
            league_id=descriptor.league_id,
            data_type=descriptor.data_type.value,
            attempts=item.attempts,
        )
        return data

    def _persist(self, descriptor: RequestDescriptor, data: Any) -> None:
        if self._store is None:
            return
        try:
            self._store.store(
                descriptor.league_id,
                descriptor.data_type,
                data,
                self._now(),
                provider=descriptor.provider,
            )
        except Exception as e:
            # Storage failures never fail a fetch.
            logger.warning(
                "persist_failed",
                provider=descriptor.provider,
                league_id=descriptor.league_id,
                data_type=descriptor.data_type.value,
                error=f"{type(e).__name__}: {e}",
            )

    # -----------------------------
    # Bulk ingestion
    # -----------------------------

    async def ingest_league(
        self, league: LeagueConfig | Mapping[str, Any]
    ) -> dict[DataType, IngestionResult]:
        """
        Fetch every requested data type for one league concurrently.

        Per-type failures are recorded in the returned map. Only a preflight
        ConfigurationError (bad league config, unknown provider, missing
        credential) is raised.
        """
        league = parse_league_config(league)
        cfg, adapter = self._preflight(league)
        return await self._ingest_prepared(league, cfg, adapter)

    async def ingest_all(
        self, leagues: Iterable[LeagueConfig | Mapping[str, Any]]
    ) -> list[LeagueIngestion]:
        """
        Ingest every league concurrently; reports come back in input order.

        A league naming an unconfigured provider raises ConfigurationError
        before anything is fetched. A league that fails its own checks (an
        invalid entry, a missing credential) is reported with `error` set and
        never blocks the others.
        """
        prepared: list[PreparedLeague | LeagueIngestion] = []
        for raw in leagues:
            try:
                league = parse_league_config(raw)
            except ConfigurationError as e:
                prepared.append(
                    self._rejected(str(raw.get("id", "")), str(raw.get("provider", "")), e)
                )
                continue

            cfg = self.provider_config(league.provider)
            adapter = self.registry.get(league.provider)
            try:
                adapter.check_credentials(cfg.credentials)
            except ConfigurationError as e:
                prepared.append(self._rejected(league.id, cfg.id, e))
                continue
            prepared.append((league, cfg, adapter))

        async def run(entry: PreparedLeague | LeagueIngestion) -> LeagueIngestion:
            if isinstance(entry, LeagueIngestion):
                return entry
            league, cfg, adapter = entry
            report = await self._ingest_prepared(league, cfg, adapter)
            return LeagueIngestion(league_id=league.id, provider=cfg.id, results=report)

        started = self._clock()
        out = list(await asyncio.gather(*(run(entry) for entry in prepared)))
        logger.info(
            "ingest_all_finished",
            leagues=len(out),
            leagues_with_failures=sum(1 for r in out if r.failed),
            duration_s=round(self._clock() - started, 3),
        )
        return out

    async def _ingest_prepared(
        self, league: LeagueConfig, cfg: ProviderConfig, adapter: ProviderAdapter
    ) -> dict[DataType, IngestionResult]:
        data_types = (
            league.data_types if league.data_types is not None else adapter.supported_data_types
        )

        async def one(data_type: DataType) -> IngestionResult:
            try:
                data = await self.fetch_one(
                    cfg.id, data_type, league.id, league.params_for(data_type)
                )
            except ProviderError as e:
                return IngestionResult.failure(e)
            return IngestionResult.success(data)

        started = self._clock()
        results = await asyncio.gather(*(one(dt) for dt in data_types))
        report = dict(zip(data_types, results))

        failed = [dt.value for dt, r in report.items() if not r.ok]
        log = logger.warning if failed else logger.info
        log(
            "league_ingested",
            league_id=league.id,
            provider=cfg.id,
            succeeded=len(report) - len(failed),
            failed=failed,
            duration_s=round(self._clock() - started, 3),
        )
        return report
