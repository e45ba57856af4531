from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from prometheus_client import CollectorRegistry, Counter, Histogram

from fantasy_ingest.core.logging import get_logger
from fantasy_ingest.ingestion.providers.base.errors import ProviderError
from fantasy_ingest.ingestion.providers.base.types import RequestDescriptor

logger = get_logger(__name__)


class IngestionObserver(Protocol):
    """Receives ingestion events. Implementations must be cheap and non-blocking."""

    def request_started(self, descriptor: RequestDescriptor) -> None: ...

    def request_succeeded(
        self, descriptor: RequestDescriptor, duration_s: float, *, cached: bool
    ) -> None: ...

    def request_failed(
        self, descriptor: RequestDescriptor, error: ProviderError, duration_s: float
    ) -> None: ...

    def retry_scheduled(
        self, descriptor: RequestDescriptor, attempt: int, delay_s: float, error: BaseException
    ) -> None: ...


class NullObserver:
    def request_started(self, descriptor: RequestDescriptor) -> None:
        pass

    def request_succeeded(
        self, descriptor: RequestDescriptor, duration_s: float, *, cached: bool
    ) -> None:
        pass

    def request_failed(
        self, descriptor: RequestDescriptor, error: ProviderError, duration_s: float
    ) -> None:
        pass

    def retry_scheduled(
        self, descriptor: RequestDescriptor, attempt: int, delay_s: float, error: BaseException
    ) -> None:
        pass


class PrometheusObserver:
    """
    Prometheus counters/histogram for ingestion.

    Each instance owns its CollectorRegistry so several orchestrators (or
    tests) can coexist in one process.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()

        self.requests_total = Counter(
            "requests_total",
            "Total number of ingestion requests",
            ["provider", "data_type"],
            registry=self.registry,
        )
        self.success_total = Counter(
            "success_total",
            "Total number of successful ingestion requests",
            ["provider", "data_type", "cached"],
            registry=self.registry,
        )
        self.failure_total = Counter(
            "failure_total",
            "Total number of failed ingestion requests",
            ["provider", "data_type", "error_kind"],
            registry=self.registry,
        )
        self.retries_total = Counter(
            "retries_total",
            "Total number of scheduled retries",
            ["provider", "data_type"],
            registry=self.registry,
        )
        self.duration = Histogram(
            "ingestion_duration_seconds",
            "Histogram of ingestion durations in seconds",
            ["provider", "data_type"],
            buckets=[0.1, 0.5, 1.0, 2.0, 5.0],
            registry=self.registry,
        )

    def request_started(self, descriptor: RequestDescriptor) -> None:
        self.requests_total.labels(descriptor.provider, descriptor.data_type.value).inc()

    def request_succeeded(
        self, descriptor: RequestDescriptor, duration_s: float, *, cached: bool
    ) -> None:
        self.success_total.labels(
            descriptor.provider, descriptor.data_type.value, "true" if cached else "false"
        ).inc()
        self.duration.labels(descriptor.provider, descriptor.data_type.value).observe(duration_s)

    def request_failed(
        self, descriptor: RequestDescriptor, error: ProviderError, duration_s: float
    ) -> None:
        self.failure_total.labels(
            descriptor.provider, descriptor.data_type.value, error.kind.value
        ).inc()
        self.duration.labels(descriptor.provider, descriptor.data_type.value).observe(duration_s)

    def retry_scheduled(
        self, descriptor: RequestDescriptor, attempt: int, delay_s: float, error: BaseException
    ) -> None:
        self.retries_total.labels(descriptor.provider, descriptor.data_type.value).inc()


class ObserverGroup:
    """Fans events out to several observers; one observer failing never affects another."""

    def __init__(self, observers: Iterable[IngestionObserver]) -> None:
        self.observers = list(observers)

    def _each(self, method: str, *args: object, **kwargs: object) -> None:
        for observer in self.observers:
            try:
                getattr(observer, method)(*args, **kwargs)
            except Exception:
                logger.exception("observer_failed", observer=type(observer).__name__, event=method)

    def request_started(self, descriptor: RequestDescriptor) -> None:
        self._each("request_started", descriptor)

    def request_succeeded(
        self, descriptor: RequestDescriptor, duration_s: float, *, cached: bool
    ) -> None:
        self._each("request_succeeded", descriptor, duration_s, cached=cached)

    def request_failed(
        self, descriptor: RequestDescriptor, error: ProviderError, duration_s: float
    ) -> None:
        self._each("request_failed", descriptor, error, duration_s)

    def retry_scheduled(
        self, descriptor: RequestDescriptor, attempt: int, delay_s: float, error: BaseException
    ) -> None:
        self._each("retry_scheduled", descriptor, attempt, delay_s, error)
