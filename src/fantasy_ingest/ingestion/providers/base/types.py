from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from .errors import ProviderError

Json = dict[str, Any]


class DataType(StrEnum):
    STANDINGS = "standings"
    MATCHUPS = "matchups"
    TRANSACTIONS = "transactions"
    DRAFTS = "drafts"
    ANALYTICS = "analytics"


def canonical_json(value: Any) -> str:
    """Deterministic JSON: keys sorted at every depth, no whitespace."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


@dataclass(frozen=True)
class RequestDescriptor:
    """
    Canonical, value-typed description of one logical request.

    Two descriptors that differ only in parameter insertion order produce the
    same cache key. The idempotency key is not part of the cache key.
    """

    provider: str
    data_type: DataType
    league_id: str
    method: str = "GET"
    params: Mapping[str, Any] = field(default_factory=dict)
    body: Mapping[str, Any] | None = None
    idempotency_key: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "data_type", DataType(self.data_type))
        object.__setattr__(self, "league_id", str(self.league_id))

    @property
    def is_cacheable(self) -> bool:
        return self.method == "GET"

    def cache_key(self) -> str:
        return ":".join(
            [
                self.provider,
                self.method,
                self.data_type.value,
                self.league_id,
                canonical_json(dict(self.params)),
                canonical_json(self.body),
            ]
        )

    def __hash__(self) -> int:
        return hash(self.cache_key())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RequestDescriptor):
            return NotImplemented
        return self.cache_key() == other.cache_key()


@dataclass(frozen=True)
class ProviderRequest:
    """Concrete request shape produced by a provider adapter."""

    method: str
    path: str
    params: Mapping[str, Any] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    json: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class IngestionResult:
    ok: bool
    data: Any = None
    error_kind: str | None = None
    message: str | None = None

    @classmethod
    def success(cls, data: Any) -> IngestionResult:
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: ProviderError) -> IngestionResult:
        return cls(ok=False, error_kind=error.kind.value, message=error.summary())

    def to_dict(self) -> Json:
        if self.ok:
            return {"ok": True, "data": self.data}
        return {"ok": False, "errorKind": self.error_kind, "message": self.message}


@dataclass(frozen=True)
class LeagueIngestion:
    league_id: str
    provider: str
    results: dict[DataType, IngestionResult]
    # Set when the league was rejected before any fetch; `results` is then empty.
    error: IngestionResult | None = None

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results.values() if r.ok)

    @property
    def failed(self) -> int:
        rejected = 1 if self.error is not None else 0
        return rejected + sum(1 for r in self.results.values() if not r.ok)
