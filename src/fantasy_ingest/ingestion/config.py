from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from fantasy_ingest.ingestion.providers.base.errors import ConfigurationError
from fantasy_ingest.ingestion.providers.base.types import DataType


class ProviderConfig(BaseModel):
    """
    Per-provider connection and pacing settings.

    Immutable once loaded. Credentials are opaque to the core; only the
    provider adapter knows which keys it needs.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1)
    base_address: str = Field(min_length=1)
    credentials: dict[str, Any] = Field(default_factory=dict, repr=False)
    max_concurrent: int = Field(default=5, gt=0)
    min_spacing_ms: int = Field(default=200, ge=0)
    timeout_ms: int = Field(default=10_000, gt=0)
    cache_ttl_seconds: int = Field(default=60, ge=0)
    retry_ceiling: int = Field(default=3, ge=0)
    backoff_base_ms: int = Field(default=300, gt=0)

    @property
    def min_spacing_s(self) -> float:
        return self.min_spacing_ms / 1000.0

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0

    @property
    def backoff_base_s(self) -> float:
        return self.backoff_base_ms / 1000.0


class LeagueConfig(BaseModel):
    """
    One league to ingest: which provider serves it and the request params it needs.

    `data_types` of None means "everything the provider's adapter supports".
    An explicit list is honored as-is, so an unsupported type shows up as a
    per-type failure rather than being silently dropped. `data_type_params`
    entries are layered over `params` for that type only.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    provider: str = Field(min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)
    data_types: tuple[DataType, ...] | None = None
    data_type_params: dict[DataType, dict[str, Any]] = Field(default_factory=dict)

    def params_for(self, data_type: DataType) -> dict[str, Any]:
        return {**self.params, **self.data_type_params.get(data_type, {})}

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        # League ids arrive as strings from some providers and ints from others.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("id")
    @classmethod
    def _non_blank_id(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("league id must not be blank")
        return value


class IngestionConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    providers: tuple[ProviderConfig, ...] = ()
    leagues: tuple[LeagueConfig, ...] = ()

    def providers_by_id(self) -> dict[str, ProviderConfig]:
        return {p.id: p for p in self.providers}


def _summarize(e: ValidationError) -> str:
    parts = []
    for err in e.errors()[:5]:
        loc = ".".join(str(x) for x in err.get("loc", ())) or "<root>"
        parts.append(f"{loc}: {err.get('msg')}")
    more = e.error_count() - len(parts)
    if more > 0:
        parts.append(f"(+{more} more)")
    return "; ".join(parts)


def parse_provider_config(raw: Mapping[str, Any]) -> ProviderConfig:
    try:
        return ProviderConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid provider config: {_summarize(e)}") from e


def parse_league_config(raw: Mapping[str, Any] | LeagueConfig) -> LeagueConfig:
    if isinstance(raw, LeagueConfig):
        return raw
    try:
        return LeagueConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid league config: {_summarize(e)}") from e


def parse_ingestion_config(raw: Mapping[str, Any]) -> IngestionConfig:
    try:
        cfg = IngestionConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid ingestion config: {_summarize(e)}") from e

    seen: set[str] = set()
    for p in cfg.providers:
        if p.id in seen:
            raise ConfigurationError(f"Duplicate provider config: {p.id}")
        seen.add(p.id)
    return cfg


def load_ingestion_config(path: Path) -> IngestionConfig:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(f"Unable to read config file at {path}: {e}") from e
    except ValueError as e:
        raise ConfigurationError(f"Unable to parse config file {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Expected JSON object in {path}, got {type(raw).__name__}")
    return parse_ingestion_config(raw)


# (base_address, max_concurrent, min_spacing_ms) per provider.
_DEFAULT_PACING: dict[str, tuple[str, int, int]] = {
    "yahoo": ("https://fantasysports.yahooapis.com", 2, 500),
    "espn": ("https://fantasy.espn.com/apis", 2, 500),
    "sleeper": ("https://api.sleeper.app", 5, 200),
    "nfl": ("https://api.fantasy.nfl.com", 1, 1000),
    "mfl": ("https://api.myfantasyleague.com", 1, 1000),
}


def default_provider_configs(
    credentials: Mapping[str, Mapping[str, Any]] | None = None,
    *,
    only: Iterable[str] | None = None,
) -> dict[str, ProviderConfig]:
    credentials = credentials or {}
    wanted = set(only) if only is not None else set(_DEFAULT_PACING)
    out: dict[str, ProviderConfig] = {}
    for provider_id, (base_address, max_concurrent, min_spacing_ms) in _DEFAULT_PACING.items():
        if provider_id not in wanted:
            continue
        out[provider_id] = ProviderConfig(
            id=provider_id,
            base_address=base_address,
            credentials=dict(credentials.get(provider_id, {})),
            max_concurrent=max_concurrent,
            min_spacing_ms=min_spacing_ms,
        )
    return out
