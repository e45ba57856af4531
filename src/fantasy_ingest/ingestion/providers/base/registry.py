from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .adapter import ProviderAdapter
from .errors import ConfigurationError
from .types import DataType, ProviderRequest


class AdapterRegistry:
    def __init__(self) -> None:
        self._adapters: dict[str, ProviderAdapter] = {}

    def register(self, adapter: ProviderAdapter) -> None:
        if adapter.provider_key in self._adapters:
            raise ValueError(f"Duplicate adapter registration: {adapter.provider_key}")
        self._adapters[adapter.provider_key] = adapter

    def get(self, provider: str) -> ProviderAdapter:
        adapter = self._adapters.get(provider)
        if adapter is None:
            raise ConfigurationError(f"No adapter registered for provider={provider}")
        return adapter

    def providers(self) -> list[str]:
        return sorted(self._adapters)

    def __contains__(self, provider: object) -> bool:
        return provider in self._adapters

    def build_request(
        self,
        provider: str,
        data_type: DataType,
        league_id: str,
        params: Mapping[str, Any] | None = None,
        *,
        credentials: Mapping[str, Any] | None = None,
    ) -> ProviderRequest:
        return self.get(provider).build_request(
            league_id=league_id,
            data_type=data_type,
            params=params,
            credentials=credentials,
        )
