from __future__ import annotations

import string
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any
from urllib.parse import quote

from .errors import ConfigurationError, PayloadValidationError, UnsupportedDataTypeError
from .types import DataType, ProviderRequest

_formatter = string.Formatter()


class ParamPlacement(StrEnum):
    QUERY = "query"
    HEADER = "header"
    BODY = "body"


class CredentialStyle(StrEnum):
    NONE = "none"
    BEARER = "bearer"
    QUERY_KEY = "query_key"


@dataclass(frozen=True)
class CredentialInjector:
    """How a provider expects its credential: bearer header, query key, or nothing."""

    style: CredentialStyle = CredentialStyle.NONE
    credential: str | None = None
    param: str | None = None
    required: bool = True

    @property
    def required_credentials(self) -> tuple[str, ...]:
        if self.style is CredentialStyle.NONE or not self.required or self.credential is None:
            return ()
        return (self.credential,)

    def inject(
        self,
        credentials: Mapping[str, Any],
        *,
        params: dict[str, Any],
        headers: dict[str, str],
    ) -> None:
        if self.style is CredentialStyle.NONE or self.credential is None:
            return

        value = credentials.get(self.credential)
        if value in (None, ""):
            if self.required:
                raise ConfigurationError(f"Missing credential {self.credential!r}")
            return

        if self.style is CredentialStyle.BEARER:
            headers["Authorization"] = f"Bearer {value}"
        elif self.style is CredentialStyle.QUERY_KEY:
            params[self.param or self.credential] = value


@dataclass(frozen=True)
class Route:
    """
    One data type's endpoint for one provider.

    `path`, `fixed_params` values, `header_templates` values and `envelope`
    entries are format templates. `{league_id}` and `{resource}` are always
    available; any other placeholder in `path` is taken (and removed) from
    the caller's params. Whatever params remain go where `placement` says.
    """

    path: str
    resource: str | None = None
    placement: ParamPlacement = ParamPlacement.QUERY
    fixed_params: Mapping[str, str] = field(default_factory=dict)
    header_templates: Mapping[str, str] = field(default_factory=dict)
    envelope: tuple[str, ...] = ()

    def path_fields(self) -> tuple[str, ...]:
        return tuple(name for _, name, _, _ in _formatter.parse(self.path) if name)


@dataclass(frozen=True)
class ProviderAdapter:
    """
    Translates an abstract (league, data type, params) request into a
    provider's concrete URL, headers and query/body shape.

    Adapters are pure data plus this one generic builder; there is no
    per-provider branching anywhere else.
    """

    provider_key: str
    routes: Mapping[DataType, Route]
    credentials: CredentialInjector = field(default_factory=CredentialInjector)

    @property
    def supported_data_types(self) -> tuple[DataType, ...]:
        return tuple(dt for dt in DataType if dt in self.routes)

    def check_credentials(self, credentials: Mapping[str, Any]) -> None:
        missing = [k for k in self.credentials.required_credentials if not credentials.get(k)]
        if missing:
            raise ConfigurationError(
                f"Provider {self.provider_key} requires credentials: {', '.join(missing)}"
            )

    def route_for(self, data_type: DataType) -> Route:
        route = self.routes.get(data_type)
        if route is None:
            raise UnsupportedDataTypeError(
                f"Provider {self.provider_key} does not support data type {data_type.value}"
            )
        return route

    def build_request(
        self,
        *,
        league_id: str,
        data_type: DataType,
        params: Mapping[str, Any] | None = None,
        credentials: Mapping[str, Any] | None = None,
        method: str = "GET",
        body: Mapping[str, Any] | None = None,
    ) -> ProviderRequest:
        route = self.route_for(data_type)
        remaining = dict(params or {})

        context: dict[str, str] = {
            "league_id": str(league_id),
            "resource": route.resource or data_type.value,
        }

        path_values: dict[str, str] = {}
        for name in route.path_fields():
            if name in context:
                path_values[name] = quote(context[name], safe="")
                continue
            if name not in remaining or remaining[name] is None:
                raise ConfigurationError(
                    f"Provider {self.provider_key} {data_type.value} requires param {name!r}"
                )
            path_values[name] = quote(str(remaining.pop(name)), safe="")
        path = route.path.format(**path_values)

        query: dict[str, Any] = {k: v.format(**context) for k, v in route.fixed_params.items()}
        headers: dict[str, str] = {
            k: v.format(**context) for k, v in route.header_templates.items()
        }
        json_body: dict[str, Any] | None = dict(body) if body is not None else None

        if route.placement is ParamPlacement.QUERY:
            query.update(remaining)
        elif route.placement is ParamPlacement.HEADER:
            headers.update({k: str(v) for k, v in remaining.items()})
        else:
            json_body = {**remaining, **(json_body or {})}

        self.credentials.inject(credentials or {}, params=query, headers=headers)

        return ProviderRequest(
            method=method.upper(),
            path=path,
            params=query,
            headers=headers,
            json=json_body,
        )

    def unwrap(self, data_type: DataType, payload: Any) -> Any:
        """Strip the provider's response envelope, if it has one."""
        route = self.route_for(data_type)
        context = {"resource": route.resource or data_type.value}
        value = payload
        for key_template in route.envelope:
            key = key_template.format(**context)
            if not isinstance(value, dict) or key not in value:
                raise PayloadValidationError(
                    f"{self.provider_key} {data_type.value} response missing {key!r} envelope"
                )
            value = value[key]
        return value
