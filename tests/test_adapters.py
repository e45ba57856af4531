from __future__ import annotations

import json

import pytest

from fantasy_ingest.ingestion.providers.base.adapter import (
    CredentialInjector,
    CredentialStyle,
    ParamPlacement,
    ProviderAdapter,
    Route,
)
from fantasy_ingest.ingestion.providers.base.errors import (
    ConfigurationError,
    PayloadValidationError,
    UnsupportedDataTypeError,
)
from fantasy_ingest.ingestion.providers.base.registry import AdapterRegistry
from fantasy_ingest.ingestion.providers.base.types import DataType
from fantasy_ingest.ingestion.providers.catalog import DEFAULT_ADAPTERS, default_registry


def test_default_registry_has_all_five_providers() -> None:
    registry = default_registry()
    assert registry.providers() == ["espn", "mfl", "nfl", "sleeper", "yahoo"]
    assert "sleeper" in registry
    assert "fleaflicker" not in registry

    with pytest.raises(ConfigurationError):
        registry.get("fleaflicker")


def test_registry_rejects_duplicate_registration() -> None:
    registry = AdapterRegistry()
    registry.register(DEFAULT_ADAPTERS[0])
    with pytest.raises(ValueError):
        registry.register(DEFAULT_ADAPTERS[0])


def test_yahoo_request_uses_bearer_token_and_resource_path() -> None:
    req = default_registry().build_request(
        "yahoo", DataType.MATCHUPS, "nfl.l.123", {"week": 4}, credentials={"token": "t0k"}
    )

    assert req.method == "GET"
    assert req.path == "/fantasy/v2/league/nfl.l.123/scoreboard"
    assert req.params == {"format": "json", "week": 4}
    assert req.headers == {"Authorization": "Bearer t0k"}


def test_yahoo_missing_token_is_configuration_error() -> None:
    adapter = default_registry().get("yahoo")
    with pytest.raises(ConfigurationError):
        adapter.check_credentials({})
    with pytest.raises(ConfigurationError):
        adapter.build_request(league_id="1", data_type=DataType.STANDINGS, credentials={})


def test_yahoo_does_not_support_analytics() -> None:
    adapter = default_registry().get("yahoo")
    assert DataType.ANALYTICS not in adapter.supported_data_types
    with pytest.raises(UnsupportedDataTypeError):
        adapter.build_request(
            league_id="1", data_type=DataType.ANALYTICS, credentials={"token": "t"}
        )


def test_espn_selects_view_with_filter_header() -> None:
    req = default_registry().build_request("espn", DataType.STANDINGS, 98765)

    assert req.path == "/fantasy/v2/leagueSettings"
    assert req.params == {"leagueId": "98765"}
    assert json.loads(req.headers["x-fantasy-filter"]) == {"view": ["standings"]}
    assert "Authorization" not in req.headers


def test_sleeper_takes_path_params_from_request_params() -> None:
    registry = default_registry()

    req = registry.build_request("sleeper", DataType.MATCHUPS, "7890", {"week": 3})
    assert req.path == "/v1/league/7890/matchups/3"
    assert req.params == {}
    assert req.headers == {}

    req = registry.build_request(
        "sleeper", DataType.DRAFTS, "7890", {"draft_id": "d1"}, credentials={"token": "opt"}
    )
    assert req.path == "/v1/draft/d1"
    assert req.headers == {"Authorization": "Bearer opt"}

    with pytest.raises(ConfigurationError):
        registry.build_request("sleeper", DataType.MATCHUPS, "7890")


def test_nfl_and_mfl_pass_api_key_as_query_param() -> None:
    registry = default_registry()

    nfl = registry.build_request("nfl", DataType.ANALYTICS, "55", credentials={"key": "K"})
    assert nfl.path == "/v1/league/55/analytics"
    assert nfl.params == {"apiKey": "K"}

    mfl = registry.build_request(
        "mfl", DataType.STANDINGS, "12345", {"year": 2024}, credentials={"key": "M"}
    )
    assert mfl.path == "/2024/export"
    assert mfl.params == {"TYPE": "leagueStandings", "L": "12345", "JSON": "1", "APIKEY": "M"}


def test_path_params_are_url_quoted() -> None:
    req = default_registry().build_request("sleeper", DataType.DRAFTS, "x", {"draft_id": "a/b c"})
    assert req.path == "/v1/draft/a%2Fb%20c"


def test_mfl_unwrap_strips_envelope() -> None:
    adapter = default_registry().get("mfl")
    payload = {"leagueStandings": {"franchise": [{"id": "0001", "wins": 3, "losses": 1}]}}

    assert adapter.unwrap(DataType.STANDINGS, payload) == [
        {"id": "0001", "wins": 3, "losses": 1}
    ]
    with pytest.raises(PayloadValidationError):
        adapter.unwrap(DataType.STANDINGS, {"error": "nope"})


def test_param_placement_header_and_body() -> None:
    adapter = ProviderAdapter(
        provider_key="custom",
        routes={
            DataType.STANDINGS: Route("/s", placement=ParamPlacement.HEADER),
            DataType.TRANSACTIONS: Route("/t", placement=ParamPlacement.BODY),
        },
        credentials=CredentialInjector(style=CredentialStyle.NONE),
    )

    s = adapter.build_request(
        league_id="1", data_type=DataType.STANDINGS, params={"X-Season": 2024}
    )
    assert s.headers == {"X-Season": "2024"}
    assert s.params == {}

    t = adapter.build_request(
        league_id="1",
        data_type=DataType.TRANSACTIONS,
        params={"week": 2},
        method="post",
        body={"limit": 10},
    )
    assert t.method == "POST"
    assert t.json == {"week": 2, "limit": 10}
