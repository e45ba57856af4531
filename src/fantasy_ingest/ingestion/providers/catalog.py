from __future__ import annotations

from fantasy_ingest.ingestion.providers.base.adapter import (
    CredentialInjector,
    CredentialStyle,
    ProviderAdapter,
    Route,
)
from fantasy_ingest.ingestion.providers.base.registry import AdapterRegistry
from fantasy_ingest.ingestion.providers.base.types import DataType

_YAHOO_PATH = "/fantasy/v2/league/{league_id}/{resource}"

YAHOO = ProviderAdapter(
    provider_key="yahoo",
    routes={
        DataType.STANDINGS: Route(
            _YAHOO_PATH,
            fixed_params={"format": "json"},
            envelope=("fantasy_content", "{resource}"),
        ),
        DataType.MATCHUPS: Route(
            _YAHOO_PATH,
            resource="scoreboard",
            fixed_params={"format": "json"},
            envelope=("fantasy_content", "{resource}"),
        ),
        DataType.TRANSACTIONS: Route(
            _YAHOO_PATH,
            fixed_params={"format": "json"},
            envelope=("fantasy_content", "{resource}"),
        ),
        DataType.DRAFTS: Route(
            _YAHOO_PATH,
            resource="draftresults",
            fixed_params={"format": "json"},
            envelope=("fantasy_content", "{resource}"),
        ),
    },
    credentials=CredentialInjector(style=CredentialStyle.BEARER, credential="token"),
)

# ESPN serves every view from one endpoint; the view is selected by a filter header.
_ESPN_FILTER = '{{"view":["{resource}"]}}'

ESPN = ProviderAdapter(
    provider_key="espn",
    routes={
        dt: Route(
            "/fantasy/v2/leagueSettings",
            fixed_params={"leagueId": "{league_id}"},
            header_templates={"x-fantasy-filter": _ESPN_FILTER},
        )
        for dt in DataType
    },
)

SLEEPER = ProviderAdapter(
    provider_key="sleeper",
    routes={
        DataType.MATCHUPS: Route("/v1/league/{league_id}/matchups/{week}"),
        DataType.TRANSACTIONS: Route("/v1/league/{league_id}/transactions/{week}"),
        DataType.DRAFTS: Route("/v1/draft/{draft_id}"),
    },
    credentials=CredentialInjector(
        style=CredentialStyle.BEARER, credential="token", required=False
    ),
)

NFL = ProviderAdapter(
    provider_key="nfl",
    routes={dt: Route("/v1/league/{league_id}/{resource}") for dt in DataType},
    credentials=CredentialInjector(
        style=CredentialStyle.QUERY_KEY, credential="key", param="apiKey"
    ),
)

_MFL_EXPORT = "/{year}/export"

MFL = ProviderAdapter(
    provider_key="mfl",
    routes={
        DataType.STANDINGS: Route(
            _MFL_EXPORT,
            resource="leagueStandings",
            fixed_params={"TYPE": "{resource}", "L": "{league_id}", "JSON": "1"},
            envelope=("{resource}", "franchise"),
        ),
        DataType.MATCHUPS: Route(
            _MFL_EXPORT,
            resource="weeklyResults",
            fixed_params={"TYPE": "{resource}", "L": "{league_id}", "JSON": "1"},
            envelope=("{resource}", "matchup"),
        ),
        DataType.TRANSACTIONS: Route(
            _MFL_EXPORT,
            resource="transactions",
            fixed_params={"TYPE": "{resource}", "L": "{league_id}", "JSON": "1"},
            envelope=("{resource}", "transaction"),
        ),
        DataType.DRAFTS: Route(
            _MFL_EXPORT,
            resource="draftResults",
            fixed_params={"TYPE": "{resource}", "L": "{league_id}", "JSON": "1"},
            envelope=("{resource}", "draftUnit"),
        ),
    },
    credentials=CredentialInjector(
        style=CredentialStyle.QUERY_KEY, credential="key", param="APIKEY"
    ),
)

DEFAULT_ADAPTERS: tuple[ProviderAdapter, ...] = (YAHOO, ESPN, SLEEPER, NFL, MFL)


def register_default_adapters(registry: AdapterRegistry) -> None:
    for adapter in DEFAULT_ADAPTERS:
        registry.register(adapter)


def default_registry() -> AdapterRegistry:
    registry = AdapterRegistry()
    register_default_adapters(registry)
    return registry
