from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer
from prometheus_client import write_to_textfile

from fantasy_ingest.cli.common import session_factory, setup_logging
from fantasy_ingest.core.config import settings
from fantasy_ingest.ingestion.config import default_provider_configs, load_ingestion_config
from fantasy_ingest.ingestion.observability import PrometheusObserver
from fantasy_ingest.ingestion.orchestrator import IngestionOrchestrator
from fantasy_ingest.ingestion.providers.base.errors import ProviderError
from fantasy_ingest.ingestion.providers.base.types import DataType, LeagueIngestion
from fantasy_ingest.ingestion.store import SnapshotStore, SqlSnapshotStore

app = typer.Typer(help="Fetch league data from fantasy providers.")


def _store(persist: bool) -> SnapshotStore | None:
    if not persist:
        return None
    return SqlSnapshotStore(session_factory())


async def _run_all(
    config_path: Path, persist: bool, observer: PrometheusObserver
) -> list[LeagueIngestion]:
    cfg = load_ingestion_config(config_path)
    async with IngestionOrchestrator(
        cfg.providers,
        store=_store(persist),
        observer=observer,
        coalesce_in_flight=settings.coalesce_in_flight,
    ) as orchestrator:
        return await orchestrator.ingest_all(cfg.leagues)


@app.command("run")
def ingest_run_cmd(
    config_path: Path | None = typer.Option(
        None,
        "--config",
        help="Ingestion config JSON (providers + leagues). Defaults to INGESTION_CONFIG_PATH.",
    ),
    persist: bool = typer.Option(
        settings.store_snapshots,
        "--persist/--no-persist",
        help="Store validated payloads in the snapshot table.",
    ),
    metrics_path: Path | None = typer.Option(
        None,
        "--metrics-file",
        help="Write Prometheus metrics for this run to a textfile-collector file.",
    ),
) -> None:
    """Ingest every configured league and print a per-league summary."""

    setup_logging()
    path = config_path or settings.require_ingestion_config_path()
    observer = PrometheusObserver()
    try:
        reports = asyncio.run(_run_all(path, persist, observer))
    except ProviderError as e:
        typer.echo(f"Ingestion aborted: {e.summary()}", err=True)
        raise typer.Exit(code=2) from e

    if metrics_path is not None:
        write_to_textfile(str(metrics_path), observer.registry)

    for report in reports:
        typer.echo(
            " ".join(
                [
                    f"League {report.provider}/{report.league_id}:",
                    f"succeeded={report.succeeded}",
                    f"failed={report.failed}",
                ]
            )
        )
        if report.error is not None:
            typer.echo(f"  rejected: {report.error.error_kind} {report.error.message}")
        for data_type, result in report.results.items():
            if not result.ok:
                typer.echo(f"  {data_type.value}: {result.error_kind} {result.message}")

    if any(r.failed for r in reports):
        raise typer.Exit(code=1)


@app.command("fetch")
def ingest_fetch_cmd(
    provider: str = typer.Option(..., "--provider", help="Provider id (e.g. sleeper)."),
    league_id: str = typer.Option(..., "--league-id", help="Provider league id."),
    data_type: DataType = typer.Option(..., "--data-type", help="Kind of data to fetch."),
    param: list[str] = typer.Option(
        [],
        "--param",
        help="Extra request param as key=value (repeatable), e.g. --param week=3.",
    ),
    config_path: Path | None = typer.Option(
        None,
        "--config",
        help="Ingestion config JSON. Without it, built-in provider defaults are used.",
    ),
) -> None:
    """Fetch a single (provider, league, data type) payload and print it as JSON."""

    setup_logging()
    params: dict[str, str] = {}
    for item in param:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected key=value, got {item!r}", param_hint="--param")
        params[key] = value

    path = config_path or settings.ingestion_config_path

    async def _fetch() -> object:
        providers = (
            load_ingestion_config(path).providers if path else default_provider_configs().values()
        )
        async with IngestionOrchestrator(providers) as orchestrator:
            return await orchestrator.fetch_one(provider, data_type, league_id, params)

    try:
        data = asyncio.run(_fetch())
    except ProviderError as e:
        typer.echo(f"Fetch failed: {e.summary()}", err=True)
        raise typer.Exit(code=1) from e

    typer.echo(json.dumps(data, indent=2, sort_keys=True))
