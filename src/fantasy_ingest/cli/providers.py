from __future__ import annotations

import typer

from fantasy_ingest.ingestion.config import default_provider_configs
from fantasy_ingest.ingestion.providers.catalog import default_registry

app = typer.Typer(help="Inspect registered provider adapters.")


@app.command("list")
def list_providers_cmd() -> None:
    """List registered providers, their supported data types and default pacing."""

    registry = default_registry()
    defaults = default_provider_configs()
    for provider_id in registry.providers():
        adapter = registry.get(provider_id)
        parts = [
            f"{provider_id}:",
            "data_types=" + ",".join(dt.value for dt in adapter.supported_data_types),
        ]
        cfg = defaults.get(provider_id)
        if cfg is not None:
            parts.append(f"max_concurrent={cfg.max_concurrent}")
            parts.append(f"min_spacing_ms={cfg.min_spacing_ms}")
        required = adapter.credentials.required_credentials
        if required:
            parts.append("credentials=" + ",".join(required))
        typer.echo(" ".join(parts))
