from __future__ import annotations

import typer

from fantasy_ingest.cli.ingest import app as ingest_app
from fantasy_ingest.cli.providers import app as providers_app

app = typer.Typer(no_args_is_help=True)
app.add_typer(ingest_app, name="ingest")
app.add_typer(providers_app, name="providers")
