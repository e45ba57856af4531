from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # DB
    database_url: str = Field(
        default="sqlite+pysqlite:///./fantasy_ingest.db",
        validation_alias="DATABASE_URL",
    )
    db_echo: bool = False

    # Logging
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"

    # Ingestion
    ingestion_config_path: Path | None = None
    store_snapshots: bool = True
    coalesce_in_flight: bool = False

    def require_ingestion_config_path(self) -> Path:
        if self.ingestion_config_path is None:
            raise RuntimeError(
                "INGESTION_CONFIG_PATH is not set. Pass --config or set it in the environment "
                "or .env file."
            )
        return self.ingestion_config_path


settings = Settings()
