from __future__ import annotations

from pathlib import Path

import pytest

from fantasy_ingest.core.config import Settings


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    cfg = tmp_path / "ingest.json"
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///:memory:")
    monkeypatch.setenv("LOG_FORMAT", "json")
    monkeypatch.setenv("INGESTION_CONFIG_PATH", str(cfg))
    monkeypatch.setenv("COALESCE_IN_FLIGHT", "true")

    s = Settings(_env_file=None)

    assert s.database_url == "sqlite+pysqlite:///:memory:"
    assert s.log_format == "json"
    assert s.coalesce_in_flight is True
    assert s.require_ingestion_config_path() == cfg


def test_missing_ingestion_config_path_is_reported(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("INGESTION_CONFIG_PATH", raising=False)

    s = Settings(_env_file=None)

    with pytest.raises(RuntimeError, match="INGESTION_CONFIG_PATH"):
        s.require_ingestion_config_path()
