from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.exc import StatementError

from fantasy_ingest.db import DatabaseConfig, create_db_engine, create_session_factory
from fantasy_ingest.db.models import IngestedSnapshot
from fantasy_ingest.db.repos.snapshot_repo import IngestedSnapshotRepository
from fantasy_ingest.ingestion.providers.base.types import DataType
from fantasy_ingest.ingestion.store import SqlSnapshotStore


@pytest.fixture
def session_factory():
    engine = create_db_engine(DatabaseConfig(database_url="sqlite+pysqlite:///:memory:"))
    IngestedSnapshot.metadata.create_all(engine)
    yield create_session_factory(engine)
    engine.dispose()


def test_sql_store_persists_and_returns_latest_snapshot(session_factory) -> None:
    store = SqlSnapshotStore(session_factory)
    t0 = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)

    store.store(
        "L1", DataType.STANDINGS, [{"team_id": 1, "wins": 1, "losses": 0}], t0, provider="espn"
    )
    store.store(
        "L1",
        DataType.STANDINGS,
        [{"team_id": 1, "wins": 2, "losses": 0}],
        t0 + timedelta(days=7),
        provider="espn",
    )
    store.store("L1", DataType.DRAFTS, {"draft_id": "d1", "picks": []}, t0, provider="espn")
    store.store("L2", DataType.STANDINGS, [], t0, provider="espn")

    with session_factory() as session:
        repo = IngestedSnapshotRepository(session)
        latest = repo.latest(league_id="L1", data_type="standings")
        assert latest is not None
        assert latest.provider == "espn"
        assert latest.payload_json == [{"team_id": 1, "wins": 2, "losses": 0}]

        assert len(repo.for_league("L1")) == 3
        assert repo.latest(league_id="L3", data_type="standings") is None


def test_same_league_id_from_two_providers_stays_distinct(session_factory) -> None:
    store = SqlSnapshotStore(session_factory)
    t0 = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)

    store.store(
        "1", DataType.STANDINGS, [{"team_id": 1, "wins": 4, "losses": 0}], t0, provider="espn"
    )
    store.store(
        "1",
        DataType.STANDINGS,
        [{"team_id": 9, "wins": 0, "losses": 4}],
        t0 - timedelta(hours=1),
        provider="nfl",
    )

    with session_factory() as session:
        repo = IngestedSnapshotRepository(session)
        assert sorted(s.provider for s in repo.for_league("1")) == ["espn", "nfl"]
        assert [s.provider for s in repo.for_league("1", provider="nfl")] == ["nfl"]

        nfl = repo.latest(league_id="1", data_type="standings", provider="nfl")
        assert nfl is not None
        assert nfl.payload_json == [{"team_id": 9, "wins": 0, "losses": 4}]
        assert repo.latest(league_id="1", data_type="standings", provider="yahoo") is None


def test_sql_store_rolls_back_and_raises_on_failure(session_factory) -> None:
    store = SqlSnapshotStore(session_factory)

    # Payloads must be JSON-serializable.
    with pytest.raises(StatementError):
        store.store(
            "L1", DataType.ANALYTICS, {"team_id": object()}, datetime.now(UTC), provider="espn"
        )

    with session_factory() as session:
        assert IngestedSnapshotRepository(session).for_league("L1") == []
