from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol

from sqlalchemy.orm import Session

from fantasy_ingest.db.models.ingested_snapshot import IngestedSnapshot
from fantasy_ingest.db.repos.snapshot_repo import IngestedSnapshotRepository
from fantasy_ingest.ingestion.providers.base.types import DataType


class SnapshotStore(Protocol):
    """Persistence collaborator. Called once per successfully validated payload."""

    def store(
        self,
        league_id: str,
        data_type: DataType,
        payload: Any,
        fetched_at: datetime,
        *,
        provider: str,
    ) -> None: ...


@dataclass(frozen=True)
class StoredSnapshot:
    provider: str
    league_id: str
    data_type: DataType
    payload: Any
    fetched_at: datetime


class InMemorySnapshotStore:
    def __init__(self) -> None:
        self.snapshots: list[StoredSnapshot] = []

    def store(
        self,
        league_id: str,
        data_type: DataType,
        payload: Any,
        fetched_at: datetime,
        *,
        provider: str,
    ) -> None:
        self.snapshots.append(
            StoredSnapshot(
                provider=provider,
                league_id=league_id,
                data_type=data_type,
                payload=payload,
                fetched_at=fetched_at,
            )
        )

    def latest(
        self, league_id: str, data_type: DataType, *, provider: str | None = None
    ) -> StoredSnapshot | None:
        matches = [
            s
            for s in self.snapshots
            if s.league_id == league_id
            and s.data_type == data_type
            and (provider is None or s.provider == provider)
        ]
        return max(matches, key=lambda s: s.fetched_at) if matches else None


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


class SqlSnapshotStore:
    """
    Writes each snapshot in its own short transaction.

    Uses a session factory rather than a long-lived session so concurrent
    leagues never share a Session.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def store(
        self,
        league_id: str,
        data_type: DataType,
        payload: Any,
        fetched_at: datetime,
        *,
        provider: str,
    ) -> None:
        session = self._session_factory()
        try:
            IngestedSnapshotRepository(session).add(
                IngestedSnapshot(
                    provider=provider,
                    league_id=str(league_id),
                    data_type=DataType(data_type).value,
                    fetched_at=_as_utc(fetched_at),
                    payload_json=payload,
                ),
                flush=False,
            )
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
