from __future__ import annotations

from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from fantasy_ingest.db.models.ingested_snapshot import IngestedSnapshot
from fantasy_ingest.db.repos.base import BaseRepository


def _league_filter(league_id: str, provider: str | None) -> list[ColumnElement[bool]]:
    predicates = [IngestedSnapshot.league_id == league_id]
    if provider is not None:
        predicates.append(IngestedSnapshot.provider == provider)
    return predicates


class IngestedSnapshotRepository(BaseRepository[IngestedSnapshot]):
    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=IngestedSnapshot)

    def latest(
        self, *, league_id: str, data_type: str, provider: str | None = None
    ) -> IngestedSnapshot | None:
        return self.first_where(
            *_league_filter(league_id, provider),
            IngestedSnapshot.data_type == data_type,
            order_by=[IngestedSnapshot.fetched_at.desc(), IngestedSnapshot.id.desc()],
        )

    def for_league(
        self, league_id: str, *, provider: str | None = None, limit: int = 100
    ) -> list[IngestedSnapshot]:
        return self.list_where(
            *_league_filter(league_id, provider),
            order_by=[IngestedSnapshot.fetched_at.desc(), IngestedSnapshot.id.desc()],
            limit=limit,
        )
