from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from fantasy_ingest.db.base import Base, TimestampMixin


class IngestedSnapshot(TimestampMixin, Base):
    __tablename__ = "ingested_snapshots"

    id: Mapped[int] = mapped_column(primary_key=True)

    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    league_id: Mapped[str] = mapped_column(String(64), nullable=False)
    data_type: Mapped[str] = mapped_column(
        String(32), nullable=False
    )  # "standings", "matchups", "transactions", "drafts", "analytics"

    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # Validated payload: a list of records or a single record.
    payload_json: Mapped[Any] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_ingested_snapshots_lookup", "league_id", "provider", "data_type", "fetched_at"),
    )
