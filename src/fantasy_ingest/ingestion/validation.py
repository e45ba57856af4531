from __future__ import annotations

from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    StrictStr,
    TypeAdapter,
    ValidationError,
)

from fantasy_ingest.ingestion.providers.base.errors import PayloadValidationError
from fantasy_ingest.ingestion.providers.base.types import DataType

# Strict scalars: "12" is not an int and True is not a number.
Id = StrictStr | StrictInt
Number = StrictInt | StrictFloat


class _Record(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class StandingRecord(_Record):
    team_id: Id = Field(validation_alias=AliasChoices("team_id", "franchise_id", "id"))
    wins: StrictInt
    losses: StrictInt
    ties: StrictInt | None = None
    rank: StrictInt | None = None
    points_for: Number | None = None
    points_against: Number | None = None
    team_name: StrictStr | None = None


class MatchupRecord(_Record):
    team_id: Id = Field(validation_alias=AliasChoices("team_id", "roster_id", "franchise_id"))
    points: Number
    matchup_id: Id | None = None
    week: StrictInt | None = None
    opponent_id: Id | None = None


class TransactionRecord(_Record):
    transaction_id: Id = Field(validation_alias=AliasChoices("transaction_id", "id"))
    type: StrictStr
    status: StrictStr | None = None
    week: StrictInt | None = None
    created: StrictInt | None = None
    adds: dict[str, Id] | None = None
    drops: dict[str, Id] | None = None


class DraftPick(_Record):
    round: StrictInt
    pick_no: StrictInt = Field(validation_alias=AliasChoices("pick_no", "pick", "overall"))
    player_id: Id
    team_id: Id | None = Field(
        default=None, validation_alias=AliasChoices("team_id", "roster_id", "franchise")
    )


class DraftRecord(_Record):
    draft_id: Id = Field(validation_alias=AliasChoices("draft_id", "id"))
    status: StrictStr | None = None
    type: StrictStr | None = None
    season: Id | None = None
    picks: list[DraftPick] = Field(default_factory=list)


class AnalyticsRecord(_Record):
    team_id: Id
    games_played: StrictInt | None = None
    wins: StrictInt | None = None
    losses: StrictInt | None = None
    points_avg: Number | None = None
    win_rate: Number | None = None


_SCHEMAS: dict[DataType, TypeAdapter[Any]] = {
    DataType.STANDINGS: TypeAdapter(list[StandingRecord]),
    DataType.MATCHUPS: TypeAdapter(list[MatchupRecord]),
    DataType.TRANSACTIONS: TypeAdapter(list[TransactionRecord]),
    DataType.DRAFTS: TypeAdapter(DraftRecord),
    DataType.ANALYTICS: TypeAdapter(AnalyticsRecord),
}


def _summarize(data_type: DataType, e: ValidationError, *, limit: int = 3) -> str:
    parts = []
    for err in e.errors(include_input=False)[:limit]:
        loc = ".".join(str(x) for x in err.get("loc", ())) or "<root>"
        parts.append(f"{loc}: {err.get('msg')}")
    more = e.error_count() - len(parts)
    if more > 0:
        parts.append(f"(+{more} more)")
    return f"{data_type.value} payload rejected: " + "; ".join(parts)


def validate(data_type: DataType, raw: Any) -> Any:
    """Validate a raw provider payload and return it stripped to known fields."""
    adapter = _SCHEMAS[DataType(data_type)]
    try:
        parsed = adapter.validate_python(raw)
    except ValidationError as e:
        raise PayloadValidationError(_summarize(DataType(data_type), e)) from e
    return adapter.dump_python(parsed, mode="json", exclude_unset=True)
