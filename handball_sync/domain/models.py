"""
Domain-Modelle für die persistierten JSON-Artefakte mit Pydantic.

Die Feldnamen auf Platte gibt die Anzeige-App vor: camelCase für die
Spielerstatistik, die norwegischen Spaltennamen des Verbands für den Spielplan.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    """ISO timestamp in the same shape as JavaScript's Date.toISOString()."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# --- Terminliste ---

class ScheduleEntry(BaseModel):
    """Eine Zeile aus terminliste.json (ein Spiel aus Sicht einer unserer Mannschaften)"""

    model_config = ConfigDict(populate_by_name=True)

    team: str = Field("", alias="Lag")
    match_date: str = Field("", alias="Dato")
    match_time: str = Field("", alias="Tid")
    match_id: str = Field("", alias="Kampnr")
    home_team: str = Field("", alias="Hjemmelag")
    away_team: str = Field("", alias="Bortelag")
    score: str = Field("", alias="H-B")
    venue: str = Field("", alias="Bane")
    attendance: Optional[Union[int, str]] = Field(None, alias="Tilskuere")
    organizer: str = Field("", alias="Arrangør")
    tournament: str = Field("", alias="Turnering")
    match_url: str = Field("", alias="Kamp URL")
    home_team_url: str = Field("", alias="Hjemmelag URL")
    away_team_url: str = Field("", alias="Bortelag URL")
    tournament_url: str = Field("", alias="Turnering URL")

    @field_validator(
        "team", "match_date", "match_time", "match_id", "home_team", "away_team", "score",
        "venue", "organizer", "tournament", "match_url", "home_team_url", "away_team_url",
        "tournament_url",
        mode="before",
    )
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        if v is None:
            return ""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(int(v)) if float(v).is_integer() else str(v)
        return v

    @field_validator("match_id")
    @classmethod
    def _strip_id(cls, v: str) -> str:
        return v.strip()

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Metadata(CamelModel):
    last_updated: str
    teams_count: int
    matches_count: int


# --- Spielerstatistik ---

class PlayerMatchStats(CamelModel):
    player_id: str
    player_name: str
    jersey_number: Optional[int] = None
    goals: int = 0
    penalty_goals: int = 0
    two_minutes: int = 0
    yellow_cards: int = 0
    red_cards: int = 0


class MatchPlayerData(CamelModel):
    match_id: str
    match_date: str = ""
    match_url: Optional[str] = None
    home_team_id: str = ""
    home_team_name: str = ""
    away_team_id: str = ""
    away_team_name: str = ""
    home_score: int = 0
    away_score: int = 0
    tournament: Optional[str] = None
    home_team_stats: list[PlayerMatchStats] = Field(default_factory=list)
    away_team_stats: list[PlayerMatchStats] = Field(default_factory=list)
    scraped_at: str = Field(default_factory=utc_now_iso)


class Player(CamelModel):
    id: str
    name: str
    jersey_number: Optional[int] = None
    team_ids: list[str] = Field(default_factory=list)
    team_names: list[str] = Field(default_factory=list)
    primary_team_id: str = ""
    primary_team_name: str = ""


class PlayerStatsData(CamelModel):
    players: list[Player] = Field(default_factory=list)
    match_stats: list[MatchPlayerData] = Field(default_factory=list)
    matches_without_stats: list[str] = Field(default_factory=list)
    last_updated: str = Field(default_factory=utc_now_iso)

    @field_validator("matches_without_stats", mode="before")
    @classmethod
    def _missing_list(cls, v: Any) -> Any:
        return [] if v is None else v


class TournamentBreakdown(CamelModel):
    tournament: str
    goals: int = 0
    penalty_goals: int = 0
    two_minutes: int = 0
    yellow_cards: int = 0
    red_cards: int = 0
    matches: int = 0


class PlayerAggregateStats(CamelModel):
    player_id: str
    player_name: str
    team_id: str
    team_name: str
    team_ids: list[str]
    team_names: list[str]
    jersey_number: Optional[int] = None
    total_goals: int = 0
    total_penalty_goals: int = 0
    total_two_minutes: int = 0
    total_yellow_cards: int = 0
    total_red_cards: int = 0
    matches_played: int = 0
    goals_per_match: float = 0
    by_tournament: list[TournamentBreakdown] = Field(default_factory=list)


class PlayerAggregatesData(CamelModel):
    aggregates: list[PlayerAggregateStats] = Field(default_factory=list)
    generated_at: str = Field(default_factory=utc_now_iso)


# --- Tabeller ---

class TableRow(CamelModel):
    position: int
    team: str
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0
    points: int = 0


class LeagueTable(CamelModel):
    tournament_name: str
    tournament_url: str
    rows: list[TableRow]
    updated_at: str = Field(default_factory=utc_now_iso)


# --- Run summary & discovery cache ---

class MatchUpdateInfo(BaseModel):
    kampnr: str
    hjemmelag: str
    bortelag: str
    resultat: str
    turnering: Optional[str] = None


class TournamentRef(BaseModel):
    name: str
    url: str


class UpdateSummary(CamelModel):
    timestamp: str = Field(default_factory=utc_now_iso)
    results_updated: list[MatchUpdateInfo] = Field(default_factory=list)
    stats_updated: list[MatchUpdateInfo] = Field(default_factory=list)
    affected_tournaments: list[TournamentRef] = Field(default_factory=list)
    no_changes: bool = True

    def has_changes(self) -> bool:
        return bool(self.results_updated or self.stats_updated)

    def finalize(self) -> "UpdateSummary":
        return self.model_copy(update={"no_changes": not self.has_changes()})

    def record_stats(self, match: MatchPlayerData) -> None:
        self.stats_updated.append(
            MatchUpdateInfo(
                kampnr=match.match_id,
                hjemmelag=match.home_team_name,
                bortelag=match.away_team_name,
                resultat=f"{match.home_score}-{match.away_score}",
                turnering=match.tournament or None,
            )
        )


class CachedMatch(CamelModel):
    match_id: str
    match_url: str


class MatchCache(CamelModel):
    matches: list[CachedMatch] = Field(default_factory=list)
    last_updated: str = Field(default_factory=utc_now_iso)
    tournaments: list[str] = Field(default_factory=list)
