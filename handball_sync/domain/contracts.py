"""Typisierte Transferobjekte zwischen Scrapern, Orchestrator und CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .models import LeagueTable, MatchPlayerData


@dataclass
class MatchLink:
    match_id: str
    match_url: str = ""
    home_team_url: str = ""
    away_team_url: str = ""
    tournament_url: str = ""
    has_been_played: bool = False


@dataclass(frozen=True)
class PlayedMatch:
    match_id: str
    match_url: str


@dataclass
class TeamPageResult:
    match_links: dict[str, MatchLink] = field(default_factory=dict)
    tournament_links: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class TournamentTeam:
    team_name: str
    team_url: str
    team_id: str


@dataclass
class ScrapeFailure:
    """Ein fehlgeschlagenes Arbeitspaket innerhalb eines Batches (Mannschaftsseite, Turnier, Spiel)"""

    kind: str
    item: str
    reason: str


@dataclass
class DiscoveryResult:
    match_links_per_team: dict[str, dict[str, MatchLink]] = field(default_factory=dict)
    tournament_links: dict[str, str] = field(default_factory=dict)
    tables: list[LeagueTable] = field(default_factory=list)
    failures: list[ScrapeFailure] = field(default_factory=list)

    def links_for(self, team_id: str) -> dict[str, MatchLink]:
        return self.match_links_per_team.get(team_id, {})


@dataclass
class PlayedMatchDiscovery:
    matches: list[PlayedMatch] = field(default_factory=list)
    failures: list[ScrapeFailure] = field(default_factory=list)


@dataclass(frozen=True)
class MatchScore:
    match_id: str
    home_score: Optional[int]
    away_score: Optional[int]

    @property
    def result(self) -> str:
        if self.home_score is None or self.away_score is None:
            return "-"
        return f"{self.home_score}-{self.away_score}"


@dataclass
class StatsScrapeResult:
    results: list[MatchPlayerData] = field(default_factory=list)
    no_stats: list[str] = field(default_factory=list)
    failures: list[ScrapeFailure] = field(default_factory=list)


@dataclass(frozen=True)
class ProgressEvent:
    stage: str
    detail: str
    current: Optional[int] = None
    total: Optional[int] = None

    def __str__(self) -> str:
        if self.current is not None and self.total:
            return f"[{self.stage}] {self.current}/{self.total} {self.detail}"
        return f"[{self.stage}] {self.detail}"
