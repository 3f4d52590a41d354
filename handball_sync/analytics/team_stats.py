"""
Mannschaftsansicht: Spielhistorie, Kader und Kennzahlen einer Mannschaft,
abgeleitet aus player-stats.json und der Terminliste.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping, Optional, Sequence

from ..common.parsing import date_sort_key, extract_query_id
from ..common.scraper_utils import RESULT_STRING_PATTERN
from ..domain.models import MatchPlayerData, PlayerStatsData, ScheduleEntry


class MatchResult(str, Enum):
    WIN = "win"
    DRAW = "draw"
    LOSS = "loss"

    @classmethod
    def from_goals(cls, scored: int, conceded: int) -> "MatchResult":
        if scored > conceded:
            return cls.WIN
        if scored < conceded:
            return cls.LOSS
        return cls.DRAW


@dataclass
class TeamMatchData:
    match_id: str
    match_date: str
    match_url: Optional[str]
    opponent: str
    opponent_id: str
    is_home: bool
    goals_scored: int
    goals_conceded: int
    result: MatchResult
    tournament: Optional[str]

    def to_dict(self) -> dict:
        return {
            "matchId": self.match_id,
            "matchDate": self.match_date,
            "matchUrl": self.match_url,
            "opponent": self.opponent,
            "opponentId": self.opponent_id,
            "isHome": self.is_home,
            "goalsScored": self.goals_scored,
            "goalsConceded": self.goals_conceded,
            "resultType": self.result.value,
            "tournament": self.tournament,
        }


@dataclass
class TeamPlayerData:
    player_id: str
    player_name: str
    jersey_number: Optional[int]
    goals: int = 0
    penalty_goals: int = 0
    two_minutes: int = 0
    matches: int = 0

    def to_dict(self) -> dict:
        return {
            "playerId": self.player_id,
            "playerName": self.player_name,
            "jerseyNumber": self.jersey_number,
            "goals": self.goals,
            "penaltyGoals": self.penalty_goals,
            "twoMinutes": self.two_minutes,
            "matches": self.matches,
        }


@dataclass
class TeamDetailStats:
    match_count: int
    wins: int
    draws: int
    losses: int
    goals_scored: int
    goals_conceded: int
    goal_diff: int
    goals_per_match: float

    def to_dict(self) -> dict:
        return {
            "matchCount": self.match_count,
            "wins": self.wins,
            "draws": self.draws,
            "losses": self.losses,
            "goalsScored": self.goals_scored,
            "goalsConceded": self.goals_conceded,
            "goalDiff": self.goal_diff,
            "goalsPerMatch": self.goals_per_match,
        }


@dataclass
class TeamDetailData:
    team_id: str
    team_name: str
    is_our_team: bool
    stats: TeamDetailStats
    matches: list[TeamMatchData] = field(default_factory=list)
    players: list[TeamPlayerData] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "teamId": self.team_id,
            "teamName": self.team_name,
            "isOurTeam": self.is_our_team,
            "matches": [m.to_dict() for m in self.matches],
            "players": [p.to_dict() for p in self.players],
            "stats": self.stats.to_dict(),
        }


def parse_result_string(value: Optional[str]) -> Optional[tuple[int, int]]:
    # "30-25" -> (30, 25); "-" and anything else -> None
    if not value:
        return None
    m = RESULT_STRING_PATTERN.match(value)
    if not m:
        return None
    return int(m.group(1)), int(m.group(2))


def resolve_match_scores(
    match: MatchPlayerData, schedule_index: Mapping[str, ScheduleEntry]
) -> tuple[int, int]:
    """The schedule's H-B wins over the score scraped from the match page."""
    entry = schedule_index.get(match.match_id.strip())
    if entry is not None:
        parsed = parse_result_string(entry.score)
        if parsed:
            return parsed
    return match.home_score, match.away_score


def resolve_match_url(
    primary_url: Optional[str], match_id: str, schedule_index: Mapping[str, ScheduleEntry]
) -> Optional[str]:
    if primary_url is not None:
        return primary_url
    entry = schedule_index.get(match_id)
    return entry.match_url if entry is not None else None


def build_team_detail_data(
    team_id: str,
    stats: PlayerStatsData,
    schedule_index: Mapping[str, ScheduleEntry],
    our_team_ids: Iterable[str],
    tournament_filter: Optional[str] = None,
) -> Optional[TeamDetailData]:
    """None when the team has no match (for the given tournament)."""
    team_name = ""
    matches: list[TeamMatchData] = []
    players: dict[str, TeamPlayerData] = {}

    for match in stats.match_stats:
        is_home = match.home_team_id == team_id
        is_away = match.away_team_id == team_id
        if not is_home and not is_away:
            continue
        if tournament_filter and match.tournament != tournament_filter:
            continue

        team_name = match.home_team_name if is_home else match.away_team_name
        home_score, away_score = resolve_match_scores(match, schedule_index)
        scored, conceded = (home_score, away_score) if is_home else (away_score, home_score)

        matches.append(
            TeamMatchData(
                match_id=match.match_id,
                match_date=match.match_date,
                match_url=resolve_match_url(match.match_url, match.match_id, schedule_index),
                opponent=match.away_team_name if is_home else match.home_team_name,
                opponent_id=match.away_team_id if is_home else match.home_team_id,
                is_home=is_home,
                goals_scored=scored,
                goals_conceded=conceded,
                result=MatchResult.from_goals(scored, conceded),
                tournament=match.tournament,
            )
        )

        for ps in match.home_team_stats if is_home else match.away_team_stats:
            player = players.get(ps.player_id)
            if player is None:
                player = TeamPlayerData(ps.player_id, ps.player_name, ps.jersey_number)
                players[ps.player_id] = player
            player.goals += ps.goals
            player.penalty_goals += ps.penalty_goals
            player.two_minutes += ps.two_minutes
            player.matches += 1

    if not matches:
        return None

    goals_scored = sum(m.goals_scored for m in matches)
    goals_conceded = sum(m.goals_conceded for m in matches)
    return TeamDetailData(
        team_id=team_id,
        team_name=team_name,
        is_our_team=team_id in set(our_team_ids),
        matches=sorted(matches, key=lambda m: date_sort_key(m.match_date), reverse=True),
        players=sorted(players.values(), key=lambda p: p.goals, reverse=True),
        stats=TeamDetailStats(
            match_count=len(matches),
            wins=sum(1 for m in matches if m.result is MatchResult.WIN),
            draws=sum(1 for m in matches if m.result is MatchResult.DRAW),
            losses=sum(1 for m in matches if m.result is MatchResult.LOSS),
            goals_scored=goals_scored,
            goals_conceded=goals_conceded,
            goal_diff=goals_scored - goals_conceded,
            goals_per_match=goals_scored / len(matches),
        ),
    )


# Sort key for Norwegian alphabetical order (æ, ø, å after z)
_NB_ORDER = str.maketrans({"æ": "{", "ø": "|", "å": "}"})


def norwegian_sort_key(value: str) -> str:
    return value.casefold().translate(_NB_ORDER)


def find_team_tournaments(team_id: str, stats: PlayerStatsData) -> list[str]:
    tournaments = {
        m.tournament or ""
        for m in stats.match_stats
        if m.home_team_id == team_id or m.away_team_id == team_id
    }
    return sorted(tournaments, key=norwegian_sort_key)


def build_team_name_to_id_map(
    stats: PlayerStatsData, schedule: Optional[Sequence[ScheduleEntry]] = None
) -> dict[str, str]:
    mapping: dict[str, str] = {}
    for match in stats.match_stats:
        mapping.setdefault(match.home_team_name, match.home_team_id)
        mapping.setdefault(match.away_team_name, match.away_team_id)

    for entry in schedule or ():
        for name, url in ((entry.home_team, entry.home_team_url), (entry.away_team, entry.away_team_url)):
            if not name or name in mapping:
                continue
            team_id = extract_query_id(url, "lagid")
            if team_id:
                mapping[name] = team_id
    return mapping


def normalize_table_team_name(team_name: str) -> str:
    """Strip the "(D)" / "(Trukket)" markers used in league tables"""
    name = team_name.rstrip()
    for marker in ("(D)", "(Trukket)"):
        if name.endswith(marker):
            name = name[: -len(marker)].rstrip()
    return name.strip()


def lookup_team_id(team_name: str, name_to_id: Mapping[str, str]) -> Optional[str]:
    return name_to_id.get(normalize_table_team_name(team_name))


__all__ = [
    "MatchResult",
    "TeamMatchData",
    "TeamPlayerData",
    "TeamDetailStats",
    "TeamDetailData",
    "parse_result_string",
    "resolve_match_scores",
    "resolve_match_url",
    "build_team_detail_data",
    "find_team_tournaments",
    "build_team_name_to_id_map",
    "normalize_table_team_name",
    "lookup_team_id",
]
