"""
Spieler-Aggregate: kumulierte Summen, Aufschlüsselung pro Turnier und
Tore pro Spiel, vollständig aus der Spielstatistik berechnet.

Alles hier sind reine Funktionen über ihre Eingaben; zwischen Aufrufen
wird nichts zwischengespeichert.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from ..common.parsing import date_sort_key, parse_norwegian_date
from ..domain.models import (
    MatchPlayerData,
    Player,
    PlayerAggregateStats,
    PlayerAggregatesData,
    PlayerMatchStats,
    PlayerStatsData,
    TournamentBreakdown,
)
from .player_catalog import TeamCount, resolve_primary_team

UNKNOWN_TOURNAMENT = "Ukjent"

STAT_FIELDS = ("goals", "penalty_goals", "two_minutes", "yellow_cards", "red_cards")


def round_half_up(value: float, digits: int = 2) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def goals_per_match(goals: int, matches: int) -> float:
    return round_half_up(goals / matches) if matches > 0 else 0


def _date_key(value: str) -> Optional[tuple[int, int, int]]:
    d = parse_norwegian_date(value)
    return (d.year, d.month, d.day) if d else None


@dataclass
class _Totals:
    goals: int = 0
    penalty_goals: int = 0
    two_minutes: int = 0
    yellow_cards: int = 0
    red_cards: int = 0
    matches: int = 0

    def add(self, stat: PlayerMatchStats) -> None:
        for name in STAT_FIELDS:
            setattr(self, name, getattr(self, name) + getattr(stat, name))
        self.matches += 1


@dataclass
class _PlayerAccumulator:
    name: str
    jersey_number: Optional[int]
    last_jersey_date: str
    totals: _Totals = field(default_factory=_Totals)
    team_counts: dict[str, TeamCount] = field(default_factory=dict)
    by_tournament: dict[str, _Totals] = field(default_factory=dict)

    def update_jersey(self, number: Optional[int], match_date: str) -> None:
        # equal dates keep the first-seen number
        if number is None or not match_date:
            return
        current = _date_key(self.last_jersey_date) if self.last_jersey_date else None
        candidate = _date_key(match_date)
        if current is None or (candidate is not None and candidate > current):
            self.jersey_number = number
            self.last_jersey_date = match_date


def tournament_key(tournament: Optional[str]) -> str:
    return tournament if tournament else UNKNOWN_TOURNAMENT


def generate_aggregates(match_stats: Iterable[MatchPlayerData]) -> PlayerAggregatesData:
    players: dict[str, _PlayerAccumulator] = {}

    for match in match_stats:
        sides = (
            (match.home_team_stats, match.home_team_id, match.home_team_name),
            (match.away_team_stats, match.away_team_id, match.away_team_name),
        )
        for stats, team_id, team_name in sides:
            for stat in stats:
                acc = players.get(stat.player_id)
                if acc is None:
                    acc = _PlayerAccumulator(
                        name=stat.player_name,
                        jersey_number=stat.jersey_number,
                        last_jersey_date=match.match_date,
                    )
                    players[stat.player_id] = acc

                tc = acc.team_counts.setdefault(team_id, TeamCount(team_name=team_name))
                tc.count += 1
                acc.totals.add(stat)
                acc.update_jersey(stat.jersey_number, match.match_date)
                acc.by_tournament.setdefault(tournament_key(match.tournament), _Totals()).add(stat)

    aggregates = [_to_aggregate(player_id, acc) for player_id, acc in players.items()]
    # list.sort is stable: ties keep first-seen order
    aggregates.sort(key=lambda a: a.total_goals, reverse=True)
    return PlayerAggregatesData(aggregates=aggregates)


def _to_aggregate(player_id: str, acc: _PlayerAccumulator) -> PlayerAggregateStats:
    primary_id, primary_name = resolve_primary_team(acc.team_counts)
    t = acc.totals
    return PlayerAggregateStats(
        player_id=player_id,
        player_name=acc.name,
        team_id=primary_id,
        team_name=primary_name,
        team_ids=list(acc.team_counts),
        team_names=[tc.team_name for tc in acc.team_counts.values()],
        jersey_number=acc.jersey_number,
        total_goals=t.goals,
        total_penalty_goals=t.penalty_goals,
        total_two_minutes=t.two_minutes,
        total_yellow_cards=t.yellow_cards,
        total_red_cards=t.red_cards,
        matches_played=t.matches,
        goals_per_match=goals_per_match(t.goals, t.matches),
        by_tournament=[
            TournamentBreakdown(
                tournament=name,
                goals=sub.goals,
                penalty_goals=sub.penalty_goals,
                two_minutes=sub.two_minutes,
                yellow_cards=sub.yellow_cards,
                red_cards=sub.red_cards,
                matches=sub.matches,
            )
            for name, sub in acc.by_tournament.items()
        ],
    )


def filter_by_teams(
    aggregates: Sequence[PlayerAggregateStats], team_ids: Iterable[str]
) -> list[PlayerAggregateStats]:
    wanted = set(team_ids)
    return [a for a in aggregates if any(tid in wanted for tid in a.team_ids)]


def filter_by_tournament(
    aggregates: Sequence[PlayerAggregateStats], tournament: str
) -> list[PlayerAggregateStats]:
    """Totals re-projected to one tournament; players who never played it are dropped."""
    projected = []
    for a in aggregates:
        sub = next((t for t in a.by_tournament if t.tournament == tournament), None)
        if sub is None:
            continue
        projected.append(
            a.model_copy(
                update={
                    "total_goals": sub.goals,
                    "total_penalty_goals": sub.penalty_goals,
                    "total_two_minutes": sub.two_minutes,
                    "total_yellow_cards": sub.yellow_cards,
                    "total_red_cards": sub.red_cards,
                    "matches_played": sub.matches,
                    "goals_per_match": goals_per_match(sub.goals, sub.matches),
                }
            )
        )
    return projected


# --- Queries over player-stats.json ---


def get_team_ids(data: PlayerStatsData) -> list[str]:
    seen: dict[str, None] = {}
    for match in data.match_stats:
        seen.setdefault(match.home_team_id)
        seen.setdefault(match.away_team_id)
    return list(seen)


def get_tournaments(data: PlayerStatsData) -> list[str]:
    return sorted({m.tournament for m in data.match_stats if m.tournament})


def get_player(data: PlayerStatsData, player_id: str) -> Optional[Player]:
    return next((p for p in data.players if p.id == player_id), None)


@dataclass
class PlayerMatchLine:
    match: MatchPlayerData
    stats: PlayerMatchStats
    is_home: bool


def get_player_matches(data: PlayerStatsData, player_id: str) -> list[PlayerMatchLine]:
    """All matches of a player, newest first"""
    lines: list[PlayerMatchLine] = []
    for match in data.match_stats:
        home = next((s for s in match.home_team_stats if s.player_id == player_id), None)
        if home is not None:
            lines.append(PlayerMatchLine(match=match, stats=home, is_home=True))
            continue
        away = next((s for s in match.away_team_stats if s.player_id == player_id), None)
        if away is not None:
            lines.append(PlayerMatchLine(match=match, stats=away, is_home=False))
    lines.sort(key=lambda line: date_sort_key(line.match.match_date), reverse=True)
    return lines


__all__ = [
    "UNKNOWN_TOURNAMENT",
    "generate_aggregates",
    "filter_by_teams",
    "filter_by_tournament",
    "get_team_ids",
    "get_tournaments",
    "get_player",
    "get_player_matches",
    "goals_per_match",
    "PlayerMatchLine",
]
