"""Globaler Spielerkatalog, neu aufgebaut aus allen Spielberichten."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..domain.models import MatchPlayerData, Player, PlayerMatchStats


@dataclass
class TeamCount:
    team_name: str
    count: int = 0


@dataclass
class _CatalogEntry:
    id: str
    name: str
    jersey_number: Optional[int] = None
    team_counts: dict[str, TeamCount] = field(default_factory=dict)


def resolve_primary_team(team_counts: dict[str, TeamCount]) -> tuple[str, str]:
    """Team with the most matches; on a tie the team seen first stays primary."""
    primary_id, primary_name, best = "", "", 0
    for team_id, tc in team_counts.items():
        if tc.count > best:
            primary_id, primary_name, best = team_id, tc.team_name, tc.count
    return primary_id, primary_name


def _sides(match: MatchPlayerData) -> Iterable[tuple[list[PlayerMatchStats], str, str]]:
    yield match.home_team_stats, match.home_team_id, match.home_team_name
    yield match.away_team_stats, match.away_team_id, match.away_team_name


def rebuild_player_catalog(match_stats: Iterable[MatchPlayerData]) -> list[Player]:
    entries: dict[str, _CatalogEntry] = {}

    for match in match_stats:
        for stats, team_id, team_name in _sides(match):
            for stat in stats:
                entry = entries.get(stat.player_id)
                if entry is None:
                    entry = _CatalogEntry(id=stat.player_id, name=stat.player_name)
                    entries[stat.player_id] = entry
                if stat.jersey_number is not None:
                    entry.jersey_number = stat.jersey_number
                tc = entry.team_counts.get(team_id)
                if tc is None:
                    entry.team_counts[team_id] = TeamCount(team_name=team_name, count=1)
                else:
                    tc.count += 1

    players = []
    for entry in entries.values():
        primary_id, primary_name = resolve_primary_team(entry.team_counts)
        players.append(
            Player(
                id=entry.id,
                name=entry.name,
                jersey_number=entry.jersey_number,
                team_ids=list(entry.team_counts),
                team_names=[tc.team_name for tc in entry.team_counts.values()],
                primary_team_id=primary_id,
                primary_team_name=primary_name,
            )
        )
    return players


__all__ = ["rebuild_player_catalog", "resolve_primary_team", "TeamCount"]
