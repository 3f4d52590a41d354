"""
Analytics Package für die Handball Sync Pipeline

Spielerkatalog, Spieler-Aggregate und Mannschaftsansicht, jeweils vollständig
aus der Spielstatistik neu berechnet.
"""

from .player_aggregates import filter_by_teams, filter_by_tournament, generate_aggregates
from .player_catalog import rebuild_player_catalog
from .team_stats import build_team_detail_data

__all__ = [
    "generate_aggregates",
    "filter_by_teams",
    "filter_by_tournament",
    "rebuild_player_catalog",
    "build_team_detail_data",
]
