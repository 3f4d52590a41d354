"""
Browser-basierte Scraper für handball.no
"""

from .base import ExtractionError, PageScraper
from .league_table_scraper import LeagueTableFetcher, LeagueTableScraper
from .match_discovery import MatchDiscoveryService
from .player_stats_scraper import PlayerStatsScraper
from .result_backfill import ResultBackfillService

__all__ = [
    "ExtractionError",
    "PageScraper",
    "LeagueTableFetcher",
    "LeagueTableScraper",
    "MatchDiscoveryService",
    "PlayerStatsScraper",
    "ResultBackfillService",
]
