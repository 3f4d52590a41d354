"""
Spielerstatistik pro Spiel (Seite "kampoppgjør" von handball.no).

Ein Datensatz pro beendetem Spiel: beide Mannschaften, Endstand, Datum,
Turnier und die zwei Spielerstatistik-Tabellen (zuerst Heim, dann Gast).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional, Sequence

from bs4 import BeautifulSoup

from ...common.parsing import clean_text, extract_query_id, parse_leading_int, parse_stat_number
from ...common.playwright_utils import PageSnapshot
from ...common.scraper_utils import MATCH_DATE_PATTERN, generate_player_id
from ...core.config import Settings
from ...domain.contracts import PlayedMatch, StatsScrapeResult
from ...domain.models import MatchPlayerData, PlayerMatchStats
from ..progress import NullProgress, ProgressChannel
from .base import ExtractionError, PageProvider, PageScraper

_FIRST_NUMBER = re.compile(r"(\d+)")


@dataclass
class RawBoxScore:
    player_name: str
    jersey_number: Optional[int]
    goals: int = 0
    penalty_goals: int = 0
    two_minutes: int = 0
    yellow_cards: int = 0
    red_cards: int = 0


@dataclass
class RawMatchPage:
    home_team_name: str = ""
    home_team_id: str = ""
    away_team_name: str = ""
    away_team_id: str = ""
    home_score: int = 0
    away_score: int = 0
    match_date: str = ""
    tournament: str = ""
    home_stats: list[RawBoxScore] = field(default_factory=list)
    away_stats: list[RawBoxScore] = field(default_factory=list)

    def add_team(self, name: str, team_id: str, score: Optional[int] = None) -> None:
        if not self.home_team_name:
            self.home_team_name, self.home_team_id = name, team_id
            if score is not None:
                self.home_score = score
        elif not self.away_team_name:
            self.away_team_name, self.away_team_id = name, team_id
            if score is not None:
                self.away_score = score


def _parse_score(text: Optional[str]) -> int:
    m = _FIRST_NUMBER.search(text or "")
    return int(m.group(1)) if m else 0


def _team_link(tag) -> Optional[tuple[str, str]]:
    if tag is None:
        return None
    name = clean_text(tag.get_text())
    team_id = extract_query_id(tag.get("href"), "lagid")
    if not name or not team_id:
        return None
    return name, team_id


def _extract_teams(soup: BeautifulSoup, result: RawMatchPage) -> None:
    # Primary: header cells holding a team link, the score sits in the th before it
    for table in soup.select('table[width="100%"]'):
        headers = table.find_all("th")
        for idx, th in enumerate(headers):
            team = _team_link(th.select_one('a[href*="lagid="]'))
            if team is None or idx == 0:
                continue
            result.add_team(*team, score=_parse_score(headers[idx - 1].get_text()))

    if not result.home_team_name:
        seen: set[str] = set()
        for a in soup.select('a[href*="lagid="]'):
            team = _team_link(a)
            if team is None or team[1] in seen:
                continue
            seen.add(team[1])
            result.add_team(*team)

    if result.home_score == 0:
        stats_table = soup.select_one("table.stats-table")
        if stats_table is not None:
            for idx, row in enumerate(stats_table.select("tbody tr")[:2]):
                cells = row.find_all("td")
                if len(cells) < 2:
                    continue
                score = parse_stat_number(cells[1].get_text().strip())
                if idx == 0:
                    result.home_score = score
                else:
                    result.away_score = score


def _parse_roster(table) -> list[RawBoxScore]:
    players: list[RawBoxScore] = []
    for row in table.find_all("tr"):
        cells = [c.get_text().strip() for c in row.find_all("td")]
        if len(cells) < 6:
            continue
        nr_text = cells[0]
        if not nr_text or "leder" in nr_text.lower():
            continue
        nr = parse_leading_int(nr_text)
        if nr is None:
            continue
        name = clean_text(cells[1])
        if not name or name.lower() == "total" or name == "Spiller":
            continue
        players.append(
            RawBoxScore(
                player_name=name,
                jersey_number=nr,
                goals=parse_stat_number(cells[2]),
                penalty_goals=parse_stat_number(cells[3]),
                yellow_cards=parse_stat_number(cells[4]),
                two_minutes=parse_stat_number(cells[5]),
                red_cards=parse_stat_number(cells[6]) if len(cells) > 6 else 0,
            )
        )
    return players


def _distinct_player_tables(soup: BeautifulSoup) -> list:
    """Player tables are rendered twice (desktop/mobile); keep one per first player."""
    unique: dict[str, object] = {}
    for table in soup.select("table.player-table"):
        rows = table.find_all("tr")
        if len(rows) < 2:
            continue
        cells = rows[1].find_all("td")
        first_player = cells[1].get_text().strip() if len(cells) > 1 else ""
        if first_player and first_player not in unique:
            unique[first_player] = table
    return list(unique.values())


def extract_match_page(snapshot: PageSnapshot) -> RawMatchPage:
    soup = snapshot.soup
    result = RawMatchPage()
    _extract_teams(soup, result)

    m = MATCH_DATE_PATTERN.search(snapshot.text) or MATCH_DATE_PATTERN.search(snapshot.html)
    if m:
        result.match_date = m.group(1)

    tournament = soup.select_one('a[href*="turnid="]')
    if tournament is not None:
        result.tournament = clean_text(tournament.get_text()) or ""

    for idx, table in enumerate(_distinct_player_tables(soup)[:2]):
        roster = _parse_roster(table)
        if not roster:
            continue
        if idx == 0:
            result.home_stats = roster
        else:
            result.away_stats = roster
    return result


def _to_player_stats(rows: Sequence[RawBoxScore]) -> list[PlayerMatchStats]:
    return [
        PlayerMatchStats(
            player_id=generate_player_id(r.player_name),
            player_name=r.player_name,
            jersey_number=r.jersey_number,
            goals=r.goals,
            penalty_goals=r.penalty_goals,
            two_minutes=r.two_minutes,
            yellow_cards=r.yellow_cards,
            red_cards=r.red_cards,
        )
        for r in rows
    ]


def build_match_player_data(raw: RawMatchPage, match_id: str, match_url: str) -> MatchPlayerData:
    """Validate the raw page data; half-populated pages raise ExtractionError."""
    if not raw.home_team_name or not raw.away_team_name:
        raise ExtractionError(f"Could not extract team names from {match_url}")
    if not raw.home_stats and not raw.away_stats:
        raise ExtractionError(f"No player stats found in {match_url}")
    return MatchPlayerData(
        match_id=match_id,
        match_date=raw.match_date,
        match_url=match_url,
        home_team_id=raw.home_team_id,
        home_team_name=raw.home_team_name,
        away_team_id=raw.away_team_id,
        away_team_name=raw.away_team_name,
        home_score=raw.home_score,
        away_score=raw.away_score,
        tournament=raw.tournament,
        home_team_stats=_to_player_stats(raw.home_stats),
        away_team_stats=_to_player_stats(raw.away_stats),
    )


class PlayerStatsScraper(PageScraper):
    """Scraper für Spielberichtsseiten ("kampoppgjør")"""

    def __init__(self, client: PageProvider, settings: Optional[Settings] = None):
        super().__init__(client, "player_stats", settings)

    async def scrape_match_stats(self, match_url: str, match_id: str) -> Optional[MatchPlayerData]:
        """Stats of one match, or None when the page has none (or could not be read)."""

        async def scrape() -> MatchPlayerData:
            async with self.loaded_page(match_url, self.settings.match_render_wait_ms) as page:
                raw = await page.evaluate(extract_match_page)
            return build_match_player_data(raw, match_id, match_url)

        return await self.guarded(f"Match {match_id}", scrape, None)

    async def scrape_many(
        self,
        matches: Sequence[PlayedMatch],
        progress: Optional[ProgressChannel] = None,
    ) -> StatsScrapeResult:
        """Scrape ``matches`` with bounded concurrency.

        Pages without stats end up in ``no_stats``; unexpected errors are only
        logged, so those matches are retried on the next run.
        """
        progress = progress or NullProgress()
        result = StatsScrapeResult()
        total = len(matches)
        counter = {"n": 0}

        async def work(match: PlayedMatch) -> Optional[MatchPlayerData]:
            data = await self.scrape_match_stats(match.match_url, match.match_id)
            counter["n"] += 1
            progress.emit("stats", match.match_id, counter["n"], total)
            return data

        done, failures = await self.run_chunked(
            "match", list(matches), self.settings.stats_concurrency, work, label=lambda m: m.match_id
        )
        for match, data in done:
            if data is not None:
                result.results.append(data)
            else:
                result.no_stats.append(match.match_id)
        result.failures.extend(failures)
        return result


__all__ = [
    "PlayerStatsScraper",
    "RawMatchPage",
    "RawBoxScore",
    "extract_match_page",
    "build_match_player_data",
]
