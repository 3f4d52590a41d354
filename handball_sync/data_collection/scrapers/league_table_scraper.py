"""
Tabellen-Scraping (Reiter "Tabell" einer Turnierseite).

Derselbe Parser verarbeitet die im Browser gerenderte Seite und das statische
HTML, das handball.no auf einen einfachen HTTP-Request liefert.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Mapping, Optional

import requests

from ...common.http import fetch_html
from ...common.parsing import clean_text, parse_leading_int, parse_stat_number
from ...common.playwright_utils import PageSnapshot
from ...common.scraper_utils import is_cup
from ...core.config import Settings, settings as default_settings
from ...domain.contracts import ScrapeFailure
from ...domain.models import LeagueTable, TableRow
from ..progress import NullProgress, ProgressChannel
from .base import PageProvider, PageScraper

MIN_TABLE_CELLS = 7


def parse_tournament_name(raw: Optional[str]) -> Optional[str]:
    # "Turnering, Regionserien G14 | handball.no" -> "Regionserien G14"
    name = clean_text(raw)
    if not name:
        return None
    if "|" in name:
        name = name.split("|")[0].strip()
    if name.startswith("Turnering,"):
        name = name[len("Turnering,"):].strip()
    return name or None


def _parse_goals(text: Optional[str]) -> tuple[int, int]:
    parts = (text or "").split("-")
    goals_for = parse_leading_int(parts[0]) if parts else None
    goals_against = parse_leading_int(parts[1]) if len(parts) > 1 else None
    return goals_for or 0, goals_against or 0


def parse_table_rows(soup) -> list[TableRow]:
    """Rows of the first standings table (header mentions "lag" and "mål")."""
    for table in soup.find_all("table"):
        if table.get("role") == "presentation":
            continue
        header = table.find("thead")
        header_row = header.find("tr") if header else table.find("tr")
        header_text = (header_row.get_text(" ") if header_row else "").lower()
        if "lag" not in header_text or "mål" not in header_text:
            continue

        body = table.find("tbody")
        body_rows = body.find_all("tr") if body and body.find_all("tr") else table.find_all("tr")

        rows: list[TableRow] = []
        for idx, tr in enumerate(body_rows):
            if tr.find("th"):
                continue
            cells = [c.get_text(" ").strip() for c in tr.find_all("td")]
            if len(cells) < MIN_TABLE_CELLS:
                continue
            team = clean_text(cells[1])
            if not team:
                continue

            position = parse_stat_number(cells[0])
            goals_for, goals_against = _parse_goals(cells[6] or cells[5])
            points = parse_stat_number(cells[7]) if len(cells) > 7 else 0
            if points <= 0:
                points = parse_stat_number(cells[-1])

            rows.append(
                TableRow(
                    position=position if position > 0 else idx + 1,
                    team=team,
                    played=parse_stat_number(cells[2]),
                    won=parse_stat_number(cells[3]),
                    drawn=parse_stat_number(cells[4]),
                    lost=parse_stat_number(cells[5]),
                    goals_for=goals_for,
                    goals_against=goals_against,
                    points=points,
                )
            )
        if rows:
            return rows
    return []


def extract_league_table(snapshot: PageSnapshot, tournament_url: str) -> Optional[LeagueTable]:
    soup = snapshot.soup
    heading = soup.select_one("h1, .tournament-name, title")
    name = parse_tournament_name(heading.get_text() if heading else None)
    if not name:
        return None
    rows = parse_table_rows(soup)
    if not rows:
        return None
    return LeagueTable(tournament_name=name, tournament_url=tournament_url, rows=rows)


def merge_tables(existing: list[LeagueTable], fresh: list[LeagueTable]) -> list[LeagueTable]:
    """Replace tables by tournament URL, append unseen ones; order of ``existing`` is kept."""
    by_url = {t.tournament_url: t for t in fresh}
    merged = [by_url.pop(t.tournament_url, t) for t in existing]
    merged.extend(t for t in fresh if t.tournament_url in by_url)
    return merged


class LeagueTableScraper(PageScraper):
    """Scraper für Tabellen der Ligaturniere (Cups haben keine Tabelle)"""

    def __init__(self, client: PageProvider, settings: Optional[Settings] = None):
        super().__init__(client, "league_tables", settings)

    async def scrape_league_table(self, tournament_url: str) -> Optional[LeagueTable]:
        async with self.loaded_page(tournament_url, 0) as page:
            await page.click("text=Tabell", self.settings.click_timeout_ms)
            await page.wait(self.settings.table_render_wait_ms)
            return await page.evaluate(lambda s: extract_league_table(s, tournament_url))

    async def scrape_tables(
        self, tournaments: Mapping[str, str], progress: Optional[ProgressChannel] = None
    ) -> tuple[list[LeagueTable], list[ScrapeFailure]]:
        progress = progress or NullProgress()
        leagues = [(name, url) for name, url in tournaments.items() if not is_cup(name)]
        progress.emit("tables", f"Scraping {len(leagues)} tables...")

        async def work(entry: tuple[str, str]) -> Optional[LeagueTable]:
            table = await self.scrape_league_table(entry[1])
            progress.emit("tables", f"✓ {entry[0]}")
            return table

        done, failures = await self.run_chunked(
            "table", leagues, self.settings.discovery_concurrency, work, label=lambda e: e[0]
        )
        return [table for _, table in done if table is not None], failures


class LeagueTableFetcher:
    """HTTP-Variante: lädt ausgewählte Tabellen ohne Browser neu"""

    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self.settings = settings or default_settings
        self.session = session or requests.Session()
        self.logger = logging.getLogger("collector.league_tables")

    def parse(self, html: str, tournament_url: str) -> Optional[LeagueTable]:
        snapshot = PageSnapshot(url=tournament_url, html=html)
        return extract_league_table(snapshot, tournament_url)

    def fetch_league_table(self, tournament_url: str) -> Optional[LeagueTable]:
        try:
            html = fetch_html(
                tournament_url,
                timeout=self.settings.http_timeout,
                retries=self.settings.http_retries,
                backoff=self.settings.http_backoff,
                user_agent=self.settings.user_agent,
                session=self.session,
            )
        except requests.RequestException as e:
            self.logger.warning(f"Failed to fetch {tournament_url}: {e}")
            return None
        return self.parse(html, tournament_url)

    async def fetch_tables(self, tournaments: Mapping[str, str]) -> list[LeagueTable]:
        """Sequential fetch of ``{url: name}`` with a courtesy delay between requests"""
        tables: list[LeagueTable] = []
        entries = list(tournaments.items())
        for i, (url, name) in enumerate(entries):
            self.logger.info(f"Henter tabell for: {name}")
            table = await asyncio.to_thread(self.fetch_league_table, url)
            if table:
                tables.append(table)
                self.logger.info(f"{len(table.rows)} lag i tabellen")
            else:
                self.logger.info(f"Ingen tabell funnet for {name}")
            if i < len(entries) - 1:
                await asyncio.sleep(self.settings.table_fetch_delay_ms / 1000)
        return tables


__all__ = [
    "LeagueTableScraper",
    "LeagueTableFetcher",
    "extract_league_table",
    "parse_table_rows",
    "parse_tournament_name",
    "merge_tables",
]
