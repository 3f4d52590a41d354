"""
Spiel-Discovery für handball.no

Ermittelt, welche Spiele existieren und wo ihre Detailseiten liegen, entweder
über die Mannschaftsseiten der konfigurierten Teams oder über Turnierseiten.
Turnierseiten zeigen ihre Spiellisten hinter Reitern, deren Beschriftung je
nach Turnier variiert; die Reiter werden in fester Reihenfolge probiert, bis
einer Zeilen liefert.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Mapping, Optional, Sequence, TypeVar

from ...common.parsing import absolute_url, clean_text, extract_query_id
from ...common.playwright_utils import PageSession, PageSnapshot
from ...common.scraper_utils import (
    MATCH_ID_PATTERN,
    has_score,
    is_match_url,
    is_team_url,
    is_tournament_url,
)
from ...core.config import Settings, TeamConfig
from ...domain.contracts import (
    DiscoveryResult,
    MatchLink,
    PlayedMatch,
    PlayedMatchDiscovery,
    TeamPageResult,
    TournamentTeam,
)
from ..progress import NullProgress, ProgressChannel
from .base import ExtractionError, PageProvider, PageScraper

T = TypeVar("T")

TAB_FALLBACK_SELECTORS: tuple[str, ...] = (
    'text="Alle kamper"',
    'text="Kamper"',
    'text="Siste kamper"',
    'text="Terminliste"',
)

logger = logging.getLogger("scraper.match_discovery")


# =============================================================================
# EXTRACTORS (pure functions over a rendered page)
# =============================================================================


def _match_id_in(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    m = MATCH_ID_PATTERN.match(text.strip())
    return m.group(0) if m else None


def extract_team_page_rows(snapshot: PageSnapshot, base_url: str) -> dict[str, MatchLink]:
    """Match rows of a rendered team/tournament listing keyed by Kampnr (first occurrence wins)."""
    links: dict[str, MatchLink] = {}
    for row in snapshot.soup.find_all("tr"):
        cells = row.find_all("td")
        if not cells:
            continue

        match_id = None
        match_url = home_url = away_url = tournament_url = ""
        for cell in cells:
            found = _match_id_in(cell.get_text())
            if found:
                match_id = found
            for a in cell.find_all("a", href=True):
                href = a["href"]
                if is_match_url(href):
                    match_url = absolute_url(href, base_url)
                elif is_team_url(href):
                    if not home_url:
                        home_url = absolute_url(href, base_url)
                    elif not away_url:
                        away_url = absolute_url(href, base_url)
                elif is_tournament_url(href) and not tournament_url:
                    tournament_url = absolute_url(href, base_url)

        if not match_id or match_id in links:
            continue
        links[match_id] = MatchLink(
            match_id=match_id,
            match_url=match_url,
            home_team_url=home_url,
            away_team_url=away_url,
            tournament_url=tournament_url,
            has_been_played=has_score(row.get_text(" ")),
        )
    return links


def extract_tournament_links(snapshot: PageSnapshot, base_url: str) -> dict[str, str]:
    """All anchors carrying a turnid parameter, deduplicated by display name."""
    tournaments: dict[str, str] = {}
    for a in snapshot.soup.select('a[href*="turnid="]'):
        name = clean_text(a.get_text())
        if not name or name in tournaments:
            continue
        tournaments[name] = absolute_url(a["href"], base_url)
    return tournaments


def extract_played_matches(snapshot: PageSnapshot, base_url: str) -> list[PlayedMatch]:
    """Rows with a score; Kampnr + detail URL, first occurrence wins."""
    results: list[PlayedMatch] = []
    seen: set[str] = set()
    for row in snapshot.soup.find_all("tr"):
        if not has_score(row.get_text(" ")):
            continue

        match_id = match_url = ""
        # Preferred: the Kampnr itself is the link to the match page
        for a in row.find_all("a", href=True):
            text = (a.get_text() or "").strip()
            found = _match_id_in(text)
            if found and "/kamp/" in a["href"]:
                match_id = found
                match_url = absolute_url(a["href"], base_url)

        if not match_id or not match_url:
            for cell in row.find_all("td"):
                found = _match_id_in(cell.get_text())
                if found:
                    match_id = found
                for a in cell.find_all("a", href=True):
                    if is_match_url(a["href"]):
                        match_url = absolute_url(a["href"], base_url)

        if match_id and match_url and match_id not in seen:
            seen.add(match_id)
            results.append(PlayedMatch(match_id=match_id, match_url=match_url))
    return results


def extract_tournament_teams(snapshot: PageSnapshot, base_url: str) -> list[TournamentTeam]:
    teams: list[TournamentTeam] = []
    seen: set[str] = set()
    for a in snapshot.soup.select('a[href*="lagid="]'):
        name = clean_text(a.get_text())
        if not name:
            continue
        team_id = extract_query_id(a["href"], "lagid")
        if not team_id or team_id in seen:
            continue
        seen.add(team_id)
        teams.append(TournamentTeam(team_name=name, team_url=absolute_url(a["href"], base_url), team_id=team_id))
    return teams


# =============================================================================
# TAB FALLBACK
# =============================================================================


async def extract_with_tab_fallback(
    page: PageSession,
    extractor: Callable[[PageSnapshot], list[T]],
    *,
    selectors: Sequence[str] = TAB_FALLBACK_SELECTORS,
    click_timeout_ms: Optional[int] = None,
    render_wait_ms: int = 3000,
) -> list[T]:
    """Try each tab in order; the first one whose extraction yields rows wins.

    A tab that cannot be clicked, or yields nothing, advances to the next one.
    Exhausting all tabs returns an empty list.
    """
    for selector in selectors:
        if not await page.click(selector, click_timeout_ms):
            logger.debug(f"Tab {selector} not available")
            continue
        await page.wait(render_wait_ms)
        try:
            items = await page.evaluate(extractor)
        except ExtractionError as e:
            logger.debug(f"Extraction after {selector} failed: {e}")
            items = []
        if items:
            logger.debug(f"Tab {selector} yielded {len(items)} rows")
            return items
    return []


# =============================================================================
# SERVICE
# =============================================================================


class MatchDiscoveryService(PageScraper):
    """Scraper für Mannschafts- und Turnierlisten von handball.no"""

    def __init__(self, client: PageProvider, settings: Optional[Settings] = None):
        super().__init__(client, "match_discovery", settings)

    def team_url(self, team_id: str) -> str:
        return f"{self.base_url}/system/kamper/lag/?lagid={team_id}#allmatches"

    @property
    def concurrency(self) -> int:
        return self.settings.discovery_concurrency

    # -------------------------------------------------------------- team pages

    async def scrape_team_page(self, team_id: str) -> TeamPageResult:
        """Match links and tournament links of one team page. Navigation errors propagate."""
        async with self.loaded_page(self.team_url(team_id), self.settings.listing_render_wait_ms) as page:
            links = await page.evaluate(lambda s: extract_team_page_rows(s, self.base_url))
            tournaments = await page.evaluate(lambda s: extract_tournament_links(s, self.base_url))
        self.logger.debug(f"Team {team_id}: {len(links)} matches, {len(tournaments)} tournaments")
        return TeamPageResult(match_links=links, tournament_links=tournaments)

    async def discover_teams(
        self, teams: Sequence[TeamConfig], progress: Optional[ProgressChannel] = None
    ) -> DiscoveryResult:
        progress = progress or NullProgress()
        progress.emit("teams", f"Scraping {len(teams)} teams...")
        result = DiscoveryResult()

        async def work(team: TeamConfig) -> TeamPageResult:
            page_result = await self.scrape_team_page(team.lagid)
            progress.emit("teams", f"✓ {team.name}")
            return page_result

        done, failures = await self.run_chunked(
            "team", list(teams), self.concurrency, work, label=lambda t: f"{t.name} ({t.lagid})"
        )
        for team, page_result in done:
            result.match_links_per_team[team.lagid] = page_result.match_links
            for name, url in page_result.tournament_links.items():
                result.tournament_links.setdefault(name, url)
        result.failures.extend(failures)
        return result

    # -------------------------------------------------------- tournament pages

    async def scrape_tournament_played_matches(self, tournament_url: str) -> list[PlayedMatch]:
        async with self.loaded_page(tournament_url, self.settings.listing_render_wait_ms) as page:
            return await extract_with_tab_fallback(
                page,
                lambda s: extract_played_matches(s, self.base_url),
                click_timeout_ms=self.settings.click_timeout_ms,
                render_wait_ms=self.settings.listing_render_wait_ms,
            )

    async def discover_played_matches_quick(
        self, tournaments: Mapping[str, str], progress: Optional[ProgressChannel] = None
    ) -> PlayedMatchDiscovery:
        """Played matches straight from every tournament page"""
        progress = progress or NullProgress()
        entries = list(tournaments.items())
        total = len(entries)
        counter = {"n": 0}

        async def work(entry: tuple[str, str]) -> list[PlayedMatch]:
            name, url = entry
            matches = await self.scrape_tournament_played_matches(url)
            counter["n"] += 1
            progress.emit("tournament", f"{name}: {len(matches)} kamper", counter["n"], total)
            return matches

        done, failures = await self.run_chunked(
            "tournament", entries, self.concurrency, work, label=lambda e: e[0]
        )
        return PlayedMatchDiscovery(matches=_dedupe(m for _, ms in done for m in ms), failures=failures)

    async def scrape_tournament_teams(self, tournament_url: str) -> list[TournamentTeam]:
        async with self.loaded_page(tournament_url, self.settings.table_render_wait_ms) as page:
            return await page.evaluate(lambda s: extract_tournament_teams(s, self.base_url))

    async def scrape_team_played_matches(self, team_id: str) -> list[PlayedMatch]:
        page_result = await self.scrape_team_page(team_id)
        return [
            PlayedMatch(match_id=match_id, match_url=link.match_url)
            for match_id, link in page_result.match_links.items()
            if link.match_url and link.has_been_played
        ]

    async def discover_played_matches_full(
        self, tournaments: Mapping[str, str], progress: Optional[ProgressChannel] = None
    ) -> PlayedMatchDiscovery:
        """Walk every team of every tournament and collect its played matches"""
        progress = progress or NullProgress()
        discovery = PlayedMatchDiscovery()

        all_teams: dict[str, TournamentTeam] = {}
        for name, url in tournaments.items():
            progress.emit("tournament", name)
            done, failures = await self.run_chunked("tournament", [url], 1, self.scrape_tournament_teams)
            discovery.failures.extend(failures)
            for _, teams in done:
                progress.emit("teams", f"{len(teams)} lag i {name}")
                for team in teams:
                    all_teams.setdefault(team.team_id, team)

        teams = list(all_teams.values())
        progress.emit("info", f"Totalt {len(teams)} unike lag å scrape")
        counter = {"n": 0}

        async def work(team: TournamentTeam) -> list[PlayedMatch]:
            matches = await self.scrape_team_played_matches(team.team_id)
            counter["n"] += 1
            progress.emit("team", f"{team.team_name}: {len(matches)} kamper", counter["n"], len(teams))
            return matches

        done, failures = await self.run_chunked(
            "team", teams, self.concurrency, work, label=lambda t: f"{t.team_name} ({t.team_id})"
        )
        discovery.failures.extend(failures)
        if failures:
            progress.emit("warning", f"{len(failures)} lag feilet")
        discovery.matches = _dedupe(m for _, ms in done for m in ms)
        progress.emit("done", f"Totalt {len(discovery.matches)} unike kamper")
        return discovery


def _dedupe(matches: Iterable[PlayedMatch]) -> list[PlayedMatch]:
    unique: dict[str, PlayedMatch] = {}
    for match in matches:
        unique.setdefault(match.match_id, match)
    return list(unique.values())


__all__ = [
    "TAB_FALLBACK_SELECTORS",
    "MatchDiscoveryService",
    "extract_team_page_rows",
    "extract_tournament_links",
    "extract_played_matches",
    "extract_tournament_teams",
    "extract_with_tab_fallback",
]
