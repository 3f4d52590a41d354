"""
Ergebnis-Backfill: holt Ergebnisse nur für Spiele, die bereits gespielt sind,
aber in terminliste.json noch kein Ergebnis haben. Alle Seiten werden
nacheinander über eine geteilte Browser-Seite mit Pause dazwischen besucht.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Sequence

from ...common.playwright_utils import NavigationError, PageSession, PageSnapshot
from ...common.scraper_utils import RESULT_LINE_PATTERN, is_cup
from ...core.config import Settings
from ...domain.contracts import MatchScore
from ...domain.models import MatchUpdateInfo, ScheduleEntry
from ...domain.schedule import needs_result_update
from ..progress import NullProgress, ProgressChannel
from .base import ExtractionError, PageProvider, PageScraper


def extract_result_scores(snapshot: PageSnapshot) -> tuple[Optional[int], Optional[int]]:
    """First two "27   (12)   Team" lines of the page text are home and away."""
    found: list[int] = []
    for line in snapshot.text.splitlines():
        m = RESULT_LINE_PATTERN.match(line.strip())
        if m:
            found.append(int(m.group(1)))
            if len(found) == 2:
                return found[0], found[1]
    return None, None


def select_stale_entries(schedule: Iterable[ScheduleEntry], now: datetime) -> list[ScheduleEntry]:
    return [entry for entry in schedule if needs_result_update(entry, now)]


@dataclass
class BackfillReport:
    results_updated: list[MatchUpdateInfo] = field(default_factory=list)
    # tournament URL -> name, cup tournaments excluded
    affected_tournaments: dict[str, str] = field(default_factory=dict)
    checked: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.results_updated)


def apply_results(schedule: Sequence[ScheduleEntry], results: dict[str, MatchScore]) -> BackfillReport:
    """Write fetched scores into every schedule row with that Kampnr (in place)."""
    report = BackfillReport()
    seen: set[str] = set()
    for entry in schedule:
        score = results.get(entry.match_id)
        if score is None or score.result == "-":
            continue
        entry.score = score.result
        if entry.match_id not in seen:
            seen.add(entry.match_id)
            report.results_updated.append(
                MatchUpdateInfo(
                    kampnr=entry.match_id,
                    hjemmelag=entry.home_team,
                    bortelag=entry.away_team,
                    resultat=score.result,
                    turnering=entry.tournament or None,
                )
            )
        if entry.tournament_url and not is_cup(entry.tournament):
            report.affected_tournaments.setdefault(entry.tournament_url, entry.tournament)
    return report


class ResultBackfillService(PageScraper):
    """Holt fehlende Ergebnisse für bereits gespielte Spiele"""

    def __init__(self, client: PageProvider, settings: Optional[Settings] = None):
        super().__init__(client, "result_backfill", settings)

    async def _fetch_one(self, page: PageSession, match_id: str, url: str) -> Optional[MatchScore]:
        try:
            await page.navigate(url, self.settings.result_timeout_ms)
            await page.wait(self.settings.match_render_wait_ms)
            home, away = await page.evaluate(extract_result_scores)
        except (NavigationError, ExtractionError) as e:
            self.logger.warning(f"No result for {match_id}: {e}")
            return None
        return MatchScore(match_id=match_id, home_score=home, away_score=away)

    async def fetch_results(
        self, entries: Sequence[ScheduleEntry], progress: Optional[ProgressChannel] = None
    ) -> dict[str, MatchScore]:
        """Kampnr -> score for every entry whose page shows a final result"""
        progress = progress or NullProgress()
        targets: dict[str, str] = {}
        for entry in entries:
            if entry.match_url:
                targets.setdefault(entry.match_id, entry.match_url)
        results: dict[str, MatchScore] = {}
        if not targets:
            return results

        items = list(targets.items())
        async with self.client.page() as page:
            # cookie overlay only needs to go once per page
            try:
                await page.navigate(items[0][1], self.settings.result_timeout_ms)
                await page.dismiss_cookie_banner()
            except NavigationError as e:
                self.logger.warning(f"First navigation failed: {e}")

            for i, (match_id, url) in enumerate(items):
                progress.emit("results", match_id, i + 1, len(items))
                score = await self._fetch_one(page, match_id, url)
                if score is not None and score.result != "-":
                    results[match_id] = score
                if i < len(items) - 1:
                    await page.wait(self.settings.result_delay_ms)
        return results

    async def backfill(
        self,
        schedule: Sequence[ScheduleEntry],
        now: Optional[datetime] = None,
        progress: Optional[ProgressChannel] = None,
    ) -> BackfillReport:
        stale = select_stale_entries(schedule, now or datetime.now())
        self.logger.info(f"{len(stale)} kamper mangler resultat")
        if not stale:
            return BackfillReport()
        results = await self.fetch_results(stale, progress)
        report = apply_results(schedule, results)
        report.checked = len(stale)
        self.logger.info(f"Oppdaterte {len(report.results_updated)} resultater")
        return report


__all__ = [
    "ResultBackfillService",
    "BackfillReport",
    "apply_results",
    "extract_result_scores",
    "select_stale_entries",
]
