"""
Update Orchestrator für die Handball Sync Pipeline

Führt einen kompletten Lauf aus: offizielle Spielpläne + Discovery-Scraping,
Match-Index, fehlende Resultate, Spielerstatistik in Batches mit Checkpoint
nach jedem Batch, und zum Schluss Katalog und Aggregate.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import AsyncIterator, Awaitable, Callable, Iterable, Optional

from ..analytics.player_aggregates import generate_aggregates
from ..analytics.player_catalog import rebuild_player_catalog
from ..analytics.team_stats import TeamDetailData, build_team_detail_data
from ..common.playwright_utils import PageAutomationClient
from ..core.config import ConfigurationError, Settings, TeamConfig, load_teams, settings as default_settings
from ..domain.contracts import (
    DiscoveryResult,
    PlayedMatch,
    PlayedMatchDiscovery,
    ProgressEvent,
    ScrapeFailure,
)
from ..domain.models import (
    CachedMatch,
    MatchCache,
    PlayerStatsData,
    ScheduleEntry,
    TournamentRef,
    UpdateSummary,
    utc_now_iso,
)
from ..domain.schedule import (
    build_schedule_index,
    combine_played_matches,
    extract_match_id_from_url,
    sort_schedule,
)
from ..storage.file_store import ArtifactStore
from ..storage.match_index import MatchIndexStore
from .collectors.schedule_feed import ScheduleFeedCollector, to_schedule_entries
from .progress import NullProgress, ProgressChannel
from .scrapers.league_table_scraper import LeagueTableFetcher, LeagueTableScraper, merge_tables
from .scrapers.match_discovery import MatchDiscoveryService
from .scrapers.player_stats_scraper import PlayerStatsScraper
from .scrapers.result_backfill import BackfillReport, ResultBackfillService


class InvalidMatchUrlError(ValueError):
    """URL ohne matchid-Parameter"""


@dataclass
class UpdateOptions:
    force_stats: bool = False
    rescrape_ids: tuple[str, ...] = ()
    refresh_matches: bool = False
    quick: bool = False
    full: bool = False

    @property
    def mode(self) -> str:
        if self.full:
            return "full"
        return "quick" if self.quick else "default"


@dataclass
class UpdateReport:
    summary: UpdateSummary = field(default_factory=UpdateSummary)
    failures: list[ScrapeFailure] = field(default_factory=list)
    schedule_count: int = 0
    index_size: int = 0
    stats_count: int = 0
    players_count: int = 0
    aggregates_count: int = 0

    @property
    def failure_count(self) -> int:
        return len(self.failures)


class UpdateOrchestrator:
    """Orchestriert einen Synchronisationslauf gegen handball.no"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        store: Optional[ArtifactStore] = None,
        client=None,
        feed: Optional[ScheduleFeedCollector] = None,
        discovery: Optional[MatchDiscoveryService] = None,
        table_scraper: Optional[LeagueTableScraper] = None,
        table_fetcher: Optional[LeagueTableFetcher] = None,
        backfill: Optional[ResultBackfillService] = None,
        stats_scraper: Optional[PlayerStatsScraper] = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings or default_settings
        self.logger = logging.getLogger("update_orchestrator")
        self.store = store or ArtifactStore(self.settings.data_dir)
        self._owns_client = client is None
        self.client = client or PageAutomationClient.from_settings(self.settings)
        self.feed = feed or ScheduleFeedCollector(self.settings)
        self.discovery = discovery or MatchDiscoveryService(self.client, self.settings)
        self.table_scraper = table_scraper or LeagueTableScraper(self.client, self.settings)
        self.table_fetcher = table_fetcher or LeagueTableFetcher(self.settings)
        self.backfill = backfill or ResultBackfillService(self.client, self.settings)
        self.stats_scraper = stats_scraper or PlayerStatsScraper(self.client, self.settings)
        self.now = now
        self.last_report: Optional[UpdateReport] = None

    async def close(self) -> None:
        if self._owns_client:
            await self.client.close()

    # ------------------------------------------------------------------
    # progress streaming
    # ------------------------------------------------------------------

    async def _stream(
        self, operation: Callable[[ProgressChannel], Awaitable[UpdateReport]]
    ) -> AsyncIterator[ProgressEvent]:
        channel = ProgressChannel()

        async def runner() -> UpdateReport:
            try:
                return await operation(channel)
            finally:
                channel.close()

        task = asyncio.create_task(runner())
        try:
            async for event in channel:
                yield event
        finally:
            if not task.done():
                await asyncio.wait({task})
        self.last_report = task.result()

    def stream(self, options: UpdateOptions) -> AsyncIterator[ProgressEvent]:
        """Run the full pipeline, yielding progress events; the report lands in ``last_report``."""
        return self._stream(lambda channel: self.run(options, channel))

    def stream_single(self, url: str) -> AsyncIterator[ProgressEvent]:
        return self._stream(lambda channel: self.scrape_single(url, channel))

    def stream_results(self) -> AsyncIterator[ProgressEvent]:
        return self._stream(lambda channel: self.update_results(channel))

    # ------------------------------------------------------------------
    # full pipeline
    # ------------------------------------------------------------------

    async def run(
        self, options: Optional[UpdateOptions] = None, progress: Optional[ProgressChannel] = None
    ) -> UpdateReport:
        options = options or UpdateOptions()
        progress = progress or NullProgress()
        report = UpdateReport()
        try:
            await self._run(options, progress, report)
        finally:
            await self.close()
        self.last_report = report
        return report

    async def _run(self, options: UpdateOptions, progress: ProgressChannel, report: UpdateReport) -> None:
        # 1. load
        teams = load_teams(self.settings.config_path)
        progress.emit("load", f"Lag: {', '.join(t.name for t in teams)} ({options.mode})")
        previous_schedule = self.store.load_schedule()
        index = self.store.load_match_index()
        index_size_before = len(index)

        # 2. feed + discovery
        progress.emit("fetch", "Henter data fra handball.no...")
        feed_result, discovery = await asyncio.gather(
            self.feed.fetch_all(teams), self._discover(teams, progress)
        )
        report.failures.extend(feed_result.failures)
        report.failures.extend(discovery.failures)

        # 3. index
        added = index.merge(
            (match_id, link.match_url)
            for links in discovery.match_links_per_team.values()
            for match_id, link in links.items()
        )
        progress.emit("index", f"Match-index: {len(index)} kamper (+{added} nye)")

        # 4. schedule
        schedule = self._build_schedule(teams, feed_result.rows_per_team, feed_result.failed_team_ids(),
                                        previous_schedule, discovery)
        populated = index.populate_missing_urls(schedule)
        if populated:
            progress.emit("schedule", f"URL populert i terminliste: {populated}")
        if discovery.tables:
            self.store.save_tables(discovery.tables)

        # 5. results
        backfill = await self.backfill.backfill(schedule, self.now(), progress)
        self.store.save_schedule(schedule)
        self.store.save_metadata(len(teams), len(schedule))
        progress.emit("results", f"Oppdaterte {len(backfill.results_updated)} resultater")
        report.schedule_count = len(schedule)

        # 6. played matches
        played = await self._discover_played(options, discovery.tournament_links, progress)
        report.failures.extend(played.failures)
        index.merge((m.match_id, m.match_url) for m in played.matches)
        if len(index) > index_size_before:
            self.store.save_match_index(index)
        report.index_size = len(index)

        # 7. stats
        stats = self.store.load_player_stats()
        summary = UpdateSummary()
        to_scrape = self._select_matches(options, stats, played.matches, schedule, index, report)
        await self._scrape_stats(to_scrape, stats, summary, report, progress)

        # 8. catalog + aggregates
        self._rebuild(stats, report)

        # 9. summary
        self._apply_backfill(summary, backfill)
        self.store.save_update_summary(summary)
        report.summary = summary.finalize()
        if report.failures:
            self.logger.warning(f"{report.failure_count} feil i denne kjøringen")
        progress.emit("done", f"{len(summary.results_updated)} resultater, {len(summary.stats_updated)} kamper med ny statistikk")

    async def _discover(self, teams: list[TeamConfig], progress: ProgressChannel) -> DiscoveryResult:
        discovery = await self.discovery.discover_teams(teams, progress)
        tables, failures = await self.table_scraper.scrape_tables(discovery.tournament_links, progress)
        discovery.tables = tables
        discovery.failures.extend(failures)
        return discovery

    def _build_schedule(
        self,
        teams: list[TeamConfig],
        rows_per_team: dict,
        failed_team_ids: set[str],
        previous: list[ScheduleEntry],
        discovery: DiscoveryResult,
    ) -> list[ScheduleEntry]:
        entries: list[ScheduleEntry] = []
        for team in teams:
            if team.lagid in failed_team_ids:
                carried = [e for e in previous if e.team == team.name]
                self.logger.warning(f"{team.name}: beholder {len(carried)} kamper fra forrige kjøring")
                entries.extend(carried)
                continue
            entries.extend(
                to_schedule_entries(
                    team,
                    rows_per_team.get(team.lagid, []),
                    discovery.links_for(team.lagid),
                    discovery.tournament_links,
                )
            )
        return sort_schedule(entries)

    async def _discover_played(
        self, options: UpdateOptions, tournaments: dict[str, str], progress: ProgressChannel
    ) -> PlayedMatchDiscovery:
        if options.full:
            progress.emit("discovery", f"Full discovery over {len(tournaments)} turneringer")
            played = await self.discovery.discover_played_matches_full(tournaments, progress)
            self._save_cache(played.matches, tournaments)
            return played

        if not options.refresh_matches:
            cache = self.store.load_match_cache(max_age=timedelta(hours=self.settings.match_cache_ttl_hours))
            if cache is not None:
                progress.emit(
                    "discovery",
                    f"Bruker cachet kampliste ({len(cache.matches)} kamper fra {len(cache.tournaments)} turneringer)",
                )
                return PlayedMatchDiscovery(
                    matches=[PlayedMatch(match_id=m.match_id, match_url=m.match_url) for m in cache.matches]
                )

        progress.emit("discovery", f"Henter spilte kamper fra {len(tournaments)} turneringer")
        played = await self.discovery.discover_played_matches_quick(tournaments, progress)
        self._save_cache(played.matches, tournaments)
        return played

    def _save_cache(self, matches: list[PlayedMatch], tournaments: dict[str, str]) -> None:
        self.store.save_match_cache(
            MatchCache(
                matches=[CachedMatch(match_id=m.match_id, match_url=m.match_url) for m in matches],
                tournaments=list(tournaments),
            )
        )

    def _select_matches(
        self,
        options: UpdateOptions,
        stats: PlayerStatsData,
        played: list[PlayedMatch],
        schedule: list[ScheduleEntry],
        index: MatchIndexStore,
        report: UpdateReport,
    ) -> list[PlayedMatch]:
        if options.force_stats:
            self.logger.info("--force-stats: Henter alt på nytt")
            stats.match_stats = []
            stats.matches_without_stats = []

        if options.rescrape_ids:
            wanted = set(options.rescrape_ids)
            stats.match_stats = [m for m in stats.match_stats if m.match_id not in wanted]
            stats.matches_without_stats = [i for i in stats.matches_without_stats if i not in wanted]
            known = {m.match_id: m.match_url for m in played}
            selected = []
            for match_id in options.rescrape_ids:
                url = known.get(match_id) or index.get(match_id)
                if url:
                    selected.append(PlayedMatch(match_id=match_id, match_url=url))
                else:
                    report.failures.append(ScrapeFailure(kind="match", item=match_id, reason="no URL known"))
            self.logger.info(f"Re-scraper {len(selected)} spesifikke kamper")
            return selected

        all_played = combine_played_matches(played, schedule)
        done = {m.match_id for m in stats.match_stats} | set(stats.matches_without_stats)
        selected = [m for m in all_played if m.match_id not in done]
        self.logger.info(f"Har statistikk: {len(stats.match_stats)} kamper, mangler: {len(selected)}")
        return selected

    async def _scrape_stats(
        self,
        matches: list[PlayedMatch],
        stats: PlayerStatsData,
        summary: UpdateSummary,
        report: UpdateReport,
        progress: ProgressChannel,
    ) -> None:
        if not matches:
            progress.emit("stats", "Alt oppdatert!")
            return
        batch_size = max(1, self.settings.stats_batch_size)
        for start in range(0, len(matches), batch_size):
            batch = matches[start:start + batch_size]
            result = await self.stats_scraper.scrape_many(batch, progress)
            for data in result.results:
                summary.record_stats(data)
            stats.match_stats.extend(result.results)
            stats.matches_without_stats.extend(result.no_stats)
            report.failures.extend(result.failures)
            stats.last_updated = utc_now_iso()
            # checkpoint
            self.store.save_player_stats(stats)
            progress.emit("stats", f"Batch lagret ({len(stats.match_stats)} kamper)",
                          min(start + batch_size, len(matches)), len(matches))

    def _rebuild(self, stats: PlayerStatsData, report: UpdateReport) -> None:
        stats.players = rebuild_player_catalog(stats.match_stats)
        stats.last_updated = utc_now_iso()
        self.store.save_player_stats(stats)
        aggregates = generate_aggregates(stats.match_stats)
        self.store.save_player_aggregates(aggregates)
        report.stats_count = len(stats.match_stats)
        report.players_count = len(stats.players)
        report.aggregates_count = len(aggregates.aggregates)
        self.logger.info(f"Aggregater: {report.aggregates_count} spillere")

    @staticmethod
    def _apply_backfill(summary: UpdateSummary, backfill: BackfillReport) -> None:
        summary.results_updated.extend(backfill.results_updated)
        summary.affected_tournaments.extend(
            TournamentRef(name=name, url=url) for url, name in backfill.affected_tournaments.items()
        )

    # ------------------------------------------------------------------
    # single-purpose entry points
    # ------------------------------------------------------------------

    async def scrape_single(self, url: str, progress: Optional[ProgressChannel] = None) -> UpdateReport:
        """Scrape one match page and fold it into player-stats.json."""
        match_id = extract_match_id_from_url(url)
        if not match_id:
            raise InvalidMatchUrlError(f"Ugyldig URL - kunne ikke finne matchid: {url}")
        progress = progress or NullProgress()
        report = UpdateReport()
        try:
            progress.emit("stats", f"Henter spillerstatistikk for matchid={match_id}...")
            data = await self.stats_scraper.scrape_match_stats(url, match_id)
        finally:
            await self.close()

        if data is None:
            progress.emit("stats", "Ingen spillerstatistikk funnet for denne kampen")
            self.last_report = report
            return report

        stats = self.store.load_player_stats()
        for i, existing in enumerate(stats.match_stats):
            if existing.match_id == match_id:
                stats.match_stats[i] = data
                break
        else:
            stats.match_stats.append(data)

        self._rebuild(stats, report)
        summary = UpdateSummary()
        summary.record_stats(data)
        self.store.save_update_summary(summary)
        report.summary = summary.finalize()
        progress.emit("done", f"{data.home_team_name} {data.home_score} - {data.away_score} {data.away_team_name}")
        self.last_report = report
        return report

    async def update_results(self, progress: Optional[ProgressChannel] = None) -> UpdateReport:
        """Backfill missing results in the stored schedule and refresh affected league tables."""
        progress = progress or NullProgress()
        report = UpdateReport()
        schedule = self.store.load_schedule()
        report.schedule_count = len(schedule)
        try:
            backfill = await self.backfill.backfill(schedule, self.now(), progress)
        finally:
            await self.close()

        summary = UpdateSummary()
        if backfill.changed:
            self.store.save_schedule(schedule)
            self.store.save_metadata(len({e.team for e in schedule}), len(schedule))
            self._apply_backfill(summary, backfill)
            if backfill.affected_tournaments:
                progress.emit("tables", f"Oppdaterer {len(backfill.affected_tournaments)} tabeller")
                fresh = await self.table_fetcher.fetch_tables(backfill.affected_tournaments)
                if fresh:
                    self.store.save_tables(merge_tables(self.store.load_tables(), fresh))
        self.store.save_update_summary(summary)
        report.summary = summary.finalize()
        progress.emit("done", f"Oppdaterte {len(summary.results_updated)} resultater")
        self.last_report = report
        return report

    def rebuild_aggregates(self) -> UpdateReport:
        report = UpdateReport()
        self._rebuild(self.store.load_player_stats(), report)
        self.last_report = report
        return report

    def team_view(self, team_id: str, tournament: Optional[str] = None) -> Optional[TeamDetailData]:
        stats = self.store.load_player_stats()
        schedule_index = build_schedule_index(self.store.load_schedule())
        return build_team_detail_data(team_id, stats, schedule_index, self._our_team_ids(), tournament)

    def _our_team_ids(self) -> Iterable[str]:
        try:
            return {t.lagid for t in load_teams(self.settings.config_path)}
        except ConfigurationError as e:
            self.logger.warning(f"Ingen lagkonfigurasjon: {e}")
            return set()


__all__ = ["UpdateOrchestrator", "UpdateOptions", "UpdateReport", "InvalidMatchUrlError"]
