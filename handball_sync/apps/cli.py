"""
Kommandozeile für die handball.no Sync-Jobs.
Beispiele:
  python -m handball_sync.apps.cli update
  python -m handball_sync.apps.cli update --quick
  python -m handball_sync.apps.cli update --rescrape 123456789,123456790
  python -m handball_sync.apps.cli update --url "https://www.handball.no/system/kamper/kamp/?matchid=123456789"
  python -m handball_sync.apps.cli update-results
  python -m handball_sync.apps.cli team-stats 123456 --tournament "Regionserien"
"""

import asyncio
import json
from typing import AsyncIterator, Optional

import click

from handball_sync.common.logging_utils import configure_logging, get_logger
from handball_sync.core.config import ConfigurationError, settings
from handball_sync.data_collection.orchestrator import (
    InvalidMatchUrlError,
    UpdateOptions,
    UpdateOrchestrator,
    UpdateReport,
)
from handball_sync.domain.contracts import ProgressEvent
from handball_sync.domain.schedule import extract_match_id_from_url
from handball_sync.storage.file_store import PersistenceError

logger = get_logger("cli")


def parse_id_list(value: Optional[str]) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(",") if part.strip())


async def _consume(orchestrator: UpdateOrchestrator, events: AsyncIterator[ProgressEvent]) -> UpdateReport:
    async for event in events:
        logger.info(str(event))
    return orchestrator.last_report


def _run(orchestrator: UpdateOrchestrator, events: AsyncIterator[ProgressEvent]) -> UpdateReport:
    try:
        return asyncio.run(_consume(orchestrator, events))
    except (ConfigurationError, PersistenceError) as e:
        logger.error(str(e))
        raise SystemExit(1)


def _echo_report(report: UpdateReport) -> None:
    summary = report.summary
    click.echo("")
    click.echo("=== Oppsummering ===")
    if report.schedule_count:
        click.echo(f"Kamper i terminliste: {report.schedule_count}")
    click.echo(f"Resultater oppdatert: {len(summary.results_updated)}")
    for info in summary.results_updated:
        click.echo(f"  {info.hjemmelag} - {info.bortelag}: {info.resultat}")
    click.echo(f"Kamper med ny statistikk: {len(summary.stats_updated)}")
    if summary.affected_tournaments:
        click.echo("Berørte turneringer: " + ", ".join(t.name for t in summary.affected_tournaments))
    if report.players_count:
        click.echo(f"Spillere: {report.players_count}, kamper med statistikk: {report.stats_count}")
    if report.failures:
        click.echo(f"Feil: {report.failure_count}")
        for failure in report.failures:
            click.echo(f"  [{failure.kind}] {failure.item}: {failure.reason}")
        match_ids = [f.item for f in report.failures if f.kind == "match"]
        if match_ids:
            click.echo(f"Prøv igjen med: --rescrape {','.join(match_ids)}")


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL for this run.")
def cli(log_level: Optional[str] = None):
    configure_logging(service="handball_sync", level=log_level or settings.log_level)


@cli.command()
@click.option("--force", "--force-stats", "force_stats", is_flag=True,
              help="Discard all stored match stats and scrape everything again.")
@click.option("--rescrape", default=None, help="Comma separated match ids to scrape again.")
@click.option("--refresh-matches", is_flag=True, help="Ignore the cached list of played matches.")
@click.option("--quick", is_flag=True, help="Use locally known matches instead of re-discovering.")
@click.option("--full", is_flag=True, help="Walk every team page instead of trusting tournament pages.")
@click.option("--url", "match_url", default=None, help="Scrape one match page and exit.")
def update(
    force_stats: bool = False,
    rescrape: Optional[str] = None,
    refresh_matches: bool = False,
    quick: bool = False,
    full: bool = False,
    match_url: Optional[str] = None,
):
    """Full sync: schedule, results, tables and player stats"""
    if quick and full:
        raise click.ClickException("--quick and --full cannot be combined")
    if match_url and not extract_match_id_from_url(match_url):
        raise click.ClickException(f"Invalid URL, no matchid found: {match_url}")

    orchestrator = UpdateOrchestrator(settings)
    if match_url:
        events = orchestrator.stream_single(match_url)
    else:
        options = UpdateOptions(
            force_stats=force_stats,
            rescrape_ids=parse_id_list(rescrape),
            refresh_matches=refresh_matches,
            quick=quick,
            full=full,
        )
        events = orchestrator.stream(options)

    try:
        report = _run(orchestrator, events)
    except InvalidMatchUrlError as e:
        raise click.ClickException(str(e))
    _echo_report(report)


@cli.command(name="update-results")
def update_results():
    """Fetch missing results and refresh the affected league tables"""
    orchestrator = UpdateOrchestrator(settings)
    report = _run(orchestrator, orchestrator.stream_results())
    _echo_report(report)


@cli.command()
def aggregates():
    """Rebuild player catalog and aggregates from player-stats.json"""
    orchestrator = UpdateOrchestrator(settings)
    try:
        report = orchestrator.rebuild_aggregates()
    except PersistenceError as e:
        logger.error(str(e))
        raise SystemExit(1)
    click.echo(f"Aggregater generert for {report.aggregates_count} spillere")


@cli.command(name="team-stats")
@click.argument("team_id")
@click.option("--tournament", default=None, help="Only matches of this tournament.")
def team_stats(team_id: str, tournament: Optional[str] = None):
    """Print match history, roster and summary of one team as JSON"""
    orchestrator = UpdateOrchestrator(settings)
    data = orchestrator.team_view(team_id, tournament)
    if data is None:
        click.echo(f"Ingen kamper funnet for lag {team_id}")
        return
    click.echo(json.dumps(data.to_dict(), ensure_ascii=False, indent=2))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
