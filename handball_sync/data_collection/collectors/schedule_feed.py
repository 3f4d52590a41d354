"""
Offizieller Spielplan-Feed von handball.no (XLSX-Export "TerminlisteLag").

Eine Arbeitsmappe pro konfigurierter Mannschaft; das erste Blatt enthält ein
Spiel pro Zeile mit den norwegischen Spaltennamen des Verbands.
"""

from __future__ import annotations

import asyncio
import logging
import zipfile
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Mapping, Optional, Sequence

import pandas as pd
import requests

from ...common.http import ACCEPT_XLSX, fetch_bytes
from ...common.parsing import normalize_feed_date, normalize_feed_time
from ...core.config import Settings, TeamConfig, settings as default_settings
from ...domain.contracts import MatchLink, ScrapeFailure
from ...domain.models import ScheduleEntry
from ...domain.schedule import parse_attendance


class ScheduleFeedError(RuntimeError):
    """Feed-Request fehlgeschlagen oder Arbeitsmappe nicht lesbar"""


@dataclass
class FeedFetchResult:
    rows_per_team: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    failures: list[ScrapeFailure] = field(default_factory=list)

    def failed_team_ids(self) -> set[str]:
        return {f.item for f in self.failures}


def decode_workbook(content: bytes) -> list[dict[str, Any]]:
    """First sheet of an XLSX workbook as row dicts; empty cells become ""."""
    try:
        frame = pd.read_excel(BytesIO(content), sheet_name=0, dtype=str, engine="openpyxl")
    except (ValueError, OSError, KeyError, zipfile.BadZipFile) as e:
        raise ScheduleFeedError(f"Could not decode workbook: {e}") from e
    frame = frame.fillna("")
    frame.columns = [str(c).strip() for c in frame.columns]
    return frame.to_dict(orient="records")


def normalize_row(row: Mapping[str, Any]) -> dict[str, Any]:
    normalized = {k: (v.strip() if isinstance(v, str) else v) for k, v in row.items()}
    normalized["Dato"] = normalize_feed_date(str(row.get("Dato", "")))
    normalized["Tid"] = normalize_feed_time(str(row.get("Tid", "")))
    normalized["Tilskuere"] = parse_attendance(row.get("Tilskuere"))
    return normalized


def to_schedule_entries(
    team: TeamConfig,
    rows: Sequence[Mapping[str, Any]],
    links: Mapping[str, MatchLink],
    tournament_links: Mapping[str, str],
) -> list[ScheduleEntry]:
    """Decorate the feed rows of one team with the scraped match, team and tournament URLs"""
    entries: list[ScheduleEntry] = []
    for row in rows:
        match_id = str(row.get("Kampnr") or "").strip()
        link = links.get(match_id)
        tournament = str(row.get("Turnering") or "").strip()
        entries.append(
            ScheduleEntry(
                team=team.name,
                match_date=row.get("Dato", ""),
                match_time=row.get("Tid", ""),
                match_id=match_id,
                home_team=row.get("Hjemmelag", ""),
                away_team=row.get("Bortelag", ""),
                score=row.get("H-B", ""),
                venue=row.get("Bane", ""),
                attendance=row.get("Tilskuere"),
                organizer=row.get("Arrangør", ""),
                tournament=tournament,
                match_url=link.match_url if link else "",
                home_team_url=link.home_team_url if link else "",
                away_team_url=link.away_team_url if link else "",
                tournament_url=tournament_links.get(tournament, ""),
            )
        )
    return entries


class ScheduleFeedCollector:
    """Collector für die offiziellen Spielpläne (XLSX) aller Mannschaften"""

    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self.name = "schedule_feed"
        self.settings = settings or default_settings
        self.session = session
        self.logger = logging.getLogger(f"collector.{self.name}")

    def feed_url(self, team: TeamConfig) -> str:
        return f"{self.settings.base_url}/AjaxData/TerminlisteLag?id={team.lagid}&seasonId={team.season_id}"

    def _download(self, url: str) -> bytes:
        return fetch_bytes(
            url,
            timeout=self.settings.http_timeout,
            retries=self.settings.http_retries,
            backoff=self.settings.http_backoff,
            user_agent=self.settings.user_agent,
            accept=ACCEPT_XLSX,
            session=self.session,
        )

    async def fetch_team_schedule(self, team: TeamConfig) -> list[dict[str, Any]]:
        url = self.feed_url(team)
        try:
            content = await asyncio.to_thread(self._download, url)
        except requests.RequestException as e:
            raise ScheduleFeedError(f"Failed to fetch schedule for team {team.name} ({team.lagid}): {e}") from e
        rows = await asyncio.to_thread(decode_workbook, content)
        return [normalize_row(r) for r in rows]

    async def fetch_all(self, teams: Sequence[TeamConfig]) -> FeedFetchResult:
        """All teams concurrently; a failing team yields no rows and a failure record."""
        result = FeedFetchResult()
        outcomes = await asyncio.gather(
            *(self.fetch_team_schedule(team) for team in teams), return_exceptions=True
        )
        for team, outcome in zip(teams, outcomes):
            if isinstance(outcome, ScheduleFeedError):
                self.logger.error(f"✗ API: {team.name} failed: {outcome}")
                result.rows_per_team[team.lagid] = []
                result.failures.append(ScrapeFailure(kind="feed", item=team.lagid, reason=str(outcome)))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                self.logger.info(f"✓ API: {team.name} - {len(outcome)} matches")
                result.rows_per_team[team.lagid] = outcome
        return result


__all__ = [
    "ScheduleFeedCollector",
    "ScheduleFeedError",
    "FeedFetchResult",
    "decode_workbook",
    "normalize_row",
    "to_schedule_entries",
]
