"""
JSON-Artefakte unterhalb des Datenverzeichnisses.

Lesen bricht nie einen Lauf ab: eine fehlende oder unlesbare Datei wird zu
einem leeren Default und geloggt. Schreibfehler werfen PersistenceError.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from ..domain.models import (
    LeagueTable,
    MatchCache,
    Metadata,
    PlayerAggregatesData,
    PlayerStatsData,
    ScheduleEntry,
    UpdateSummary,
    utc_now_iso,
)
from .match_index import MatchIndexStore

M = TypeVar("M", bound=BaseModel)

SCHEDULE_FILE = "terminliste.json"
METADATA_FILE = "metadata.json"
MATCH_INDEX_FILE = "match-index.json"
PLAYER_STATS_FILE = "player-stats.json"
PLAYER_AGGREGATES_FILE = "player-aggregates.json"
TABLES_FILE = "tables.json"
UPDATE_SUMMARY_FILE = "update-summary.json"
MATCH_CACHE_FILE = "match-cache.json"


class PersistenceError(OSError):
    """Schreiben eines Artefakts auf Platte fehlgeschlagen"""


def _parse_iso(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class ArtifactStore:
    """Liest und schreibt die JSON-Dateien der Pipeline"""

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir)
        self.logger = logging.getLogger("storage.artifacts")

    def path(self, name: str) -> Path:
        return self.data_dir / name

    # ------------------------------------------------------------------
    # raw IO
    # ------------------------------------------------------------------

    def _read_json(self, name: str) -> Any:
        path = self.path(name)
        if not path.exists():
            self.logger.debug(f"{name} not found, using default")
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            self.logger.warning(f"Could not read {name}: {e}")
            return None

    def _write_json(self, name: str, payload: Any) -> Path:
        path = self.path(name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        except (OSError, TypeError) as e:
            raise PersistenceError(f"Failed to write {path}: {e}") from e
        self.logger.debug(f"Wrote {path}")
        return path

    def _read_model(self, name: str, model: type[M], default: M) -> M:
        raw = self._read_json(name)
        if raw is None:
            return default
        try:
            return model.model_validate(raw)
        except ValidationError as e:
            self.logger.warning(f"{name} has an unexpected shape, using default: {e.error_count()} errors")
            return default

    # ------------------------------------------------------------------
    # terminliste + metadata
    # ------------------------------------------------------------------

    def load_schedule(self) -> list[ScheduleEntry]:
        raw = self._read_json(SCHEDULE_FILE)
        if not isinstance(raw, list):
            return []
        entries = []
        for row in raw:
            try:
                entries.append(ScheduleEntry.model_validate(row))
            except ValidationError:
                self.logger.debug(f"Skipping malformed schedule row: {row!r}")
        return entries

    def save_schedule(self, schedule: list[ScheduleEntry]) -> Path:
        return self._write_json(SCHEDULE_FILE, [e.to_json_dict() for e in schedule])

    def save_metadata(self, teams_count: int, matches_count: int) -> Metadata:
        meta = Metadata(last_updated=utc_now_iso(), teams_count=teams_count, matches_count=matches_count)
        self._write_json(METADATA_FILE, meta.to_json_dict())
        return meta

    def load_metadata(self) -> Optional[Metadata]:
        raw = self._read_json(METADATA_FILE)
        if raw is None:
            return None
        try:
            return Metadata.model_validate(raw)
        except ValidationError:
            return None

    # ------------------------------------------------------------------
    # match index
    # ------------------------------------------------------------------

    def load_match_index(self) -> MatchIndexStore:
        raw = self._read_json(MATCH_INDEX_FILE)
        if raw is None:
            return MatchIndexStore()
        return MatchIndexStore.from_raw(raw)

    def save_match_index(self, index: MatchIndexStore) -> Path:
        return self._write_json(MATCH_INDEX_FILE, index.to_dict())

    # ------------------------------------------------------------------
    # player statistics
    # ------------------------------------------------------------------

    def load_player_stats(self) -> PlayerStatsData:
        return self._read_model(PLAYER_STATS_FILE, PlayerStatsData, PlayerStatsData())

    def save_player_stats(self, data: PlayerStatsData) -> Path:
        return self._write_json(PLAYER_STATS_FILE, data.to_json_dict())

    def load_player_aggregates(self) -> PlayerAggregatesData:
        return self._read_model(PLAYER_AGGREGATES_FILE, PlayerAggregatesData, PlayerAggregatesData())

    def save_player_aggregates(self, data: PlayerAggregatesData) -> Path:
        return self._write_json(PLAYER_AGGREGATES_FILE, data.to_json_dict())

    # ------------------------------------------------------------------
    # tables, summary
    # ------------------------------------------------------------------

    def load_tables(self) -> list[LeagueTable]:
        raw = self._read_json(TABLES_FILE)
        if not isinstance(raw, list):
            return []
        tables = []
        for item in raw:
            try:
                tables.append(LeagueTable.model_validate(item))
            except ValidationError:
                self.logger.debug("Skipping malformed table entry")
        return tables

    def save_tables(self, tables: list[LeagueTable]) -> Path:
        return self._write_json(TABLES_FILE, [t.to_json_dict() for t in tables])

    def save_update_summary(self, summary: UpdateSummary) -> Path:
        return self._write_json(UPDATE_SUMMARY_FILE, summary.finalize().to_json_dict())

    def load_update_summary(self) -> Optional[UpdateSummary]:
        raw = self._read_json(UPDATE_SUMMARY_FILE)
        if raw is None:
            return None
        try:
            return UpdateSummary.model_validate(raw)
        except ValidationError:
            return None

    # ------------------------------------------------------------------
    # match discovery cache
    # ------------------------------------------------------------------

    def load_match_cache(
        self,
        *,
        max_age: Optional[timedelta] = None,
        now: Optional[datetime] = None,
    ) -> Optional[MatchCache]:
        """Cached played-match list, or None when absent, unreadable or expired.

        ``max_age=None`` accepts the cache regardless of its age.
        """
        raw = self._read_json(MATCH_CACHE_FILE)
        if not isinstance(raw, dict):
            return None
        try:
            cache = MatchCache.model_validate(raw)
        except ValidationError as e:
            self.logger.warning(f"Ignoring match cache: {e.error_count()} errors")
            return None
        if max_age is not None:
            stamp = _parse_iso(cache.last_updated)
            current = now or datetime.now(timezone.utc)
            if stamp is None or current - stamp > max_age:
                self.logger.info("Match cache expired")
                return None
        return cache

    def save_match_cache(self, cache: MatchCache) -> Path:
        return self._write_json(MATCH_CACHE_FILE, cache.to_json_dict())


__all__ = [
    "ArtifactStore",
    "PersistenceError",
    "SCHEDULE_FILE",
    "METADATA_FILE",
    "MATCH_INDEX_FILE",
    "PLAYER_STATS_FILE",
    "PLAYER_AGGREGATES_FILE",
    "TABLES_FILE",
    "UPDATE_SUMMARY_FILE",
    "MATCH_CACHE_FILE",
]
