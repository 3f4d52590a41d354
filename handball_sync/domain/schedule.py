"""Reine Regeln über Spielplan-Einträge (gespielt/veraltet erkennen, Mergen, Sortieren)."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Union

from ..common.parsing import (
    date_sort_key,
    end_of_day,
    extract_query_id,
    parse_leading_int,
    parse_norwegian_date,
)
from .contracts import PlayedMatch
from .models import ScheduleEntry

NOT_PLAYED = "-"


def parse_match_date(value: str | None) -> Optional[datetime]:
    """Match day as local end-of-day (23:59:59), None when unparseable."""
    d = parse_norwegian_date(value)
    return end_of_day(d) if d else None


def has_valid_result(score: str | None) -> bool:
    text = (score or "").strip()
    return text != "" and text != NOT_PLAYED


def needs_result_update(entry: ScheduleEntry, now: datetime) -> bool:
    """Played but missing a score: no result, a detail URL, and the match day is over."""
    if has_valid_result(entry.score):
        return False
    if not entry.match_url:
        return False
    match_end = parse_match_date(entry.match_date)
    if match_end is None:
        return False
    return match_end < now


def extract_match_id_from_url(url: str | None) -> Optional[str]:
    return extract_query_id(url, "matchid")


def combine_played_matches(
    tournament_matches: Iterable[PlayedMatch], schedule: Iterable[ScheduleEntry]
) -> list[PlayedMatch]:
    """Union of discovered played matches and scored schedule rows.

    Discovery wins on conflicting URLs; schedule rows only contribute when they
    carry a result and a detail URL.
    """
    combined: dict[str, PlayedMatch] = {}
    for match in tournament_matches:
        combined[match.match_id] = match

    for entry in schedule:
        if not has_valid_result(entry.score):
            continue
        url = (entry.match_url or "").strip()
        if not url:
            continue
        match_id = entry.match_id.strip()
        if match_id not in combined:
            combined[match_id] = PlayedMatch(match_id=match_id, match_url=entry.match_url)

    return list(combined.values())


def sort_schedule(entries: Iterable[ScheduleEntry]) -> list[ScheduleEntry]:
    """Ascending by date, then kick-off time (stable)."""
    return sorted(entries, key=lambda e: (date_sort_key(e.match_date), e.match_time or ""))


def parse_attendance(value: Union[int, float, str, None]) -> Union[int, str, None]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    text = str(value).strip()
    if not text:
        return None
    number = parse_leading_int(text)
    return number if number is not None else text


def build_schedule_index(schedule: Iterable[ScheduleEntry]) -> dict[str, ScheduleEntry]:
    """Kampnr -> first schedule row carrying it"""
    index: dict[str, ScheduleEntry] = {}
    for entry in schedule:
        index.setdefault(entry.match_id.strip(), entry)
    return index


__all__ = [
    "NOT_PLAYED",
    "parse_match_date",
    "has_valid_result",
    "needs_result_update",
    "extract_match_id_from_url",
    "combine_played_matches",
    "sort_schedule",
    "parse_attendance",
    "build_schedule_index",
]
