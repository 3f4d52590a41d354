"""Gemeinsame reine Hilfsfunktionen für die handball.no Scraper.

- Muster für Spiel-ID, Spielstand und Ergebniszeilen
- Klassifizierung von Links anhand der URL
- aus dem Namen abgeleitete Spieler-ID
- Aufteilung in Chunks für begrenzte Batch-Parallelität

Alle Funktionen sind frei von Seiteneffekten.
"""
from __future__ import annotations

import re
from typing import Iterable, Sequence, TypeVar

T = TypeVar("T")

# Kampnr: at least nine consecutive digits at the start of a cell
MATCH_ID_PATTERN = re.compile(r"^\d{9,}")
# Any "25-20" / "25 – 20" in a row marks the match as played
SCORE_PATTERN = re.compile(r"\d+\s*[-–]\s*\d+")
# Result page body lines look like "27   (12)\tFjellhammer 2"
RESULT_LINE_PATTERN = re.compile(r"^(\d{1,2})\s+\(\d+\)\s+.+$")
# Date followed by the kick-off marker on a match page: "18.01.2025 kl. 14:00"
MATCH_DATE_PATTERN = re.compile(r"(\d{2}\.\d{2}\.\d{4})\s+kl\.", re.IGNORECASE)
# Schedule score strings ("25-20") as stored in terminliste.json
RESULT_STRING_PATTERN = re.compile(r"^(\d+)-(\d+)$")

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def is_match_url(href: str) -> bool:
    return "kampoppgjoer" in href or "/kamp/" in href


def is_team_url(href: str) -> bool:
    return "lagid=" in href or "/lag/" in href


def is_tournament_url(href: str) -> bool:
    return "turnid=" in href or "/turnering/" in href


def has_score(text: str | None) -> bool:
    return bool(text) and SCORE_PATTERN.search(text) is not None


def looks_like_match_id(text: str | None) -> bool:
    return bool(text) and MATCH_ID_PATTERN.match(text) is not None


def is_cup(tournament_name: str | None) -> bool:
    return "cup" in (tournament_name or "").lower()


def normalize_player_name(name: str) -> str:
    return " ".join(name.lower().split())


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))


def generate_player_id(name: str) -> str:
    """Stable player id derived from the normalized display name.

    31-multiplier string hash over UTF-16 code units, wrapped to a signed
    32-bit integer; the absolute value is rendered in base 36. Ids stored in
    existing player-stats.json files were produced the same way.
    """
    data = normalize_player_name(name).encode("utf-16-le")
    h = 0
    for i in range(0, len(data), 2):
        code_unit = data[i] | (data[i + 1] << 8)
        h = ((h << 5) - h + code_unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return _to_base36(abs(h))


def chunked(items: Sequence[T] | Iterable[T], size: int) -> list[list[T]]:
    """Split into consecutive groups of at most ``size`` items."""
    seq = list(items)
    step = max(1, size)
    return [seq[i : i + step] for i in range(0, len(seq), step)]


__all__ = [
    "MATCH_ID_PATTERN",
    "SCORE_PATTERN",
    "RESULT_LINE_PATTERN",
    "MATCH_DATE_PATTERN",
    "RESULT_STRING_PATTERN",
    "is_match_url",
    "is_team_url",
    "is_tournament_url",
    "has_score",
    "looks_like_match_id",
    "is_cup",
    "normalize_player_name",
    "generate_player_id",
    "chunked",
]
