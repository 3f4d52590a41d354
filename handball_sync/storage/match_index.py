"""
Dauerhafter Index Spiel-ID -> Detail-URL (match-index.json).

Einträge werden nur ergänzt: eine einmal aufgelöste URL wird von einem späteren
Merge nie ersetzt. Ältere Dateien speicherten
``{"<Kampnr>": {"url": ..., "played": ...}}``; diese werden beim Laden flachgezogen.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Mapping, Optional

from ..domain.models import ScheduleEntry

logger = logging.getLogger("storage.match_index")


class LegacyFormatError(ValueError):
    """match-index.json (oder der Match-Cache) hat ein unbekanntes Format"""


def migrate_legacy(raw: Any) -> dict[str, str]:
    """Flatten a parsed index document into ``{Kampnr: url}``.

    The shape is decided once from the first entry; a file mixing both
    shapes is coerced to that shape and non-conforming entries are dropped.
    """
    if not isinstance(raw, dict):
        raise LegacyFormatError(f"expected an object, got {type(raw).__name__}")
    if not raw:
        return {}

    first = next(iter(raw.values()))
    if isinstance(first, dict) and "url" in first:
        migrated = {}
        for match_id, value in raw.items():
            if isinstance(value, dict) and value.get("url"):
                migrated[str(match_id)] = str(value["url"])
        logger.info(f"Migrated {len(migrated)} legacy index entries")
        return migrated
    if isinstance(first, str):
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}
    raise LegacyFormatError(f"unrecognised index entry: {first!r}")


class MatchIndexStore:
    """In-Memory-Sicht auf match-index.json"""

    def __init__(self, entries: Optional[Mapping[str, str]] = None):
        self._entries: dict[str, str] = dict(entries or {})

    @classmethod
    def from_raw(cls, raw: Any) -> "MatchIndexStore":
        try:
            return cls(migrate_legacy(raw))
        except LegacyFormatError as e:
            logger.warning(f"Ignoring match index: {e}")
            return cls()

    @classmethod
    def from_json(cls, text: str) -> "MatchIndexStore":
        try:
            raw = json.loads(text)
        except ValueError as e:
            logger.warning(f"Match index is not valid JSON: {e}")
            return cls()
        return cls.from_raw(raw)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, match_id: object) -> bool:
        return match_id in self._entries

    def get(self, match_id: str) -> Optional[str]:
        return self._entries.get(match_id)

    def to_dict(self) -> dict[str, str]:
        return dict(self._entries)

    def merge(self, discovered: Mapping[str, str] | Iterable[tuple[str, str]]) -> int:
        """Add unseen Kampnr -> URL pairs; existing entries are kept. Returns the number added."""
        pairs = discovered.items() if isinstance(discovered, Mapping) else discovered
        added = 0
        for match_id, url in pairs:
            if not match_id or not url:
                continue
            if match_id in self._entries:
                continue
            self._entries[match_id] = url
            added += 1
        return added

    def populate_missing_urls(self, schedule: Iterable[ScheduleEntry]) -> int:
        """Fill ``Kamp URL`` on schedule rows that lack one. Mutates the rows in place."""
        updated = 0
        for entry in schedule:
            if entry.match_url:
                continue
            url = self._entries.get(entry.match_id)
            if url:
                entry.match_url = url
                updated += 1
        return updated


__all__ = ["LegacyFormatError", "MatchIndexStore", "migrate_legacy"]
