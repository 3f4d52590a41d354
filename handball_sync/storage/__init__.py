"""
Persistenzschicht: JSON-Artefakte und der Index der Spiel-URLs.
"""

from .file_store import ArtifactStore, PersistenceError
from .match_index import LegacyFormatError, MatchIndexStore, migrate_legacy

__all__ = [
    "ArtifactStore",
    "PersistenceError",
    "LegacyFormatError",
    "MatchIndexStore",
    "migrate_legacy",
]
