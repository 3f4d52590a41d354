"""
Handball Sync
Synchronisiert Spielplan, Ergebnisse, Tabellen und Spielerstatistik von handball.no
"""

__version__ = "1.0.0"

# NOTE:
# Keep "import handball_sync" free of side effects; subpackages such as the
# aggregators are imported directly by tests without loading the settings.

__all__ = []
