"""
Applications Package für Handball Sync

Enthält die Kommandozeile für Update-Läufe und Auswertungen.
"""

__all__: list[str] = []
