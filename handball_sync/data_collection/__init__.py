"""
Data Collection Module
Orchestrator, Collectors und Scrapers für handball.no

Hinweis: hier keine Subpackages importieren, damit der Import frei von
Seiteneffekten bleibt. Klassen direkt aus ihren Modulen importieren.
"""

__all__: list[str] = []
