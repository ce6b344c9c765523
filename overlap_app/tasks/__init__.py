"""Background work scheduled outside the request path."""

from .enrichment import EnrichmentQueue, PersistResult, persist_discovered_teams

__all__ = ['EnrichmentQueue', 'PersistResult', 'persist_discovered_teams']
