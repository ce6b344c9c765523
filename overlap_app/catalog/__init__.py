"""Team catalog: name resolution, venue linking and search orchestration."""

from .name_resolver import NameResolver, Resolution, NameMapResult
from .venue_linker import VenueLinker, LinkReport
from .orchestrator import TeamSearchOrchestrator, SearchOutcome

__all__ = [
    'NameResolver', 'Resolution', 'NameMapResult',
    'VenueLinker', 'LinkReport',
    'TeamSearchOrchestrator', 'SearchOutcome',
]
