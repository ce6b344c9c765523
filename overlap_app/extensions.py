"""
Per-application service objects.

Everything with state (cache pools, provider client, enrichment queue) is
built once in create_app() and stored on app.extensions, so each app (and
each test) gets its own set.
"""

from dataclasses import dataclass
from typing import Optional

from flask import Flask, current_app

from .cache import CacheRegistry
from .catalog.name_resolver import NameResolver
from .catalog.orchestrator import TeamSearchOrchestrator
from .catalog.venue_linker import VenueLinker
from .data.venue_hints import TEAM_VENUE_HINTS
from .log import log
from .providers.api_sports import ApiSportsProvider
from .providers.base import BaseTeamProvider
from .tasks.enrichment import EnrichmentQueue


EXTENSION_KEY = 'overlap'


@dataclass
class CatalogServices:
    caches: CacheRegistry
    resolver: NameResolver
    linker: VenueLinker
    orchestrator: TeamSearchOrchestrator
    queue: EnrichmentQueue
    provider: Optional[BaseTeamProvider] = None

    def close(self) -> None:
        self.queue.shutdown(wait=True)
        if self.provider is not None:
            self.provider.close()


def build_services(config, provider: Optional[BaseTeamProvider] = None) -> CatalogServices:
    """Wire the catalog from an app.config-like mapping."""
    caches = CacheRegistry()

    if provider is None:
        provider = ApiSportsProvider(
            api_key=config.get('API_SPORTS_KEY'),
            base_url=config.get('API_SPORTS_URL'),
            timeout=config.get('PROVIDER_TIMEOUT'),
        )

    resolver = NameResolver(
        caches.resolver,
        listing_cache=caches.listing,
        stats_cache=caches.daily,
    )
    linker = VenueLinker(venue_hints=TEAM_VENUE_HINTS, query_cache=caches.query)
    queue = EnrichmentQueue(max_workers=config.get('ENRICHMENT_WORKERS', 2))
    orchestrator = TeamSearchOrchestrator(
        resolver,
        provider,
        caches.query,
        queue,
        min_local_results=config.get('SEARCH_MIN_LOCAL_RESULTS', 5),
        page_size=config.get('SEARCH_PAGE_SIZE', 20),
    )

    return CatalogServices(
        caches=caches,
        resolver=resolver,
        linker=linker,
        orchestrator=orchestrator,
        queue=queue,
        provider=provider,
    )


def init_services(app: Flask, provider: Optional[BaseTeamProvider] = None) -> CatalogServices:
    services = build_services(app.config, provider=provider)
    app.extensions[EXTENSION_KEY] = services
    log(f"📦 Catalog services ready (provider: {services.provider!r})")
    return services


def get_services() -> CatalogServices:
    """Services of the current Flask app."""
    return current_app.extensions[EXTENSION_KEY]
