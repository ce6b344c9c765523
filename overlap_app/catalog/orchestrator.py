"""
================================================================================
Overlap - Team Search Orchestrator
================================================================================
Coordinates local search, the external provider and background enrichment.

Flow:
  1. Query pool lookup under a normalised `search_` key
  2. Local search through the name resolver
  3. One provider call only when local results are insufficient
  4. Merge (local wins), rank externals, truncate to one page
  5. Cache the page, then hand external-only teams to the enrichment queue

Provider failures never reach the caller; the page is built from local
results alone and cached for DEGRADED_TTL only.
================================================================================
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..cache import CachePool
from ..errors import UpstreamProviderError
from ..providers.base import BaseTeamProvider, ProviderTeam
from ..tasks.enrichment import EnrichmentQueue, persist_discovered_teams
from .name_resolver import NameResolver


logger = logging.getLogger(__name__)

SEARCH_PREFIX = 'search_'

# Pages built while the provider was failing are only kept briefly
DEGRADED_TTL = 30

# Seed list for populate_popular_teams()
POPULAR_TEAM_NAMES = [
    'Real Madrid', 'Barcelona', 'Atletico Madrid', 'Sevilla', 'Valencia',
    'Manchester United', 'Manchester City', 'Liverpool', 'Arsenal', 'Chelsea',
    'Tottenham', 'Newcastle', 'Bayern Munich', 'Borussia Dortmund', 'RB Leipzig',
    'Bayer Leverkusen', 'Juventus', 'AC Milan', 'Inter', 'Napoli', 'AS Roma',
    'Paris Saint Germain', 'Marseille', 'Lyon', 'Ajax', 'PSV Eindhoven',
    'Feyenoord', 'Benfica', 'Porto', 'Sporting CP', 'Celtic', 'Rangers',
    'Galatasaray', 'Fenerbahce', 'Boca Juniors', 'River Plate', 'Flamengo',
]

POPULATE_TOP_N = 3


def normalize_query(query: str) -> str:
    """Lowercase and collapse internal whitespace."""
    return re.sub(r'\s+', ' ', (query or '').strip().lower())


def search_cache_key(query: str, country: Optional[str] = None, league: Optional[str] = None) -> str:
    key = f"{SEARCH_PREFIX}{normalize_query(query)}"
    if country:
        key += f"|country={normalize_query(country)}"
    if league:
        key += f"|league={normalize_query(league)}"
    return key


def relevance_rank(name: str, query: str) -> int:
    """0 = exact name, 1 = prefix, 2 = anything else."""
    folded = normalize_query(name)
    if folded == query:
        return 0
    if folded.startswith(query):
        return 1
    return 2


@dataclass
class SearchOutcome:
    """One page of search results."""
    results: List[Dict[str, Any]] = field(default_factory=list)
    from_cache: bool = False
    provider_used: bool = False


class TeamSearchOrchestrator:
    """Local-first team search with provider fallback."""

    def __init__(
        self,
        resolver: NameResolver,
        provider: Optional[BaseTeamProvider],
        cache: CachePool,
        queue: Optional[EnrichmentQueue] = None,
        min_local_results: int = 5,
        page_size: int = 20,
        persist=persist_discovered_teams
    ):
        """
        Args:
            resolver: Local search and resolution
            provider: External provider, or None for local-only
            cache: Query pool for result pages
            queue: Enrichment queue; without one nothing is persisted
            min_local_results: Below this many local hits the provider is asked
            page_size: Maximum results per page
            persist: Callable scheduled with the external-only records
        """
        self.resolver = resolver
        self.provider = provider
        self.cache = cache
        self.queue = queue
        self.min_local_results = min_local_results
        self.page_size = page_size
        self.persist = persist

    def search(self, query: str, country: Optional[str] = None, league: Optional[str] = None) -> SearchOutcome:
        start_time = time.time()
        key = search_cache_key(query, country, league)

        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"Cache HIT for query '{query}' ({len(cached)} results)")
            return SearchOutcome(results=cached, from_cache=True)

        local = self.resolver.search(query, country=country, league=league, limit=self.page_size)
        logger.info(f"Cache MISS - '{query}': {len(local)} local results")

        external: List[ProviderTeam] = []
        provider_used = False
        provider_failed = False
        if len(local) < self.min_local_results and self.provider is not None:
            provider_used = True
            external, provider_failed = self._search_provider(query, country, league)

        results, discovered = self._merge(local, external, normalize_query(query))
        self.cache.set(key, results, ttl=DEGRADED_TTL if provider_failed else None)

        if discovered:
            self._schedule_persist(discovered)

        logger.info(
            f"Search '{query}' completed in {time.time() - start_time:.2f}s "
            f"({len(results)} results, {len(discovered)} new)"
        )
        return SearchOutcome(results=results, from_cache=False, provider_used=provider_used)

    def _search_provider(self, query: str, country: Optional[str],
                         league: Optional[str]) -> Tuple[List[ProviderTeam], bool]:
        """Query the provider once. Returns (teams, failed)."""
        try:
            teams = self.provider.search_teams(query)
        except UpstreamProviderError as exc:
            logger.warning(f"⚠️ Provider search failed for '{query}', serving local results only: {exc}")
            return [], True

        if country:
            wanted = country.strip().lower()
            teams = [team for team in teams if (team.country or '').lower() == wanted]
        if league:
            wanted = league.strip().lower()
            # Providers rarely report a league on search; unknown passes
            teams = [team for team in teams if not team.league or team.league.lower() == wanted]
        return teams, False

    def _merge(self, local: List[Dict[str, Any]], external: Iterable[ProviderTeam], query: str):
        seen = {row['id'] for row in local}
        discovered: List[ProviderTeam] = []
        for team in external:
            if team.external_id in seen:
                continue
            seen.add(team.external_id)
            discovered.append(team)

        # sorted() is stable: provider order is kept within a rank
        discovered = sorted(discovered, key=lambda team: relevance_rank(team.name, query))

        results = list(local) + [team.to_result() for team in discovered]
        return results[:self.page_size], discovered

    def _schedule_persist(self, records: List[ProviderTeam]) -> None:
        if self.queue is None:
            logger.debug(f"No enrichment queue; {len(records)} discovered teams not persisted")
            return
        self.queue.submit(self.persist, records)

    # =========================================================================
    # SEEDING
    # =========================================================================

    def populate_popular_teams(self, names: Optional[List[str]] = None) -> int:
        """
        Query the provider for each seed name and persist the top matches.

        Runs synchronously; callers schedule it on the enrichment queue.

        Returns:
            Number of teams newly stored
        """
        if self.provider is None:
            logger.warning("No provider configured; nothing to populate")
            return 0

        created = 0
        for name in names or POPULAR_TEAM_NAMES:
            try:
                teams = self.provider.search_teams(name)
            except UpstreamProviderError as exc:
                logger.warning(f"⚠️ Skipping '{name}': {exc}")
                continue

            if not teams:
                logger.info(f"No provider results for '{name}'")
                continue

            result = self.persist(teams[:POPULATE_TOP_N])
            created += getattr(result, 'created', 0)

        if created:
            self.cache.delete_by_pattern(f"{SEARCH_PREFIX}*")
        logger.info(f"✅ Populated {created} teams")
        return created
