"""
================================================================================
Overlap - Team Name Resolver
================================================================================
Resolves raw team identifiers (provider names, nicknames, user input) to the
canonical team name stored in the catalog.

Cascade (first hit wins):
  1. Exact provider-specific name   "Bayern München"    → FC Bayern München
  2. Exact canonical name           "FC Bayern München" → FC Bayern München
  3. Alias membership               "Bayern"            → FC Bayern München
  4. Passthrough                    "Unknown XI"        → "Unknown XI" (unresolved)

Also owns local team search with popularity ranking, and the bulk
provider-name mapping used to reconcile provider naming with ours.
================================================================================
"""

import json
import logging
from contextlib import AbstractContextManager
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import String, cast, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..cache import CachePool
from ..database import get_db_session
from ..models import POPULARITY_DECAY, Team


logger = logging.getLogger(__name__)

SessionScope = Callable[[], AbstractContextManager]

STRATEGY_PROVIDER_NAME = 'provider_name'
STRATEGY_NAME = 'name'
STRATEGY_ALIAS = 'alias'
STRATEGY_UNRESOLVED = 'unresolved'


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so user input is matched literally."""
    return term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


@dataclass
class Resolution:
    """Outcome of a name resolution."""
    name: str
    strategy: str
    resolved: bool
    external_id: Optional[str] = None


@dataclass
class NameMapResult:
    """Summary of a bulk provider-name mapping run."""
    updated: int = 0
    unchanged: int = 0
    unmatched: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            'updatedCount': self.updated,
            'unchangedCount': self.unchanged,
            'unmatchedCount': self.unmatched,
            'failedCount': self.failed,
        }


class NameResolver:
    """Cascading identifier → canonical team matcher backed by a cache pool."""

    RESOLVE_PREFIX = 'resolve:'

    def __init__(
        self,
        cache: CachePool,
        session_scope: SessionScope = get_db_session,
        decay_factor: float = POPULARITY_DECAY,
        listing_cache: Optional[CachePool] = None,
        stats_cache: Optional[CachePool] = None
    ):
        """
        Args:
            cache: Pool for resolutions (short TTL)
            session_scope: Context manager factory yielding a Session
            decay_factor: Popularity time decay per day
            listing_cache: Optional pool for popular-team listings
            stats_cache: Optional pool for daily catalog statistics
        """
        self.cache = cache
        self.session_scope = session_scope
        self.decay_factor = decay_factor
        self.listing_cache = listing_cache
        self.stats_cache = stats_cache

    # =========================================================================
    # RESOLUTION
    # =========================================================================

    def resolve(self, raw_identifier: str) -> str:
        """Return the canonical name, or the input unchanged if nothing matches."""
        return self.resolve_detailed(raw_identifier).name

    def resolve_detailed(self, raw_identifier: str) -> Resolution:
        """Resolve and report which strategy matched."""
        if not raw_identifier or not raw_identifier.strip():
            return Resolution(raw_identifier, STRATEGY_UNRESOLVED, False)

        key = f"{self.RESOLVE_PREFIX}{raw_identifier}"
        cached = self.cache.get(key)
        if isinstance(cached, dict):
            return Resolution(**cached)

        resolution = self._lookup(raw_identifier.strip())
        if not resolution.resolved:
            # Keep the caller's exact input on passthrough
            resolution.name = raw_identifier
            logger.debug(f"Unresolved team identifier: '{raw_identifier}'")

        self.cache.set(key, asdict(resolution))
        return resolution

    def _lookup(self, identifier: str) -> Resolution:
        with self.session_scope() as session:
            team = self._first(session, Team.provider_name == identifier)
            if team:
                return Resolution(team.name, STRATEGY_PROVIDER_NAME, True, team.external_id)

            team = self._first(session, Team.name == identifier)
            if team:
                return Resolution(team.name, STRATEGY_NAME, True, team.external_id)

            team = self._find_by_alias(session, identifier)
            if team:
                return Resolution(team.name, STRATEGY_ALIAS, True, team.external_id)

        return Resolution(identifier, STRATEGY_UNRESOLVED, False)

    def _first(self, session: Session, criterion) -> Optional[Team]:
        return (
            session.query(Team)
            .filter(criterion)
            .order_by(Team.search_count.desc(), Team.name.asc())
            .first()
        )

    def _find_by_alias(self, session: Session, identifier: str) -> Optional[Team]:
        # Narrow on the serialized JSON text, then confirm exact membership
        encoded = json.dumps(identifier, ensure_ascii=False)
        pattern = f"%{escape_like(encoded)}%"
        candidates = (
            session.query(Team)
            .filter(cast(Team.aliases, String).like(pattern, escape='\\'))
            .order_by(Team.search_count.desc(), Team.name.asc())
            .all()
        )
        for team in candidates:
            if identifier in (team.aliases or []):
                return team
        return None

    # =========================================================================
    # BULK PROVIDER-NAME MAPPING
    # =========================================================================

    def apply_name_map(self, mapping: Dict[str, str]) -> NameMapResult:
        """
        Record provider names for canonical teams.

        For each {external: canonical} pair the team named `canonical` gets
        `provider_name = external` and `external` appended to its aliases
        (once). Running the same map twice changes nothing the second time.
        One failing record never aborts the run.
        """
        result = NameMapResult()

        for external, canonical in mapping.items():
            if not isinstance(external, str) or not isinstance(canonical, str) or not external.strip():
                logger.warning(f"Skipping invalid name mapping: {external!r} -> {canonical!r}")
                result.failed += 1
                continue

            try:
                outcome = self._apply_one(external.strip(), canonical.strip())
            except SQLAlchemyError as exc:
                logger.error(f"❌ Error mapping '{external}' -> '{canonical}': {exc}")
                result.failed += 1
                continue

            if outcome == 'updated':
                result.updated += 1
            elif outcome == 'unchanged':
                result.unchanged += 1
            else:
                result.unmatched += 1

        invalidated = self.cache.delete_by_pattern(f"{self.RESOLVE_PREFIX}*")
        logger.info(
            f"📊 Name map applied: {result.updated} updated, {result.unchanged} unchanged, "
            f"{result.unmatched} unmatched, {result.failed} failed "
            f"({invalidated} cached resolutions dropped)"
        )
        return result

    def _apply_one(self, external: str, canonical: str) -> str:
        with self.session_scope() as session:
            team = self._first(session, Team.name == canonical)
            if team is None:
                logger.warning(f"⚠️ No team named '{canonical}' (provider name: {external})")
                return 'unmatched'

            changed = False
            if team.provider_name != external:
                team.provider_name = external
                changed = True
            if team.add_alias(external):
                changed = True
            return 'updated' if changed else 'unchanged'

    # =========================================================================
    # LOCAL SEARCH
    # =========================================================================

    def search(
        self,
        query: str,
        country: Optional[str] = None,
        league: Optional[str] = None,
        limit: int = 20
    ) -> List[Dict[str, Any]]:
        """
        Case-insensitive substring search over name, aliases, provider name
        and short code, ranked by (popularity desc, search_count desc).

        Every returned team has its search count incremented and popularity
        recomputed; a failed update on one team is logged and skipped.
        """
        term = (query or '').strip()
        if not term or limit <= 0:
            return []

        with self.session_scope() as session:
            matched = [
                team for team in self._search_query(session, term, country, league).all()
                if team.matches(term)
            ][:limit]
            snapshots = [(team.id, team.to_dict()) for team in matched]

        results = []
        for team_id, snapshot in snapshots:
            updated = self._record_search(team_id)
            results.append(updated or snapshot)
        return results

    def _search_query(self, session: Session, term: str, country: Optional[str], league: Optional[str]):
        # Casefold in Python: SQLite's LIKE only folds ASCII
        like = f"%{escape_like(term.casefold())}%"
        query = session.query(Team).filter(Team.search_text.like(like, escape='\\'))
        if country:
            query = query.filter(func.lower(Team.country) == country.strip().lower())
        if league:
            query = query.filter(func.lower(Team.league) == league.strip().lower())
        return query.order_by(Team.popularity.desc(), Team.search_count.desc(), Team.name.asc())

    def _record_search(self, team_id: str) -> Optional[Dict[str, Any]]:
        """Increment one team's counter in its own transaction."""
        try:
            with self.session_scope() as session:
                # Atomic increment so concurrent searches never lose a count
                session.query(Team).filter(Team.id == team_id).update(
                    {Team.search_count: Team.search_count + 1},
                    synchronize_session=False
                )
                team = session.get(Team, team_id)
                if team is None:
                    return None
                session.refresh(team)
                team.refresh_popularity(decay=self.decay_factor)
                return team.to_dict()
        except SQLAlchemyError as exc:
            logger.warning(f"⚠️ Search counter update failed for team {team_id}: {exc}")
            return None

    # =========================================================================
    # LISTINGS
    # =========================================================================

    def popular(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Most popular teams, for autocomplete suggestions."""
        key = f"popular:{limit}"
        if self.listing_cache is not None:
            cached = self.listing_cache.get(key)
            if cached is not None:
                return cached

        with self.session_scope() as session:
            teams = (
                session.query(Team)
                .order_by(Team.popularity.desc(), Team.search_count.desc(), Team.name.asc())
                .limit(limit)
                .all()
            )
            results = [team.to_dict() for team in teams]

        if self.listing_cache is not None:
            self.listing_cache.set(key, results)
        return results

    def catalog_stats(self) -> Dict[str, Any]:
        """Aggregate statistics about cached teams (daily cache)."""
        key = 'stats:catalog'
        if self.stats_cache is not None:
            cached = self.stats_cache.get(key)
            if cached is not None:
                return cached

        with self.session_scope() as session:
            total_teams, total_searches, avg_popularity = session.query(
                func.count(Team.id),
                func.coalesce(func.sum(Team.search_count), 0),
                func.coalesce(func.avg(Team.popularity), 0.0),
            ).one()
            countries = sorted(
                row[0] for row in session.query(Team.country).distinct().all() if row[0]
            )
            top_teams = [
                {
                    'name': team.name,
                    'country': team.country,
                    'searchCount': team.search_count,
                    'popularity': round(team.popularity or 0.0, 4),
                }
                for team in session.query(Team)
                .order_by(Team.search_count.desc(), Team.name.asc())
                .limit(10)
                .all()
            ]

        stats = {
            'overview': {
                'totalTeams': int(total_teams or 0),
                'totalSearches': int(total_searches or 0),
                'countries': countries,
                'avgPopularity': round(float(avg_popularity or 0.0), 4),
            },
            'topTeams': top_teams,
            'countriesCount': len(countries),
        }

        if self.stats_cache is not None:
            self.stats_cache.set(key, stats)
        return stats
