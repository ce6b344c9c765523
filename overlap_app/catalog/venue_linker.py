"""
================================================================================
Overlap - Venue Linker
================================================================================
Links teams to venue records that carry coordinates.

Matcher chain (fixed priority, stop at first venue WITH coordinates):
  1. ExactNameByCountry      recorded/known venue name, exact then partial
  2. TeamNameRegexByCountry  team name inside a venue name ("Estadio Benfica")
  3. CityFallback            any venue in the team's city (ambiguous!)
  4. NameVariationStrip      drop FC/CF/Stadium/... tokens and retry 1 and 2

All matchers are scoped to the team's country. A venue found without
coordinates is remembered; if nothing better turns up the team is linked to
it by name only and reported as found-no-coordinates.

The city fallback can pick a neighbour's stadium when two clubs share a
city. It is kept as the lowest-priority strategy and every link it makes is
listed under `ambiguous` in the report for manual review.
================================================================================
"""

import re
import logging
import unicodedata
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from rapidfuzz import fuzz, process
from sqlalchemy import func

from ..cache import CachePool
from ..data.venue_hints import COUNTRY_ALIASES, TEAM_VENUE_HINTS
from ..database import get_db_session
from ..models import Team, Venue, validate_coordinates
from .name_resolver import SessionScope


logger = logging.getLogger(__name__)

LINKED_NOW = 'linkedNow'
ALREADY_LINKED = 'alreadyLinked'
FOUND_NO_COORDINATES = 'foundNoCoordinates'
NOT_FOUND = 'notFound'
ERRORS = 'errors'
AMBIGUOUS = 'ambiguous'

SAMPLE_CATEGORIES = (LINKED_NOW, FOUND_NO_COORDINATES, NOT_FOUND, AMBIGUOUS, ERRORS)

# Legal-form and stadium-type tokens that rarely identify a venue on their own
GENERIC_TOKENS = {
    'fc', 'cf', 'ac', 'afc', 'sc', 'cd', 'ud', 'rc', 'rcd', 'sd', 'ca', 'sv',
    'vfl', 'vfb', 'tsg', 'fk', 'sk', 'bk', 'ssc', 'as', 'club', 'de', 'del',
    'la', 'el', 'the', 'united', 'city', 'town', 'athletic', 'stadium',
    'stadion', 'estadio', 'estadi', 'estádio', 'stade', 'stadio', 'arena',
    'park', 'ground', 'municipal',
}
NUMBER_TOKEN = re.compile(r'^\d+\.?$')
MIN_NAME_LENGTH = 3


def fold(text: Optional[str]) -> str:
    """Accent- and case-insensitive form used for all comparisons."""
    if not text:
        return ''
    decomposed = unicodedata.normalize('NFKD', text)
    stripped = ''.join(c for c in decomposed if not unicodedata.combining(c))
    return re.sub(r'\s+', ' ', stripped).strip().casefold()


def strip_generic_tokens(name: Optional[str]) -> str:
    """'Real Madrid CF' -> 'Real Madrid', 'Estadio de Mestalla' -> 'Mestalla'."""
    if not name:
        return ''
    kept = [
        token for token in name.split()
        if fold(token.strip('.,')) not in GENERIC_TOKENS and not NUMBER_TOKEN.match(token)
    ]
    return ' '.join(kept).strip()


def country_variants(country: Optional[str]) -> Set[str]:
    if not country:
        return set()
    key = country.strip().lower()
    return {key} | {alias.lower() for alias in COUNTRY_ALIASES.get(key, [])}


def _usable(names: Iterable[Optional[str]]) -> List[str]:
    seen = []
    for name in names:
        if name and len(fold(name)) >= MIN_NAME_LENGTH and name not in seen:
            seen.append(name)
    return seen


# =============================================================================
# DATA CARRIERS
# =============================================================================

@dataclass
class VenueCandidate:
    """Detached view of a Venue row, safe to reuse across sessions."""
    id: str
    name: str
    city: Optional[str]
    country: Optional[str]
    capacity: Optional[int]
    coordinates: Optional[Tuple[float, float]]

    @classmethod
    def from_venue(cls, venue: Venue) -> "VenueCandidate":
        return cls(venue.id, venue.name, venue.city, venue.country, venue.capacity, venue.coordinates)

    @property
    def has_coordinates(self) -> bool:
        return validate_coordinates(self.coordinates) is not None


@dataclass
class LinkContext:
    """What the matchers know about the team being linked."""
    name: str
    country: Optional[str]
    city: Optional[str]
    provider_name: Optional[str]
    aliases: List[str]
    recorded_venue_name: Optional[str]
    venues: Sequence[VenueCandidate]
    hint_names: List[str] = field(default_factory=list)

    @property
    def team_names(self) -> List[str]:
        return _usable([self.name, self.provider_name])


@dataclass
class LinkOutcome:
    status: str
    venue: Optional[VenueCandidate] = None
    strategy: Optional[str] = None
    ambiguous: bool = False


# =============================================================================
# MATCHERS
# =============================================================================

def exact_then_partial(venues: Sequence[VenueCandidate], names: Iterable[str]) -> Iterator[VenueCandidate]:
    """For each name: venues named exactly that, then venues containing it."""
    for name in names:
        target = fold(name)
        pattern = re.compile(re.escape(target))
        for venue in venues:
            if fold(venue.name) == target:
                yield venue
        for venue in venues:
            if pattern.search(fold(venue.name)):
                yield venue


def name_contains(venues: Sequence[VenueCandidate], names: Iterable[str]) -> Iterator[VenueCandidate]:
    """Venues whose name contains one of `names`."""
    for name in names:
        pattern = re.compile(r'\b' + re.escape(fold(name)) + r'\b')
        for venue in venues:
            if pattern.search(fold(venue.name)):
                yield venue


class VenueMatcher(ABC):
    """One strategy in the linking chain."""

    name: str = "base"
    ambiguous: bool = False

    @abstractmethod
    def candidates(self, ctx: LinkContext) -> Iterator[VenueCandidate]:
        """Yield venues in preference order."""

    def __repr__(self):
        return f"<{self.__class__.__name__}>"


class ExactNameByCountry(VenueMatcher):
    name = "exact_name"

    def candidates(self, ctx: LinkContext) -> Iterator[VenueCandidate]:
        names = _usable([ctx.recorded_venue_name] + ctx.hint_names)
        yield from exact_then_partial(ctx.venues, names)


class TeamNameRegexByCountry(VenueMatcher):
    name = "team_name"

    def candidates(self, ctx: LinkContext) -> Iterator[VenueCandidate]:
        yield from name_contains(ctx.venues, ctx.team_names)


class CityFallback(VenueMatcher):
    name = "city"
    ambiguous = True

    def candidates(self, ctx: LinkContext) -> Iterator[VenueCandidate]:
        city = fold(ctx.city)
        if len(city) < MIN_NAME_LENGTH:
            return
        for venue in ctx.venues:
            if fold(venue.city) == city:
                yield venue
        pattern = re.compile(re.escape(city))
        for venue in ctx.venues:
            if venue.city and pattern.search(fold(venue.city)):
                yield venue


class NameVariationStrip(VenueMatcher):
    name = "name_variation"

    def candidates(self, ctx: LinkContext) -> Iterator[VenueCandidate]:
        venue_variations = _usable(
            stripped for stripped in [strip_generic_tokens(ctx.recorded_venue_name)]
            if stripped and stripped != ctx.recorded_venue_name
        )
        team_variations = _usable(
            stripped for stripped in (strip_generic_tokens(n) for n in ctx.team_names)
            if stripped and stripped not in ctx.team_names
        )
        yield from exact_then_partial(ctx.venues, venue_variations)
        yield from name_contains(ctx.venues, team_variations)


DEFAULT_MATCHERS: Tuple[VenueMatcher, ...] = (
    ExactNameByCountry(),
    TeamNameRegexByCountry(),
    CityFallback(),
    NameVariationStrip(),
)


# =============================================================================
# REPORT
# =============================================================================

@dataclass
class LinkReport:
    """Reconciliation report for a batch linking run."""
    sample_limit: int = 50
    total: int = 0
    linked_now: int = 0
    already_linked: int = 0
    found_no_coordinates: int = 0
    not_found: int = 0
    errors: int = 0
    ambiguous: int = 0
    samples: Dict[str, List[Dict[str, Any]]] = field(
        default_factory=lambda: {category: [] for category in SAMPLE_CATEGORIES}
    )

    _COUNTERS = {
        LINKED_NOW: 'linked_now',
        ALREADY_LINKED: 'already_linked',
        FOUND_NO_COORDINATES: 'found_no_coordinates',
        NOT_FOUND: 'not_found',
        ERRORS: 'errors',
        AMBIGUOUS: 'ambiguous',
    }

    def record(self, category: str, entry: Optional[Dict[str, Any]] = None) -> None:
        attr = self._COUNTERS[category]
        setattr(self, attr, getattr(self, attr) + 1)
        if entry is not None and category in self.samples:
            bucket = self.samples[category]
            if len(bucket) < self.sample_limit:
                bucket.append(entry)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total': self.total,
            LINKED_NOW: self.linked_now,
            ALREADY_LINKED: self.already_linked,
            FOUND_NO_COORDINATES: self.found_no_coordinates,
            NOT_FOUND: self.not_found,
            ERRORS: self.errors,
            AMBIGUOUS: self.ambiguous,
            'samples': {category: list(entries) for category, entries in self.samples.items() if entries},
        }


# =============================================================================
# LINKER
# =============================================================================

class VenueLinker:
    """Runs the matcher chain over teams and records what happened."""

    def __init__(
        self,
        session_scope: SessionScope = get_db_session,
        matchers: Optional[Sequence[VenueMatcher]] = None,
        venue_hints: Optional[Dict[str, List[str]]] = None,
        query_cache: Optional[CachePool] = None,
        sample_limit: int = 50,
        suggestion_cutoff: float = 60.0
    ):
        """
        Args:
            session_scope: Context manager factory yielding a Session
            matchers: Strategy chain (defaults to the four standard matchers)
            venue_hints: {club name: [venue names]} for ExactNameByCountry
            query_cache: Search page pool to invalidate after links change
            sample_limit: Max report samples per category
            suggestion_cutoff: rapidfuzz score needed for a not-found suggestion
        """
        self.session_scope = session_scope
        self.matchers = tuple(matchers) if matchers is not None else DEFAULT_MATCHERS
        hints = TEAM_VENUE_HINTS if venue_hints is None else venue_hints
        self.venue_hints = {fold(team): list(names) for team, names in hints.items()}
        self.query_cache = query_cache
        self.sample_limit = sample_limit
        self.suggestion_cutoff = suggestion_cutoff

    # -------------------------------------------------------------------------
    # Single team
    # -------------------------------------------------------------------------

    def _hint_names(self, team: Team) -> List[str]:
        keys = [team.name, team.provider_name] + list(team.aliases or [])
        keys += [strip_generic_tokens(key) for key in list(keys)]
        names: List[str] = []
        for key in keys:
            for venue_name in self.venue_hints.get(fold(key), []):
                if venue_name not in names:
                    names.append(venue_name)
        return names

    def build_context(self, team: Team, venues: Sequence[VenueCandidate]) -> LinkContext:
        return LinkContext(
            name=team.name,
            country=team.country,
            city=team.city,
            provider_name=team.provider_name,
            aliases=list(team.aliases or []),
            recorded_venue_name=(team.venue or {}).get('name'),
            venues=venues,
            hint_names=self._hint_names(team),
        )

    def link_team(self, team: Team, venues: Sequence[VenueCandidate]) -> LinkOutcome:
        """
        Link one team in place. Never touches a team whose snapshot already
        has valid coordinates.
        """
        if team.has_linked_venue:
            return LinkOutcome(ALREADY_LINKED)

        ctx = self.build_context(team, venues)
        fallback: Optional[Tuple[VenueCandidate, VenueMatcher]] = None

        for matcher in self.matchers:
            for venue in matcher.candidates(ctx):
                if venue.has_coordinates:
                    team.link_venue(venue)
                    return LinkOutcome(LINKED_NOW, venue, matcher.name, matcher.ambiguous)
                if fallback is None:
                    fallback = (venue, matcher)

        if fallback is not None:
            venue, matcher = fallback
            team.link_venue(venue)
            return LinkOutcome(FOUND_NO_COORDINATES, venue, matcher.name, matcher.ambiguous)

        return LinkOutcome(NOT_FOUND)

    # -------------------------------------------------------------------------
    # Batch
    # -------------------------------------------------------------------------

    def _venues_for(self, session, country: Optional[str], cache: Dict[frozenset, List[VenueCandidate]]) -> List[VenueCandidate]:
        variants = frozenset(country_variants(country))
        if variants not in cache:
            rows = []
            if variants:
                rows = (
                    session.query(Venue)
                    .filter(func.lower(Venue.country).in_(list(variants)))
                    .filter(Venue.is_active.isnot(False))
                    .order_by(Venue.name.asc(), Venue.id.asc())
                    .all()
                )
            cache[variants] = [VenueCandidate.from_venue(venue) for venue in rows]
        return cache[variants]

    def _suggest(self, team_name: str, venues: Sequence[VenueCandidate]) -> Optional[Dict[str, Any]]:
        if not venues:
            return None
        match = process.extractOne(
            team_name,
            [venue.name for venue in venues],
            scorer=fuzz.token_set_ratio,
            processor=fold,
            score_cutoff=self.suggestion_cutoff,
        )
        if match is None:
            return None
        name, score, _index = match
        return {'venue': name, 'score': round(score, 1)}

    def run(self, country: Optional[str] = None, team_ids: Optional[Sequence[str]] = None) -> LinkReport:
        """
        Link every team (optionally one country or explicit ids), one team
        per transaction. Safe to re-run after a crash.
        """
        report = LinkReport(sample_limit=self.sample_limit)

        with self.session_scope() as session:
            query = session.query(Team.id)
            if country:
                query = query.filter(func.lower(Team.country).in_(list(country_variants(country))))
            if team_ids is not None:
                query = query.filter(Team.id.in_(list(team_ids)))
            ids = [row[0] for row in query.order_by(Team.name.asc(), Team.id.asc()).all()]

        logger.info(f"🔍 Linking venues for {len(ids)} teams")
        venue_cache: Dict[frozenset, List[VenueCandidate]] = {}

        for team_id in ids:
            team_name = team_id
            try:
                with self.session_scope() as session:
                    team = session.get(Team, team_id)
                    if team is None:
                        continue
                    team_name = team.name
                    venues = self._venues_for(session, team.country, venue_cache)
                    outcome = self.link_team(team, venues)
                    entry = {
                        'team': team.name,
                        'externalId': team.external_id,
                        'city': team.city,
                        'country': team.country,
                    }
            except Exception as exc:
                logger.exception(f"❌ Venue linking failed for {team_name}")
                report.total += 1
                report.record(ERRORS, {'team': team_name, 'error': str(exc)})
                continue

            report.total += 1
            if outcome.venue is not None:
                entry.update({'venue': outcome.venue.name, 'strategy': outcome.strategy})
            if outcome.status == NOT_FOUND:
                suggestion = self._suggest(team_name, venues)
                if suggestion:
                    entry['suggestion'] = suggestion

            report.record(outcome.status, entry if outcome.status != ALREADY_LINKED else None)
            if outcome.ambiguous:
                report.record(AMBIGUOUS, entry)

            if report.linked_now and report.linked_now % 10 == 0 and outcome.status == LINKED_NOW:
                logger.info(f"✅ Linked {report.linked_now} teams so far...")

        if self.query_cache is not None and (report.linked_now or report.found_no_coordinates):
            self.query_cache.delete_by_pattern('search_*')

        logger.info(
            f"📊 Venue linking: {report.linked_now} linked, {report.already_linked} already linked, "
            f"{report.found_no_coordinates} without coordinates, {report.not_found} not found, "
            f"{report.errors} errors ({report.ambiguous} via city fallback)"
        )
        return report
