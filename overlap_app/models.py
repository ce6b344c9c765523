"""
================================================================================
Overlap - Database Models
================================================================================
SQLAlchemy models for the team catalog.

  - Team (Canonical): one authoritative record per club, keyed by the
    provider's external id. Carries aliases, the provider-specific name and
    an embedded snapshot of its home venue.
  - Venue: stadium with optional coordinates. Coordinates are always either
    a complete, valid (longitude, latitude) pair or absent.

Popularity is derived: only Team.refresh_popularity() writes it.
================================================================================
"""

from datetime import datetime, timedelta, timezone
import math
import uuid
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import (
    Column, String, Text, Integer, DateTime, Boolean, ForeignKey, Float, JSON, Index, event
)
from sqlalchemy.orm import relationship, declarative_base, declared_attr


Base = declarative_base()

POPULARITY_DECAY = 0.1
STALE_AFTER = timedelta(days=30)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def validate_coordinates(coords: Any) -> Optional[Tuple[float, float]]:
    """
    Return (longitude, latitude) if `coords` is a complete, valid pair.

    Anything else (None, wrong length, non-numeric, NaN/inf, out of range)
    returns None.
    """
    if coords is None or isinstance(coords, (str, bytes)):
        return None
    try:
        values = list(coords)
    except TypeError:
        return None
    if len(values) != 2:
        return None
    try:
        lon, lat = float(values[0]), float(values[1])
    except (TypeError, ValueError):
        return None
    if isinstance(values[0], bool) or isinstance(values[1], bool):
        return None
    if not (math.isfinite(lon) and math.isfinite(lat)):
        return None
    if not (-180.0 <= lon <= 180.0 and -90.0 <= lat <= 90.0):
        return None
    return lon, lat


def dedupe_aliases(aliases: Iterable[Optional[str]]) -> List[str]:
    """Drop blanks and duplicates, keeping first occurrence order."""
    seen = set()
    result = []
    for alias in aliases:
        if not alias:
            continue
        alias = alias.strip()
        if alias and alias not in seen:
            seen.add(alias)
            result.append(alias)
    return result


# =============================================================================
# MIXINS
# =============================================================================

class TimestampMixin:
    """Adds created_at and updated_at timestamps to models."""
    @declared_attr
    def created_at(cls):
        return Column(DateTime, default=utcnow, nullable=False)

    @declared_attr
    def updated_at(cls):
        return Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


# =============================================================================
# VENUES
# =============================================================================

class Venue(Base, TimestampMixin):
    """Stadium record, addressable by id from a team's venue snapshot."""
    __tablename__ = 'venues'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False, index=True)
    city = Column(String(255))
    country = Column(String(100), index=True)
    capacity = Column(Integer)
    longitude = Column(Float, nullable=True)
    latitude = Column(Float, nullable=True)
    is_active = Column(Boolean, default=True)

    teams = relationship("Team", back_populates="linked_venue")

    __table_args__ = (
        Index('idx_venues_country_city', 'country', 'city'),
    )

    def __init__(self, coordinates: Optional[Sequence[float]] = None, **kwargs):
        super().__init__(**kwargs)
        if coordinates is not None:
            self.coordinates = coordinates

    @property
    def coordinates(self) -> Optional[Tuple[float, float]]:
        """(longitude, latitude) or None. Never a partial pair."""
        return validate_coordinates((self.longitude, self.latitude))

    @coordinates.setter
    def coordinates(self, value: Optional[Sequence[float]]) -> None:
        if value is None:
            self.longitude = None
            self.latitude = None
            return
        valid = validate_coordinates(value)
        if valid is None:
            raise ValueError(f"Invalid coordinates for venue '{self.name}': {value!r}")
        self.longitude, self.latitude = valid

    @property
    def has_coordinates(self) -> bool:
        return self.coordinates is not None

    def to_dict(self) -> Dict[str, Any]:
        coords = self.coordinates
        return {
            'id': self.id,
            'name': self.name,
            'city': self.city,
            'country': self.country,
            'capacity': self.capacity,
            'coordinates': list(coords) if coords else None,
        }

    def __repr__(self):
        return f"<Venue(name='{self.name}', country='{self.country}')>"


# =============================================================================
# TEAMS
# =============================================================================

class Team(Base, TimestampMixin):
    """Canonical team record."""
    __tablename__ = 'teams'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    external_id = Column(String(64), unique=True, nullable=False, index=True)

    name = Column(String(255), nullable=False, index=True)
    provider_name = Column(String(255), index=True)  # e.g. "Bayern München" from API-Sports
    aliases = Column(JSON, default=list)
    code = Column(String(10))  # LIV, MUN
    # Casefolded name/provider name/code/aliases, one per line; kept in sync on flush
    search_text = Column(Text)
    league = Column(String(100), index=True)
    founded = Column(Integer)
    logo = Column(String(500))

    country = Column(String(100), nullable=False, index=True)
    city = Column(String(255))

    # Embedded snapshot {name, capacity, coordinates?, venue_id?}
    venue = Column(JSON, nullable=True)
    venue_id = Column(String(36), ForeignKey('venues.id'), nullable=True)

    search_count = Column(Integer, default=1, nullable=False)
    popularity = Column(Float, default=0.0, nullable=False)
    last_updated = Column(DateTime, default=utcnow, nullable=False)
    source = Column(String(50), default='seed')

    linked_venue = relationship("Venue", back_populates="teams")

    __table_args__ = (
        Index('idx_teams_country_name', 'country', 'name'),
        Index('idx_teams_search_count', 'search_count'),
    )

    def __init__(self, **kwargs):
        kwargs['aliases'] = dedupe_aliases(kwargs.get('aliases') or [])
        kwargs.pop('popularity', None)
        super().__init__(**kwargs)

    # -------------------------------------------------------------------------
    # Aliases
    # -------------------------------------------------------------------------

    def add_alias(self, alias: str) -> bool:
        """Append an alias unless already present. Returns True if added."""
        current = list(self.aliases or [])
        if not alias or alias in current:
            return False
        # Reassign so the JSON column is flagged dirty
        self.aliases = current + [alias]
        return True

    # -------------------------------------------------------------------------
    # Popularity
    # -------------------------------------------------------------------------

    def compute_popularity(self, now: Optional[datetime] = None, decay: float = POPULARITY_DECAY) -> float:
        now = now or utcnow()
        last = as_utc(self.last_updated) or now
        days_since_update = max((now - last).total_seconds(), 0.0) / 86400.0
        return (self.search_count or 0) * (1.0 / (1.0 + days_since_update * decay))

    def refresh_popularity(self, now: Optional[datetime] = None, decay: float = POPULARITY_DECAY) -> float:
        """Recompute popularity from the current search count and data age."""
        self.popularity = self.compute_popularity(now, decay)
        return self.popularity

    def is_stale(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        last = as_utc(self.last_updated)
        return last is None or last < now - STALE_AFTER

    # -------------------------------------------------------------------------
    # Venue snapshot
    # -------------------------------------------------------------------------

    @property
    def venue_coordinates(self) -> Optional[Tuple[float, float]]:
        if not self.venue:
            return None
        return validate_coordinates(self.venue.get('coordinates'))

    @property
    def has_linked_venue(self) -> bool:
        """True only when the snapshot carries valid coordinates."""
        return self.venue_coordinates is not None

    def link_venue(self, venue: Any) -> None:
        """
        Copy a venue (Venue row or detached candidate) into the snapshot.
        Coordinates are copied only when complete and valid.
        """
        snapshot = {
            'name': venue.name,
            'capacity': venue.capacity,
            'venue_id': venue.id,
        }
        coords = validate_coordinates(venue.coordinates)
        if coords:
            snapshot['coordinates'] = [coords[0], coords[1]]
        self.venue = snapshot
        self.venue_id = venue.id
        if not self.city and venue.city:
            self.city = venue.city

    def _search_fields(self) -> List[str]:
        fields = [self.name, self.provider_name, self.code] + list(self.aliases or [])
        return [value for value in fields if value]

    def build_search_text(self) -> str:
        return '\n'.join(value.casefold() for value in self._search_fields())

    def matches(self, term: str) -> bool:
        """Case-insensitive substring match over name, aliases, provider name, code."""
        needle = term.casefold()
        return any(needle in value.casefold() for value in self._search_fields())

    def to_dict(self) -> Dict[str, Any]:
        venue = self.venue or {}
        return {
            'id': self.external_id,
            'name': self.name,
            'logo': self.logo,
            'country': self.country,
            'city': self.city,
            'source': self.source,
            'code': self.code,
            'league': self.league,
            'venue': venue.get('name'),
            'popularity': round(self.popularity or 0.0, 4),
            'searchCount': self.search_count,
        }

    def __repr__(self):
        return f"<Team(name='{self.name}', external_id='{self.external_id}')>"


@event.listens_for(Team, 'before_insert')
@event.listens_for(Team, 'before_update')
def _sync_search_text(mapper, connection, target):
    target.search_text = target.build_search_text()
