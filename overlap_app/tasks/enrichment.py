"""
Background enrichment: persisting teams discovered through the external
provider without holding up the search response.

Usage:
    queue = EnrichmentQueue(max_workers=2)
    queue.submit(persist_discovered_teams, provider_teams)

    # tests / shutdown
    queue.drain(timeout=5)

Writes are at-most-once per discovery and duplicate-safe: the unique index
on Team.external_id rejects a racing second insert, which is logged and
dropped. Pending work is lost if the process exits.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Set

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..database import get_db_session
from ..errors import PersistenceConflictError
from ..models import Team, dedupe_aliases, utcnow
from ..providers.base import ProviderTeam


logger = logging.getLogger(__name__)


class EnrichmentQueue:
    """Explicit fire-and-forget task queue backed by a thread pool."""

    def __init__(self, max_workers: int = 2, name: str = "enrichment"):
        self.name = name
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        """Schedule `fn(*args, **kwargs)`; never blocks on the work itself."""
        future = self._executor.submit(fn, *args, **kwargs)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._on_done)
        return future

    def _on_done(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(f"❌ {self.name} task failed: {exc!r}")

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for every task scheduled so far.

        Returns:
            True if all finished within `timeout`
        """
        with self._lock:
            snapshot = list(self._pending)
        if not snapshot:
            return True
        _done, not_done = wait(snapshot, timeout=timeout)
        return not not_done

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


# =============================================================================
# PERSISTENCE
# =============================================================================

@dataclass
class PersistResult:
    created: int = 0
    refreshed: int = 0
    skipped: int = 0
    conflicts: int = 0
    failed: int = 0


def team_from_provider(record: ProviderTeam) -> Team:
    """Build a new canonical Team from a provider record."""
    venue = None
    if record.venue_name:
        venue = {'name': record.venue_name, 'capacity': record.venue_capacity}
    team = Team(
        external_id=record.external_id,
        name=record.name,
        provider_name=record.name,
        aliases=dedupe_aliases([record.name, record.code] + list(record.aliases)),
        code=record.code,
        league=record.league,
        founded=record.founded,
        logo=record.logo,
        country=record.country,
        city=record.city,
        venue=venue,
        search_count=1,
        last_updated=utcnow(),
        source=record.source,
    )
    team.refresh_popularity()
    return team


def refresh_from_provider(team: Team, record: ProviderTeam) -> None:
    """Update provider-owned fields of a stale team. Links are kept."""
    team.provider_name = record.name
    for alias in (record.name, record.code):
        if alias:
            team.add_alias(alias)
    team.code = record.code or team.code
    team.founded = record.founded or team.founded
    team.logo = record.logo or team.logo
    team.country = record.country or team.country
    team.city = team.city or record.city
    if not team.venue and record.venue_name:
        team.venue = {'name': record.venue_name, 'capacity': record.venue_capacity}
    team.last_updated = utcnow()
    team.refresh_popularity()


def insert_team(record: ProviderTeam, session_scope=get_db_session) -> None:
    """
    Insert one discovered team in a fresh transaction.

    Raises:
        PersistenceConflictError: the external id is already stored
    """
    try:
        with session_scope() as session:
            session.add(team_from_provider(record))
    except IntegrityError as exc:
        raise PersistenceConflictError(record.external_id) from exc


def persist_discovered_teams(records: Iterable[ProviderTeam], session_scope=get_db_session) -> PersistResult:
    """
    Store provider teams not yet in the catalog; refresh stale ones.

    Duplicate-key conflicts are logged and discarded, never retried.
    """
    result = PersistResult()

    for record in records:
        try:
            outcome = _persist_one(record, session_scope)
        except PersistenceConflictError as exc:
            result.conflicts += 1
            logger.info(f"⏭️ Discarding duplicate discovery: {exc}")
            continue
        except SQLAlchemyError as exc:
            result.failed += 1
            logger.error(f"❌ Error caching team {record.name}: {exc}")
            continue

        if outcome == 'created':
            result.created += 1
            logger.info(f"💾 Cached new team: {record.name} ({record.country})")
        elif outcome == 'refreshed':
            result.refreshed += 1
            logger.info(f"🔄 Refreshed team: {record.name}")
        else:
            result.skipped += 1

    return result


def _persist_one(record: ProviderTeam, session_scope) -> str:
    # Existence check and insert run in separate transactions so the
    # insert starts as a write and the unique index arbitrates races
    with session_scope() as session:
        existing = session.query(Team).filter_by(external_id=record.external_id).first()
        if existing is not None:
            if not existing.is_stale():
                return 'skipped'
            refresh_from_provider(existing, record)
            return 'refreshed'

    insert_team(record, session_scope)
    return 'created'
