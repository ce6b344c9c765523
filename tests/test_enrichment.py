import threading
from datetime import timedelta

import pytest

from conftest import add_team, load_team, provider_team
from overlap_app.database import get_db_session
from overlap_app.errors import PersistenceConflictError
from overlap_app.models import Team, utcnow
from overlap_app.tasks.enrichment import EnrichmentQueue, insert_team, persist_discovered_teams


def team_count() -> int:
    with get_db_session() as session:
        return session.query(Team).count()


def test_new_team_is_created(db):
    result = persist_discovered_teams([provider_team("541", "Real Madrid", code="REA")])

    assert result.created == 1
    team = load_team("541")
    assert team.name == "Real Madrid"
    assert team.source == "fake"
    assert team.aliases == ["Real Madrid", "REA"]


def test_new_team_starts_with_popularity_matching_its_count(db):
    persist_discovered_teams([provider_team("541", "Real Madrid")])

    team = load_team("541")
    assert team.search_count == 1
    assert team.popularity == pytest.approx(1.0, rel=1e-3)
    assert team.popularity == pytest.approx(team.compute_popularity(), rel=1e-3)


def test_fresh_existing_team_is_skipped(db):
    add_team("Real Madrid CF", "541")

    result = persist_discovered_teams([provider_team("541", "Real Madrid")])

    assert result.skipped == 1
    assert load_team("541").name == "Real Madrid CF"


def test_stale_team_is_refreshed_keeping_canonical_name(db):
    add_team("Real Madrid CF", "541", last_updated=utcnow() - timedelta(days=45))

    result = persist_discovered_teams([provider_team("541", "Real Madrid", logo="https://logo")])

    assert result.refreshed == 1
    team = load_team("541")
    assert team.name == "Real Madrid CF"
    assert team.provider_name == "Real Madrid"
    assert team.logo == "https://logo"
    assert "Real Madrid" in team.aliases
    assert not team.is_stale()


def test_stale_team_refresh_recomputes_popularity(db):
    add_team("Real Madrid CF", "541", search_count=4, last_updated=utcnow() - timedelta(days=45))

    persist_discovered_teams([provider_team("541", "Real Madrid")])

    assert load_team("541").popularity == pytest.approx(4.0, rel=1e-3)


def test_duplicate_insert_raises_conflict(db):
    record = provider_team("541", "Real Madrid")
    insert_team(record)

    with pytest.raises(PersistenceConflictError):
        insert_team(record)
    assert team_count() == 1


def test_concurrent_writes_leave_exactly_one_record(db):
    record = provider_team("541", "Real Madrid")
    barrier = threading.Barrier(2)
    results = []
    errors = []

    def worker():
        try:
            barrier.wait()
            results.append(persist_discovered_teams([record]))
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert team_count() == 1
    assert sum(r.created for r in results) == 1
    assert sum(r.created + r.skipped + r.conflicts for r in results) == 2


def test_queue_runs_tasks_and_drains():
    queue = EnrichmentQueue(max_workers=2)
    done = []
    try:
        for i in range(5):
            queue.submit(done.append, i)
        assert queue.drain(timeout=5)
        assert sorted(done) == [0, 1, 2, 3, 4]
        assert queue.pending == 0
    finally:
        queue.shutdown()


def test_failing_task_does_not_break_the_queue():
    queue = EnrichmentQueue(max_workers=1)

    def boom():
        raise RuntimeError("boom")

    try:
        failed = queue.submit(boom)
        ok = queue.submit(lambda: "fine")
        assert queue.drain(timeout=5)
        assert isinstance(failed.exception(), RuntimeError)
        assert ok.result() == "fine"
    finally:
        queue.shutdown()
