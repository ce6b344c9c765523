from datetime import timedelta

import pytest

from conftest import add_team, load_team
from overlap_app.cache import CachePool
from overlap_app.catalog.name_resolver import NameResolver
from overlap_app.database import get_db_session
from overlap_app.models import Team, utcnow


@pytest.fixture
def resolver(db, clock):
    return NameResolver(
        CachePool("resolver", 600, clock=clock),
        listing_cache=CachePool("listing", 3600, clock=clock),
        stats_cache=CachePool("daily", 86400, clock=clock),
    )


def test_resolves_provider_name(resolver):
    add_team("FC Bayern München", "157", country="Germany", provider_name="Bayern München")

    resolution = resolver.resolve_detailed("Bayern München")

    assert resolution.name == "FC Bayern München"
    assert resolution.strategy == "provider_name"
    assert resolution.resolved is True
    assert resolution.external_id == "157"


def test_resolves_canonical_name_and_alias(resolver):
    add_team("FC Bayern München", "157", country="Germany", aliases=["Bayern", "FC Bayern München"])

    assert resolver.resolve("FC Bayern München") == "FC Bayern München"
    detailed = resolver.resolve_detailed("Bayern")
    assert detailed.name == "FC Bayern München"
    assert detailed.strategy == "alias"


def test_alias_match_is_exact_membership(resolver):
    add_team("Real Madrid CF", "541", aliases=["Real Madrid"])

    # Substring of an alias is not an alias
    assert resolver.resolve("Real") == "Real"


def test_unresolved_input_is_returned_unchanged(resolver):
    detailed = resolver.resolve_detailed("  Unknown XI ")

    assert detailed.name == "  Unknown XI "
    assert detailed.resolved is False
    assert detailed.strategy == "unresolved"


def test_resolution_is_cached(resolver):
    add_team("Liverpool FC", "40", country="England", aliases=["Liverpool"])
    assert resolver.resolve("Liverpool") == "Liverpool FC"

    with get_db_session() as session:
        session.query(Team).delete()

    assert resolver.resolve("Liverpool") == "Liverpool FC"


def test_apply_name_map_is_idempotent(resolver):
    add_team("FC Barcelona", "529")

    first = resolver.apply_name_map({"Barcelona": "FC Barcelona"})
    second = resolver.apply_name_map({"Barcelona": "FC Barcelona"})

    assert first.updated == 1
    assert second.updated == 0
    assert second.unchanged == 1

    team = load_team("529")
    assert team.provider_name == "Barcelona"
    assert team.aliases.count("Barcelona") == 1


def test_apply_name_map_counts_unmatched_and_invalid(resolver):
    add_team("FC Barcelona", "529")

    result = resolver.apply_name_map({
        "Barcelona": "FC Barcelona",
        "Nowhere United": "Nowhere FC",
        "Broken": 42,
    })

    assert result.to_dict() == {
        "updatedCount": 1,
        "unchangedCount": 0,
        "unmatchedCount": 1,
        "failedCount": 1,
    }


def test_apply_name_map_drops_cached_resolutions(resolver):
    add_team("FC Barcelona", "529")
    assert resolver.resolve("Barça") == "Barça"

    resolver.apply_name_map({"Barça": "FC Barcelona"})

    assert resolver.resolve("Barça") == "FC Barcelona"


def test_search_matches_aliases_case_insensitively(resolver):
    add_team("Manchester United", "33", country="England", code="MUN", aliases=["Man Utd"])
    add_team("Manchester City", "50", country="England", code="MCI")

    names = {row["name"] for row in resolver.search("man utd")}
    assert names == {"Manchester United"}

    by_code = resolver.search("mci")
    assert [row["name"] for row in by_code] == ["Manchester City"]


def test_search_filters_by_country_and_league(resolver):
    add_team("Real Madrid CF", "541", country="Spain", league="La Liga")
    add_team("Real Sociedad", "548", country="Spain", league="La Liga")
    add_team("Real Salt Lake", "1616", country="USA", league="MLS")

    spain = {row["name"] for row in resolver.search("real", country="spain")}
    assert spain == {"Real Madrid CF", "Real Sociedad"}

    mls = [row["name"] for row in resolver.search("real", league="MLS")]
    assert mls == ["Real Salt Lake"]


def test_two_searches_increment_count_by_two(resolver):
    add_team("Liverpool FC", "40", country="England")

    resolver.search("liverpool")
    results = resolver.search("liverpool")

    assert len(results) == 1
    assert load_team("40").search_count == 3
    assert results[0]["searchCount"] == 3
    with get_db_session() as session:
        assert session.query(Team).count() == 1


def test_search_refreshes_popularity(resolver):
    add_team("Arsenal FC", "42", country="England", last_updated=utcnow() - timedelta(days=10))

    resolver.search("arsenal")
    team = load_team("42")

    # 2 searches, 10 days old, decay 0.1 → 2 / (1 + 1) = 1.0
    assert team.popularity == pytest.approx(1.0, rel=1e-3)


def test_search_ranks_by_popularity(resolver):
    add_team("Athletic Club", "531", search_count=1)
    add_team("Atletico Madrid", "530", search_count=50)

    resolver.search("atletico")  # popularity for 530 only
    results = resolver.search("at")

    assert [row["name"] for row in results] == ["Atletico Madrid", "Athletic Club"]


def test_search_with_no_matches_is_empty(resolver):
    assert resolver.search("zzz") == []
    assert resolver.search("   ") == []


def test_popular_is_cached_in_listing_pool(resolver):
    add_team("Liverpool FC", "40", country="England")
    first = resolver.popular(10)
    add_team("Arsenal FC", "42", country="England")

    assert resolver.popular(10) == first
    assert len(resolver.popular(20)) == 2


def test_catalog_stats(resolver):
    add_team("Liverpool FC", "40", country="England", search_count=3)
    add_team("Real Madrid CF", "541", country="Spain", search_count=5)

    stats = resolver.catalog_stats()

    assert stats["overview"]["totalTeams"] == 2
    assert stats["overview"]["totalSearches"] == 8
    assert stats["overview"]["countries"] == ["England", "Spain"]
    assert stats["countriesCount"] == 2
    assert stats["topTeams"][0]["name"] == "Real Madrid CF"


def test_catalog_stats_cached_in_empty_daily_pool(resolver):
    add_team("Liverpool FC", "40", country="England")
    assert len(resolver.stats_cache) == 0

    first = resolver.catalog_stats()
    add_team("Arsenal FC", "42", country="England")

    assert len(resolver.stats_cache) == 1
    assert resolver.catalog_stats() == first
    assert first["overview"]["totalTeams"] == 1


def test_search_folds_non_ascii_case(resolver):
    add_team("FC Bayern München", "157", country="Germany", provider_name="Bayern München")
    add_team("1. FC Köln", "192", country="Germany", aliases=["Köln"])

    assert [row["name"] for row in resolver.search("MÜNCHEN")] == ["FC Bayern München"]
    assert [row["name"] for row in resolver.search("münchen")] == ["FC Bayern München"]
    assert [row["name"] for row in resolver.search("KÖLN")] == ["1. FC Köln"]


def test_search_finds_alias_added_by_name_map(resolver):
    add_team("FC Barcelona", "529")
    assert resolver.search("BARÇA") == []

    resolver.apply_name_map({"Barça": "FC Barcelona"})

    assert [row["name"] for row in resolver.search("BARÇA")] == ["FC Barcelona"]


def test_search_treats_wildcards_literally(resolver):
    add_team("Real Madrid CF", "541")

    assert resolver.search("r%d") == []
    assert resolver.search("re_l") == []
