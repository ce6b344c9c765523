import pytest

from conftest import add_team, add_venue, load_team, provider_team
from overlap_app.extensions import get_services


def drain(app):
    with app.app_context():
        assert get_services().queue.drain(timeout=10)


def test_search_requires_two_characters(client):
    resp = client.get("/api/teams/search?query=a")

    assert resp.status_code == 400
    data = resp.get_json()
    assert data["success"] is False
    assert "at least 2" in data["message"]


def test_search_missing_query(client):
    resp = client.get("/api/teams/search")
    assert resp.status_code == 400


def test_search_returns_public_fields_and_caches(client):
    add_team("Liverpool FC", "40", country="England", city="Liverpool", logo="https://logo/40.png")

    first = client.get("/api/teams/search?query=liverpool").get_json()
    second = client.get("/api/teams/search?query=Liverpool").get_json()

    assert first["success"] is True
    assert first["fromCache"] is False
    assert first["results"] == [{
        "id": "40",
        "name": "Liverpool FC",
        "logo": "https://logo/40.png",
        "country": "England",
        "city": "Liverpool",
        "source": "seed",
    }]
    assert second["fromCache"] is True


def test_search_merges_provider_results_and_persists(app, client, fake_provider):
    fake_provider.teams = [provider_team("529", "Barcelona", city="Barcelona")]

    data = client.get("/api/teams/search?query=barcelona").get_json()
    drain(app)

    assert [row["id"] for row in data["results"]] == ["529"]
    assert data["results"][0]["source"] == "fake"
    assert load_team("529").name == "Barcelona"


def test_legacy_prefix_serves_the_same_api(client):
    add_team("Liverpool FC", "40", country="England")

    resp = client.get("/teams/search?query=liverpool")

    assert resp.status_code == 200
    assert resp.get_json()["results"][0]["id"] == "40"


def test_popular(client):
    add_team("Liverpool FC", "40", country="England", search_count=10)
    add_team("Arsenal FC", "42", country="England", search_count=2)

    data = client.get("/api/teams/popular?limit=1").get_json()

    assert data["success"] is True
    assert len(data["teams"]) == 1


def test_popular_rejects_bad_limit(client):
    assert client.get("/api/teams/popular?limit=abc").status_code == 400


def test_resolve(client):
    add_team("FC Bayern München", "157", country="Germany", provider_name="Bayern München")

    data = client.get("/api/teams/resolve", query_string={"name": "Bayern München"}).get_json()
    passthrough = client.get("/api/teams/resolve?name=Nobody").get_json()

    assert data == {
        "success": True,
        "name": "Bayern München",
        "resolved": "FC Bayern München",
        "strategy": "provider_name",
    }
    assert passthrough["resolved"] == "Nobody"
    assert passthrough["strategy"] == "unresolved"


def test_stats(client):
    add_team("Liverpool FC", "40", country="England")

    data = client.get("/api/teams/stats").get_json()

    assert data["success"] is True
    assert data["data"]["overview"]["totalTeams"] == 1
    assert data["data"]["countriesCount"] == 1


@pytest.mark.parametrize("method,path", [
    ("post", "/api/teams/populate"),
    ("post", "/api/teams/name-map"),
    ("post", "/api/teams/venues/link"),
    ("get", "/api/teams/cache/stats"),
    ("post", "/api/teams/cache/clear"),
])
def test_admin_endpoints_require_token(client, method, path):
    resp = getattr(client, method)(path, json={})
    assert resp.status_code == 401
    assert resp.get_json()["success"] is False

    resp = getattr(client, method)(path, json={}, headers={"Authorization": "Bearer wrong"})
    assert resp.status_code == 401


def test_admin_token_header_alternative(client):
    from conftest import ADMIN_TOKEN

    resp = client.get("/api/teams/cache/stats", headers={"X-Admin-Token": ADMIN_TOKEN})
    assert resp.status_code == 200


def test_name_map(client, admin_headers):
    add_team("FC Barcelona", "529")

    resp = client.post(
        "/api/teams/name-map",
        json={"mapping": {"Barcelona": "FC Barcelona", "Nowhere": "Nowhere FC"}},
        headers=admin_headers,
    )

    data = resp.get_json()
    assert resp.status_code == 200
    assert data["success"] is True
    assert data["updatedCount"] == 1
    assert data["unmatchedCount"] == 1
    assert data["failedCount"] == 0
    assert client.get("/api/teams/resolve?name=Barcelona").get_json()["resolved"] == "FC Barcelona"


def test_name_map_requires_mapping(client, admin_headers):
    resp = client.post("/api/teams/name-map", json={"mapping": []}, headers=admin_headers)
    assert resp.status_code == 400


def test_link_venues(client, admin_headers):
    add_team("Real Madrid CF", "541", city="Madrid")
    add_venue("Estadio Santiago Bernabéu", city="Madrid", coordinates=(-3.6883, 40.4531))

    data = client.post("/api/teams/venues/link", json={"country": "Spain"}, headers=admin_headers).get_json()

    assert data["success"] is True
    assert data["report"]["linkedNow"] == 1
    assert data["report"]["total"] == 1
    assert load_team("541").has_linked_venue


def test_populate_schedules_background_seeding(app, client, admin_headers, fake_provider):
    fake_provider.teams = [provider_team(str(i), f"Inter {i}", country="Italy") for i in range(4)]

    resp = client.post("/api/teams/populate", json={"names": ["Inter"]}, headers=admin_headers)
    drain(app)

    assert resp.status_code == 202
    assert resp.get_json()["success"] is True
    assert fake_provider.calls == ["Inter"]
    assert client.get("/api/teams/stats").get_json()["data"]["overview"]["totalTeams"] == 3


def test_cache_stats_and_clear(client, admin_headers):
    add_team("Liverpool FC", "40", country="England")
    client.get("/api/teams/search?query=liverpool")
    client.get("/api/teams/popular")

    stats = client.get("/api/teams/cache/stats", headers=admin_headers).get_json()
    assert "search_liverpool" in stats["caches"]["query"]["keys"]

    cleared = client.post(
        "/api/teams/cache/clear", json={"pattern": "search_*"}, headers=admin_headers
    ).get_json()
    assert cleared["success"] is True
    assert cleared["removed"] == 1

    stats = client.get("/api/teams/cache/stats", headers=admin_headers).get_json()
    assert stats["caches"]["query"]["size"] == 0
    assert stats["caches"]["listing"]["size"] == 1


def test_cache_clear_rejects_unknown_pool(client, admin_headers):
    resp = client.post("/api/teams/cache/clear", json={"pool": "nope"}, headers=admin_headers)
    assert resp.status_code == 400


def test_health(client):
    assert client.get("/api/health").get_json()["success"] is True
