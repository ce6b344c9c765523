import httpx
import pytest

from overlap_app.errors import UpstreamProviderError
from overlap_app.providers.api_sports import ApiSportsProvider


REAL_MADRID_ITEM = {
    "team": {"id": 541, "name": "Real Madrid", "code": "REA", "country": "Spain",
             "founded": 1902, "logo": "https://media.api-sports.io/football/teams/541.png"},
    "venue": {"id": 1456, "name": "Estadio Santiago Bernabéu", "city": "Madrid", "capacity": 85454},
}


def make_provider(handler, api_key="secret"):
    return ApiSportsProvider(api_key=api_key, transport=httpx.MockTransport(handler))


def test_parses_teams_and_sends_key():
    seen = {}

    def handler(request):
        seen["key"] = request.headers.get("x-apisports-key")
        seen["search"] = request.url.params.get("search")
        seen["path"] = request.url.path
        return httpx.Response(200, json={"errors": [], "response": [REAL_MADRID_ITEM]})

    teams = make_provider(handler).search_teams("Real Madrid")

    assert seen == {"key": "secret", "search": "Real Madrid", "path": "/teams"}
    assert len(teams) == 1
    team = teams[0]
    assert team.external_id == "541"
    assert team.name == "Real Madrid"
    assert team.country == "Spain"
    assert team.city == "Madrid"
    assert team.venue_name == "Estadio Santiago Bernabéu"
    assert team.venue_capacity == 85454
    assert team.source == "api-sports"
    assert team.aliases == ["Real Madrid", "REA"]


def test_malformed_items_are_skipped():
    payload = {"response": [REAL_MADRID_ITEM, {"team": {"name": "No Id"}}, "junk", {"venue": {}}]}
    provider = make_provider(lambda request: httpx.Response(200, json=payload))

    assert [team.external_id for team in provider.search_teams("real")] == ["541"]


def test_missing_api_key_returns_nothing_without_calling_out():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"response": []})

    assert make_provider(handler, api_key=None).search_teams("real") == []
    assert calls == []


def test_server_error_raises_upstream_error():
    provider = make_provider(lambda request: httpx.Response(503, text="unavailable"))

    with pytest.raises(UpstreamProviderError) as excinfo:
        provider.search_teams("real")
    assert excinfo.value.status_code == 503
    assert excinfo.value.provider_id == "api-sports"


def test_timeout_raises_upstream_error():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(UpstreamProviderError, match="timed out"):
        make_provider(handler).search_teams("real")


def test_connection_error_raises_upstream_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(UpstreamProviderError, match="request failed"):
        make_provider(handler).search_teams("real")


def test_non_json_body_raises_upstream_error():
    provider = make_provider(lambda request: httpx.Response(200, text="<html>oops</html>"))

    with pytest.raises(UpstreamProviderError, match="not JSON"):
        provider.search_teams("real")


def test_non_list_response_is_empty():
    provider = make_provider(lambda request: httpx.Response(200, json={"response": {"oops": 1}}))

    assert provider.search_teams("real") == []


@pytest.mark.parametrize("errors", [
    {"token": "Error/Missing application key in the header"},
    [{"requests": "You have reached the request limit for the day"}],
])
def test_errors_block_on_200_raises_upstream_error(errors):
    payload = {"errors": errors, "response": [REAL_MADRID_ITEM]}
    provider = make_provider(lambda request: httpx.Response(200, json=payload))

    with pytest.raises(UpstreamProviderError, match="reported errors") as excinfo:
        provider.search_teams("real")
    assert excinfo.value.provider_id == "api-sports"
