import os
from typing import List, Optional

import pytest

os.environ.setdefault("DEBUG_LOGGING", "0")

from overlap_app import create_app
from overlap_app.database import configure_database, get_db_session, get_engine, init_database
from overlap_app.errors import UpstreamProviderError
from overlap_app.extensions import get_services
from overlap_app.models import Team, Venue
from overlap_app.providers.base import BaseTeamProvider, ProviderTeam


ADMIN_TOKEN = "test-admin-token"


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(BaseTeamProvider):
    """In-memory provider that records every call."""

    id = "fake"
    name = "Fake Provider"

    def __init__(self, teams: Optional[List[ProviderTeam]] = None, error: Optional[Exception] = None):
        super().__init__()
        self.teams = list(teams or [])
        self.error = error
        self.calls: List[str] = []

    def search_teams(self, query: str) -> List[ProviderTeam]:
        self.calls.append(query)
        if self.error is not None:
            raise self.error
        needle = query.lower()
        return [team for team in self.teams if needle in team.name.lower()]


def provider_team(external_id: str, name: str, country: str = "Spain", **kwargs) -> ProviderTeam:
    return ProviderTeam(external_id=external_id, name=name, country=country, source="fake", **kwargs)


def add_team(name: str, external_id: str, country: str = "Spain", **kwargs) -> str:
    with get_db_session() as session:
        team = Team(name=name, external_id=external_id, country=country, **kwargs)
        session.add(team)
        session.flush()
        return team.id


def add_venue(name: str, country: str = "Spain", city: Optional[str] = None, coordinates=None, **kwargs) -> str:
    with get_db_session() as session:
        venue = Venue(name=name, country=country, city=city, coordinates=coordinates, **kwargs)
        session.add(venue)
        session.flush()
        return venue.id


def load_team(external_id: str) -> Team:
    with get_db_session() as session:
        return session.query(Team).filter_by(external_id=external_id).one()


@pytest.fixture
def db(tmp_path):
    # File-backed so worker threads share the same database
    configure_database(f"sqlite:///{tmp_path / 'catalog.db'}")
    init_database()
    yield
    get_engine().dispose()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def app(tmp_path, fake_provider):
    app = create_app(
        test_config={
            "TESTING": True,
            "DATABASE_URL": f"sqlite:///{tmp_path / 'app.db'}",
            "RATELIMIT_ENABLED": False,
            "ADMIN_API_TOKEN": ADMIN_TOKEN,
            "SEARCH_MIN_LOCAL_RESULTS": 5,
        },
        provider=fake_provider,
    )
    yield app
    with app.app_context():
        get_services().close()
    get_engine().dispose()


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture
def failing_provider():
    return FakeProvider(error=UpstreamProviderError("fake", "timed out after 8.0s"))
