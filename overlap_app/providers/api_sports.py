"""
API-Sports (api-football v3) team search.

GET /teams?search=<q> returns:

    {"response": [
        {"team":  {"id": 541, "name": "Real Madrid", "code": "REA",
                   "country": "Spain", "founded": 1902, "logo": "..."},
         "venue": {"id": 1456, "name": "Estadio Santiago Bernabéu",
                   "city": "Madrid", "capacity": 85454}}
    ]}

The venue block never carries coordinates; the venue linker fills those in.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..errors import UpstreamProviderError
from .base import BaseTeamProvider, ProviderTeam


logger = logging.getLogger(__name__)


class ApiSportsProvider(BaseTeamProvider):
    """Team search against API-Sports."""

    id = "api-sports"
    name = "API-Sports"
    base_url = "https://v3.football.api-sports.io"
    timeout = 8.0

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        if base_url:
            self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        super().__init__(timeout=timeout, transport=transport)

    def _default_headers(self) -> Dict[str, str]:
        headers = super()._default_headers()
        if self.api_key:
            headers['x-apisports-key'] = self.api_key
        return headers

    def search_teams(self, query: str) -> List[ProviderTeam]:
        if not self.api_key:
            logger.warning("No API-Sports key configured; skipping external team search")
            return []

        payload = self._request('GET', '/teams', params={'search': query})

        errors = payload.get('errors')
        if errors:
            # API-Sports reports quota/key problems with HTTP 200 and an errors block
            raise UpstreamProviderError(self.id, f"provider reported errors: {errors}", status_code=200)

        items = payload.get('response') or []
        if not isinstance(items, list):
            logger.warning(f"{self.id}: 'response' is not a list for '{query}'")
            return []

        teams = []
        for item in items:
            team = self._parse_item(item)
            if team:
                teams.append(team)

        logger.info(f"📡 {self.name} returned {len(teams)} teams for '{query}'")
        return teams

    def _parse_item(self, item: Any) -> Optional[ProviderTeam]:
        if not isinstance(item, dict):
            return None
        team = item.get('team')
        if not isinstance(team, dict) or team.get('id') in (None, '') or not team.get('name'):
            logger.debug(f"{self.id}: skipping malformed team item: {item!r}")
            return None

        venue = item.get('venue') if isinstance(item.get('venue'), dict) else {}
        name = str(team['name']).strip()
        code = team.get('code') or None

        return ProviderTeam(
            external_id=str(team['id']),
            name=name,
            country=team.get('country') or 'Unknown',
            source=self.id,
            code=code,
            logo=team.get('logo'),
            founded=_as_int(team.get('founded')),
            city=venue.get('city') or None,
            venue_name=venue.get('name') or None,
            venue_capacity=_as_int(venue.get('capacity')),
            aliases=[alias for alias in (name, code) if alias],
        )


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value not in (None, '') else None
    except (TypeError, ValueError):
        return None
