"""
================================================================================
Overlap - Base Team Provider
================================================================================
Abstract base class for external team-search APIs.

Providers turn a free-text query into ProviderTeam records. Every transport
or payload problem (timeout, non-2xx, non-JSON body) surfaces as
UpstreamProviderError so callers have exactly one thing to catch.
================================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

import httpx

from ..errors import UpstreamProviderError


logger = logging.getLogger(__name__)


@dataclass
class ProviderTeam:
    """A team as reported by an external provider."""
    external_id: str
    name: str
    country: str
    source: str
    code: Optional[str] = None
    logo: Optional[str] = None
    founded: Optional[int] = None
    city: Optional[str] = None
    league: Optional[str] = None
    venue_name: Optional[str] = None
    venue_capacity: Optional[int] = None
    aliases: List[str] = field(default_factory=list)

    def to_result(self) -> Dict[str, Any]:
        """Search result row, same shape as Team.to_dict()."""
        return {
            'id': self.external_id,
            'name': self.name,
            'logo': self.logo,
            'country': self.country,
            'city': self.city,
            'source': self.source,
            'code': self.code,
            'league': self.league,
            'venue': self.venue_name,
            'popularity': 0.0,
            'searchCount': 0,
        }


class BaseTeamProvider(ABC):
    """
    Abstract base class for team providers.

    All providers must implement:
      - search_teams(): Search by free-text name
    """

    # Provider identification
    id: str = "base"
    name: str = "Base Provider"

    # API configuration
    base_url: str = ""

    # Request timeout (seconds)
    timeout: float = 10.0

    user_agent: str = "Overlap/1.0 (team catalog)"

    def __init__(self, timeout: Optional[float] = None, transport: Optional[httpx.BaseTransport] = None):
        """
        Args:
            timeout: Override the class timeout (seconds)
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        if timeout is not None:
            self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    def _default_headers(self) -> Dict[str, str]:
        return {
            'User-Agent': self.user_agent,
            'Accept': 'application/json'
        }

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self._default_headers(),
                transport=self._transport,
            )
        return self._client

    def close(self):
        """Close HTTP client."""
        if self._client:
            self._client.close()
            self._client = None

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        """
        Make a single HTTP request and decode the JSON body.

        Raises:
            UpstreamProviderError: timeout, transport failure, non-2xx, or
                a body that is not a JSON object
        """
        client = self._get_client()

        try:
            response = client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise UpstreamProviderError(self.id, f"timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise UpstreamProviderError(self.id, f"HTTP {status}", status_code=status) from e
        except httpx.RequestError as e:
            raise UpstreamProviderError(self.id, f"request failed: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamProviderError(self.id, "response body is not JSON", response.status_code) from e

        if not isinstance(payload, dict):
            raise UpstreamProviderError(self.id, "unexpected JSON payload", response.status_code)
        return payload

    @abstractmethod
    def search_teams(self, query: str) -> List[ProviderTeam]:
        """
        Search teams by name.

        Raises:
            UpstreamProviderError: on any provider failure
        """

    def __repr__(self):
        return f"<{self.__class__.__name__}(id='{self.id}', timeout={self.timeout}s)>"
