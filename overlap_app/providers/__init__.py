"""External team providers."""

from .base import BaseTeamProvider, ProviderTeam
from .api_sports import ApiSportsProvider

__all__ = ['BaseTeamProvider', 'ProviderTeam', 'ApiSportsProvider']
