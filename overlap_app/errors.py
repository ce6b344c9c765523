"""Error taxonomy for the team catalog."""

from typing import Optional


class CatalogError(Exception):
    """Base class for catalog errors."""


class ValidationError(CatalogError):
    """Malformed or too-short request input. Maps to HTTP 400."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class UpstreamProviderError(CatalogError):
    """External team provider timed out, returned non-2xx, or sent a bad body."""

    def __init__(self, provider_id: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{provider_id}: {message}")
        self.provider_id = provider_id
        self.status_code = status_code


class PersistenceConflictError(CatalogError):
    """A unique external id already exists in the store."""

    def __init__(self, external_id: str):
        super().__init__(f"Team with external id {external_id} already exists")
        self.external_id = external_id
