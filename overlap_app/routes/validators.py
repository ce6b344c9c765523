"""Lightweight request validation helpers."""

from typing import Any, Dict, Optional

from ..errors import ValidationError


MIN_QUERY_LENGTH = 2
MAX_QUERY_LENGTH = 100
MAX_LIMIT = 100
MAX_MAPPING_ENTRIES = 5000


def sanitize_string(value: Any, max_length: int = 500, allow_newlines: bool = False) -> str:
    """
    Sanitize a string by removing control characters and limiting length.

    Args:
        value: String to sanitize
        max_length: Maximum allowed length
        allow_newlines: Whether to allow newlines

    Returns:
        Sanitized string
    """
    if not isinstance(value, str):
        return ""

    # Remove control characters (except newlines if allowed)
    if allow_newlines:
        result = ''.join(c for c in value if c >= ' ' or c in '\n\r\t')
    else:
        result = ''.join(c for c in value if c >= ' ')

    # Limit length
    return result[:max_length]


def validate_query(value: Any, field: str = 'query') -> str:
    """
    Clean a search term.

    Raises:
        ValidationError: missing or shorter than MIN_QUERY_LENGTH
    """
    query = sanitize_string(value, max_length=MAX_QUERY_LENGTH).strip()
    if len(query) < MIN_QUERY_LENGTH:
        raise ValidationError(
            f"Search query must be at least {MIN_QUERY_LENGTH} characters long",
            field=field,
        )
    return query


def optional_filter(value: Any, max_length: int = 100) -> Optional[str]:
    cleaned = sanitize_string(value, max_length=max_length).strip()
    return cleaned or None


def parse_limit(value: Any, default: int = 20, maximum: int = MAX_LIMIT) -> int:
    """Parse a ?limit= value, capping at `maximum` instead of failing."""
    if value is None or value == '':
        return default
    try:
        limit = int(value)
    except (TypeError, ValueError):
        raise ValidationError("Limit must be an integer", field='limit')
    if limit < 1:
        raise ValidationError("Limit must be positive", field='limit')
    return min(limit, maximum)


def validate_mapping(payload: Any) -> Dict[str, str]:
    """
    Extract {external: canonical} from a name-map request body.

    Entries with non-string keys or values are kept; the resolver reports
    them as failed.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    mapping = payload.get('mapping')
    if not isinstance(mapping, dict) or not mapping:
        raise ValidationError("Field 'mapping' must be a non-empty object", field='mapping')
    if len(mapping) > MAX_MAPPING_ENTRIES:
        raise ValidationError(
            f"Field 'mapping' exceeds {MAX_MAPPING_ENTRIES} entries", field='mapping'
        )
    return mapping
