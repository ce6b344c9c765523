"""
Rate limiting configuration for the Overlap team API.

Uses Flask-Limiter to protect API endpoints from abuse.

Rate Limit Tiers:
- Heavy: /search, /populate (may reach the external provider)
- Medium: /name-map, /venues/link (bulk database writes)
- Light: /popular, /resolve, /stats, /cache/* (cheap reads)
"""

import os

from flask import jsonify
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# Initialize limiter (will be attached to app in create_app)
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["1000 per day", "200 per hour"],
    storage_uri=os.environ.get("RATELIMIT_STORAGE_URI", "memory://"),
    strategy="fixed-window",
    headers_enabled=True,  # Add X-RateLimit-* headers to responses
)


# ==============================================================================
# RATE LIMIT TIERS
# ==============================================================================

# Heavy operations - may call the external provider
HEAVY_LIMIT = "30 per minute"

# Medium operations - bulk writes
MEDIUM_LIMIT = "10 per minute"

# Light operations - fast cached reads
LIGHT_LIMIT = "120 per minute"


# ==============================================================================
# RATE LIMIT DECORATORS
# ==============================================================================

def limit_heavy(f):
    """Apply heavy rate limit to operations that may hit the provider."""
    return limiter.limit(HEAVY_LIMIT)(f)


def limit_medium(f):
    """Apply medium rate limit to bulk write operations."""
    return limiter.limit(MEDIUM_LIMIT)(f)


def limit_light(f):
    """Apply light rate limit to cheap operations."""
    return limiter.limit(LIGHT_LIMIT)(f)


# ==============================================================================
# ERROR HANDLER
# ==============================================================================

def rate_limit_exceeded_handler(e):
    """JSON body for 429 responses; the API has no HTML pages."""
    retry_after = getattr(e, 'retry_after', None) or 60
    response = jsonify({
        "success": False,
        "message": f"Rate limit exceeded: {e.description}",
        "retry_after": retry_after
    })
    response.status_code = 429
    response.headers['Retry-After'] = str(retry_after)
    return response


# ==============================================================================
# INITIALIZATION
# ==============================================================================

def init_rate_limiting(app):
    """
    Initialize rate limiting for a Flask app.

    Call this in create_app() after app configuration. Setting
    RATELIMIT_ENABLED=False (tests) turns every limit off.
    """
    limiter.init_app(app)

    # Register custom error handler
    app.errorhandler(429)(rate_limit_exceeded_handler)

    return limiter
