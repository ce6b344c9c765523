# Load environment variables FIRST before any other imports
from dotenv import load_dotenv
load_dotenv()

import os
import time
import secrets
import uuid
from typing import Any, Dict, Optional

from flask import Flask, jsonify, g, request


def _env_bool(name: str, default: str = 'false') -> bool:
    return os.environ.get(name, default).lower() in ('true', '1', 'yes')


def create_app(test_config: Optional[Dict[str, Any]] = None, provider=None):
    """
    Create and configure an instance of the Flask application.

    Args:
        test_config: Overrides applied after the environment is read
        provider: Team provider to use instead of API-Sports (tests)
    """
    app = Flask(__name__, instance_relative_config=True)

    # =============================================================================
    # CONFIGURATION
    # =============================================================================
    app.config.from_mapping(
        JSON_SORT_KEYS=False,
        SECRET_KEY=os.environ.get('SECRET_KEY') or secrets.token_hex(32),
        DATABASE_URL=os.environ.get('DATABASE_URL'),
        API_SPORTS_KEY=os.environ.get('API_SPORTS_KEY'),
        API_SPORTS_URL=os.environ.get('API_SPORTS_URL'),
        PROVIDER_TIMEOUT=float(os.environ.get('PROVIDER_TIMEOUT', '8')),
        SEARCH_MIN_LOCAL_RESULTS=int(os.environ.get('SEARCH_MIN_LOCAL_RESULTS', '5')),
        SEARCH_PAGE_SIZE=int(os.environ.get('SEARCH_PAGE_SIZE', '20')),
        ADMIN_API_TOKEN=os.environ.get('ADMIN_API_TOKEN'),
        ENRICHMENT_WORKERS=int(os.environ.get('ENRICHMENT_WORKERS', '2')),
        RATELIMIT_STORAGE_URI=os.environ.get('RATELIMIT_STORAGE_URI', 'memory://'),
        RATELIMIT_ENABLED=_env_bool('RATELIMIT_ENABLED', 'true'),
        HOST=os.environ.get('FLASK_HOST', '127.0.0.1'),
        PORT=int(os.environ.get('FLASK_PORT', '5000')),
        DEBUG=_env_bool('FLASK_DEBUG'),
    )
    if test_config:
        app.config.update(test_config)

    # Ensure instance folder exists
    os.makedirs(app.instance_path, exist_ok=True)

    # =============================================================================
    # LOGGING, RATE LIMITING, AUTH
    # =============================================================================
    from .log import log, debug_log_event
    from .rate_limit import init_rate_limiting
    from .routes.auth import init_login_manager

    init_rate_limiting(app)
    init_login_manager(app)

    @app.before_request
    def assign_request_id():
        g.request_id = uuid.uuid4().hex[:12]
        g.request_start = time.time()

    @app.after_request
    def debug_request_log(response):
        duration_ms = None
        start_time = getattr(g, 'request_start', None)
        if start_time:
            duration_ms = int((time.time() - start_time) * 1000)
        debug_log_event({
            'event': 'request',
            'request_id': getattr(g, 'request_id', None),
            'method': request.method,
            'path': request.path,
            'query': request.query_string.decode('utf-8', errors='ignore'),
            'status': response.status_code,
            'duration_ms': duration_ms,
            'remote_addr': request.remote_addr,
        })
        return response

    @app.teardown_request
    def debug_exception_log(error=None):
        if not error:
            return
        debug_log_event({
            'event': 'exception',
            'request_id': getattr(g, 'request_id', None),
            'method': request.method,
            'path': request.path,
            'error_type': error.__class__.__name__,
            'error': str(error)
        })

    # =============================================================================
    # DATABASE & CATALOG SERVICES
    # =============================================================================
    from .database import configure_database, init_database
    from .extensions import init_services

    configure_database(app.config.get('DATABASE_URL'))
    init_database()
    init_services(app, provider=provider)

    # =============================================================================
    # BLUEPRINTS & ROUTES
    # =============================================================================
    from .routes.teams_api import teams_bp, teams_legacy_bp

    app.register_blueprint(teams_bp)
    app.register_blueprint(teams_legacy_bp)

    @app.route('/api/health')
    def health():
        from .database import check_database_connection
        healthy = check_database_connection()
        return jsonify({'success': healthy, 'database': 'ok' if healthy else 'unavailable'}), (200 if healthy else 503)

    log(f"🌐 Overlap API configured (http://{app.config['HOST']}:{app.config['PORT']})")
    if app.config['DEBUG']:
        log("⚠️  Debug mode is ON - do not use in production!")

    return app

# App instance should be created by the caller (run.py or WSGI entrypoint)
