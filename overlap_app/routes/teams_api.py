"""Team catalog API Blueprint.

Public search, listing and resolution endpoints plus admin-only maintenance
(seeding, provider-name mapping, venue linking, cache control). Everything is
served under /api/teams and, for older clients, under /teams.
"""

from typing import Optional

from flask import Blueprint, jsonify, request

from ..errors import ValidationError
from ..log import log
from ..extensions import get_services
from ..rate_limit import limit_heavy, limit_light, limit_medium
from .auth import admin_required
from .validators import (
    optional_filter, parse_limit, sanitize_string, validate_mapping, validate_query
)


teams_bp = Blueprint('teams_api', __name__, url_prefix='/api/teams')
teams_legacy_bp = Blueprint('teams_legacy_api', __name__, url_prefix='/teams')


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _error(message: str, status: int = 400):
    return jsonify({'success': False, 'message': message}), status


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def _public_result(row: dict) -> dict:
    return {
        'id': row.get('id'),
        'name': row.get('name'),
        'logo': row.get('logo'),
        'country': row.get('country'),
        'city': row.get('city'),
        'source': row.get('source'),
    }


def handle_validation_error(exc: ValidationError):
    return _error(exc.message, 400)


def handle_unexpected_error(exc: Exception):
    log(f"❌ Unhandled error on {request.method} {request.path}: {exc!r}")
    return _error('Internal server error', 500)


for _bp in (teams_bp, teams_legacy_bp):
    _bp.register_error_handler(ValidationError, handle_validation_error)


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------

@teams_bp.route('/search', methods=['GET'])
@teams_legacy_bp.route('/search', methods=['GET'])
@limit_heavy
def search_teams():
    query = validate_query(request.args.get('query'))
    country = optional_filter(request.args.get('country'))
    league = optional_filter(request.args.get('league'))

    try:
        outcome = get_services().orchestrator.search(query, country=country, league=league)
    except Exception as exc:
        return handle_unexpected_error(exc)

    return jsonify({
        'success': True,
        'results': [_public_result(row) for row in outcome.results],
        'fromCache': outcome.from_cache,
    })


@teams_bp.route('/popular', methods=['GET'])
@teams_legacy_bp.route('/popular', methods=['GET'])
@limit_light
def popular_teams():
    limit = parse_limit(request.args.get('limit'), default=20)
    try:
        teams = get_services().resolver.popular(limit)
    except Exception as exc:
        return handle_unexpected_error(exc)
    return jsonify({'success': True, 'teams': teams})


@teams_bp.route('/resolve', methods=['GET'])
@teams_legacy_bp.route('/resolve', methods=['GET'])
@limit_light
def resolve_team_name():
    name = sanitize_string(request.args.get('name'), max_length=255).strip()
    if not name:
        raise ValidationError("Query parameter 'name' is required", field='name')

    try:
        resolution = get_services().resolver.resolve_detailed(name)
    except Exception as exc:
        return handle_unexpected_error(exc)

    return jsonify({
        'success': True,
        'name': name,
        'resolved': resolution.name,
        'strategy': resolution.strategy,
    })


@teams_bp.route('/stats', methods=['GET'])
@teams_legacy_bp.route('/stats', methods=['GET'])
@limit_light
def catalog_stats():
    try:
        stats = get_services().resolver.catalog_stats()
    except Exception as exc:
        return handle_unexpected_error(exc)
    return jsonify({'success': True, 'data': stats})


# ---------------------------------------------------------------------------
# Admin endpoints
# ---------------------------------------------------------------------------

@teams_bp.route('/populate', methods=['POST'])
@teams_legacy_bp.route('/populate', methods=['POST'])
@limit_heavy
@admin_required
def populate_teams():
    payload = _json_body()
    names = payload.get('names')
    if names is not None:
        if not isinstance(names, list) or not all(isinstance(n, str) and n.strip() for n in names):
            raise ValidationError("Field 'names' must be a list of team names", field='names')
        names = [sanitize_string(n, max_length=100).strip() for n in names]

    services = get_services()
    services.queue.submit(services.orchestrator.populate_popular_teams, names)
    log(f"🌱 Scheduled team population ({len(names) if names else 'default'} names)")
    return jsonify({'success': True, 'message': 'Team population started in background'}), 202


@teams_bp.route('/name-map', methods=['POST'])
@teams_legacy_bp.route('/name-map', methods=['POST'])
@limit_medium
@admin_required
def apply_name_map():
    mapping = validate_mapping(_json_body())
    try:
        result = get_services().resolver.apply_name_map(mapping)
    except Exception as exc:
        return handle_unexpected_error(exc)
    return jsonify({'success': True, **result.to_dict()})


@teams_bp.route('/venues/link', methods=['POST'])
@teams_legacy_bp.route('/venues/link', methods=['POST'])
@limit_medium
@admin_required
def link_venues():
    payload = _json_body()
    country: Optional[str] = None
    if payload.get('country') is not None:
        country = optional_filter(payload.get('country'))
        if country is None:
            raise ValidationError("Field 'country' must be a non-empty string", field='country')

    try:
        report = get_services().linker.run(country=country)
    except Exception as exc:
        return handle_unexpected_error(exc)
    return jsonify({'success': True, 'report': report.to_dict()})


@teams_bp.route('/cache/stats', methods=['GET'])
@teams_legacy_bp.route('/cache/stats', methods=['GET'])
@limit_light
@admin_required
def cache_stats():
    return jsonify({'success': True, 'caches': get_services().caches.stats()})


@teams_bp.route('/cache/clear', methods=['POST'])
@teams_legacy_bp.route('/cache/clear', methods=['POST'])
@limit_light
@admin_required
def clear_cache():
    payload = _json_body()
    pattern = payload.get('pattern')
    pool = payload.get('pool')
    caches = get_services().caches

    if pattern is not None and (not isinstance(pattern, str) or not pattern):
        raise ValidationError("Field 'pattern' must be a non-empty string", field='pattern')
    if pool is not None and (not isinstance(pool, str) or caches.get(pool) is None):
        raise ValidationError(f"Unknown cache pool: {pool}", field='pool')

    removed = caches.clear(pattern=pattern, pool=pool)
    target = f"pool '{pool}'" if pool else 'all pools'
    message = f"Cleared {removed} entries from {target}"
    if pattern:
        message += f" matching '{pattern}'"
    log(f"🧹 {message}")
    return jsonify({'success': True, 'message': message, 'removed': removed})
