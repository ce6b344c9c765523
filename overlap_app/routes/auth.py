"""
Admin token gate.

Maintenance endpoints (populate, name map, venue linking, cache control)
require the ADMIN_API_TOKEN, sent as `Authorization: Bearer <token>` or
`X-Admin-Token: <token>`. Flask-Login's request_loader turns a valid token
into an AdminPrincipal; there are no sessions or cookies.
"""

import hmac
from functools import wraps
from typing import Optional

from flask import current_app, jsonify, request, g
from flask_login import LoginManager, UserMixin, current_user

from ..log import log


login_manager = LoginManager()


class AdminPrincipal(UserMixin):
    """The holder of the admin API token."""

    id = 'admin'
    is_admin = True

    def get_id(self):
        return self.id


def _extract_token() -> Optional[str]:
    header = request.headers.get('Authorization', '')
    if header.lower().startswith('bearer '):
        return header[7:].strip() or None
    return request.headers.get('X-Admin-Token') or None


@login_manager.request_loader
def load_admin_from_request(req):
    """Flask-Login request loader: token header → AdminPrincipal."""
    expected = current_app.config.get('ADMIN_API_TOKEN')
    token = _extract_token()
    if not expected or not token:
        return None
    if hmac.compare_digest(token.encode('utf-8'), expected.encode('utf-8')):
        return AdminPrincipal()
    log(f"⚠️ Rejected admin token from {req.remote_addr}")
    return None


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'success': False, 'message': 'Admin authentication required'}), 401


def admin_required(f):
    """Decorator for admin-only endpoints."""
    @wraps(f)
    def decorated(*args, **kwargs):
        if not current_user.is_authenticated or not getattr(current_user, 'is_admin', False):
            return login_manager.unauthorized()
        g.current_user = current_user
        return f(*args, **kwargs)
    return decorated


def init_login_manager(app):
    """Initialize Flask-Login with the app."""
    login_manager.init_app(app)
    # API-only: no login view, no session fixation checks
    login_manager.login_view = None
    login_manager.session_protection = None

    if not app.config.get('ADMIN_API_TOKEN'):
        log("⚠️ ADMIN_API_TOKEN not set; admin endpoints will reject every request")
