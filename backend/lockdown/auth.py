"""Caller identity.

Authentication itself happens in front of this service; the gateway forwards
the verified principal as ``X-Team-Id`` or ``X-Admin-Id``. Flask-Login turns
that header into ``current_user`` and the decorators below gate blueprints by
role.
"""
from functools import wraps

from flask import jsonify
from flask_login import current_user

from lockdown import db
from lockdown.models import Admin, Team


def _header_id(request, name):
    raw = request.headers.get(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def load_principal_from_request(request):
    admin_id = _header_id(request, 'X-Admin-Id')
    if admin_id is not None:
        return db.session.get(Admin, admin_id)
    team_id = _header_id(request, 'X-Team-Id')
    if team_id is not None:
        return db.session.get(Team, team_id)
    return None


def _role_required(role):
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({'error_kind': 'Unauthenticated', 'message': 'Authentication required'}), 401
            if getattr(current_user, 'role', None) != role:
                return jsonify({'error_kind': 'Forbidden', 'message': f'{role} access required'}), 403
            return view(*args, **kwargs)
        return wrapped
    return decorator


team_required = _role_required('team')
admin_required = _role_required('admin')
