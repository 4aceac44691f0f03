"""Session guards shared by the JSON blueprints."""

from __future__ import annotations

from functools import wraps

from flask import jsonify
from flask_login import current_user

from posapp.extensions import login_manager


def require_login():
    """``before_request`` hook rejecting anonymous callers for a blueprint."""

    if not current_user.is_authenticated:
        return login_manager.unauthorized()
    return None


def admin_required(view_func):
    @wraps(view_func)
    def wrapped(*args, **kwargs):
        if not current_user.is_authenticated:
            return login_manager.unauthorized()
        if not current_user.is_admin:
            return jsonify({"error": "Administrator access required.", "kind": "forbidden"}), 403
        return view_func(*args, **kwargs)

    return wrapped
