from __future__ import annotations
from functools import wraps
from flask import request, g, abort, current_app

from auth.errors import AuthError
from auth.sessions import SessionManager

EXTENSION_KEY = "session_manager"


def current_sessions() -> SessionManager:
    """The SessionManager bound to the running app (see api.create_app)."""
    return current_app.extensions[EXTENSION_KEY]


def bearer_token() -> str | None:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    return auth.split(" ", 1)[1].strip() or None


def jwt_required():
    """Reject the request unless it carries a valid access token for a live user."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = bearer_token()
            if token is None:
                abort(401, description="Access token required")
            try:
                username = current_sessions().authenticate(token)
            except AuthError as e:
                abort(e.status_code, description=e.message)

            g.current_username = username
            return fn(*args, **kwargs)

        return wrapper

    return decorator
