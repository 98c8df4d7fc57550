"""
Apprenticeship Registry
API-key authentication and role guards.

Callers (the staff dashboard, the Telegram bot backend) send ``X-API-Key``.
Each key maps to one role:

    admin   deletes, manual outbox / scheduler actions
    editor  flag confirmations, creating and updating records and reference data
    viewer  reads

Environment:
    API_KEYS          "key1:admin,key2:editor,key3" (no role means viewer)
    API_AUTH_ENABLED  "false" turns auth off; every caller is then admin.
                      Read from the environment first, then app config.
"""

import functools
import logging
import os

from flask import current_app, g, request

from apprenticeship_registry.utils.errors import E, api_error

logger = logging.getLogger(__name__)

ROLE_RANK = {"viewer": 1, "editor": 2, "admin": 3}

_FALSY = ("false", "0", "no", "off")
_PUBLIC_PREFIXES = ("/api/v1/health",)


def load_api_keys() -> dict:
    """Return ``{api_key: role}`` from API_KEYS."""
    keys = {}
    for entry in os.getenv("API_KEYS", "").split(","):
        key, _, role = entry.strip().partition(":")
        key, role = key.strip(), (role.strip().lower() or "viewer")
        if not key:
            continue
        if role not in ROLE_RANK:
            logger.warning("API key %s... has unknown role %r, using viewer", key[:4], role)
            role = "viewer"
        keys[key] = role
    return keys


def auth_enabled() -> bool:
    raw = os.getenv("API_AUTH_ENABLED") or current_app.config.get("API_AUTH_ENABLED", "true")
    return str(raw).lower() not in _FALSY


def require_role(minimum_role: str):
    """View decorator: 401 without a role, 403 when the role ranks too low."""
    needed = ROLE_RANK[minimum_role]

    def decorator(view):
        @functools.wraps(view)
        def wrapper(*args, **kwargs):
            role = getattr(g, "current_user_role", None)
            if role is None:
                return api_error(E.FORBIDDEN, "Authentication required", status=401)
            if ROLE_RANK.get(role, 0) < needed:
                logger.warning("Role %s denied %s-level %s %s",
                               role, minimum_role, request.method, request.path)
                return api_error(E.FORBIDDEN, "Insufficient permissions")
            return view(*args, **kwargs)
        return wrapper
    return decorator


def _reject_non_json():
    """415 for a mutating request whose body is not JSON."""
    if request.method not in ("POST", "PUT", "PATCH", "DELETE"):
        return None
    if not request.content_length:
        return None
    if "application/json" in (request.content_type or ""):
        return None
    return api_error(E.VALIDATION_INVALID, "Content-Type must be application/json", status=415)


def init_auth(app):
    """Authenticate every /api/v1 request except health checks and CORS pre-flights."""

    @app.before_request
    def _authenticate():
        path = request.path
        if not path.startswith("/api/v1/") or path.startswith(_PUBLIC_PREFIXES):
            return None
        if request.method == "OPTIONS":
            return None

        rejected = _reject_non_json()
        if rejected is not None:
            return rejected

        if not auth_enabled():
            g.current_user_role = "admin"
            return None

        api_key = request.headers.get("X-API-Key", "").strip()
        if not api_key:
            return api_error(E.FORBIDDEN, "Authentication required. Provide X-API-Key header.", status=401)

        keys = load_api_keys()
        if not keys:
            logger.error("API auth is enabled but API_KEYS is empty")
            return api_error(E.INTERNAL, "Server authentication not configured")

        role = keys.get(api_key)
        if role is None:
            logger.warning("Rejected unknown API key %s...", api_key[:4])
            return api_error(E.FORBIDDEN, "Invalid API key", status=401)

        g.current_user_role = role
        return None

    with app.app_context():
        logger.info("API auth %s", "enabled" if auth_enabled() else "disabled")
