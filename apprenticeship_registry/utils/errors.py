"""JSON error bodies shared by views and the app-level error handlers.

Every error response has the shape::

    {"error": "<human message>", "code": "ERR_...", "details": {...}?}

Views return ``api_error(E.X, "message")``; service exceptions are turned
into the same shape by the handlers registered in create_app.
"""

from __future__ import annotations

from flask import jsonify


class E:
    """Error codes. The HTTP status for each lives in STATUS_FOR."""

    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"   # missing field
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"     # malformed or rejected value
    NOT_FOUND = "ERR_NOT_FOUND"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"             # flag already set, duplicate, still referenced
    FORBIDDEN = "ERR_FORBIDDEN"
    DELIVERY_FAILED = "ERR_DELIVERY_FAILED"           # messaging channel rejected the message
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


STATUS_FOR: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_STATE: 409,
    E.DATABASE: 500,
    E.INTERNAL: 500,
    E.DELIVERY_FAILED: 502,
}


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """Build ``(response, status)`` for an error.

    ``status`` overrides the code's default; unknown codes fall back to 400.
    ``details`` is only included when non-empty.
    """
    body = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or STATUS_FOR.get(code, 400)
