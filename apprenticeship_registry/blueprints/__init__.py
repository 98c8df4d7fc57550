"""
Apprenticeship Registry
Blueprint registry and shared request helpers.
"""

from flask import request

from apprenticeship_registry.services.store import RequestContext


def service_context() -> RequestContext:
    """Context handed to every service call made by a view."""
    return RequestContext.from_request()


def pagination_args(default_limit=200, max_limit=1000):
    """Parse limit/offset pagination query parameters from the current request.

    Query params:
        limit  — max items (default 200, clamped to 1..max_limit)
        offset — starting position (default 0)

    Returns:
        (limit, offset)
    """
    try:
        limit = max(min(int(request.args.get("limit", default_limit)), max_limit), 1)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    return limit, offset
