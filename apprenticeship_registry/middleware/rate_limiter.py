"""
Per-blueprint rate limits (Flask-Limiter).

The Limiter itself lives in apprenticeship_registry/__init__.py with no
default limit; ``init_rate_limits`` attaches a limit to each blueprint
after registration: one bucket for writes (POST/PUT/PATCH/DELETE) and a
looser one for reads.

Clients are keyed by API key when one is sent, otherwise by remote IP, so
several bots behind one NAT do not share a bucket.

Usage:
    from apprenticeship_registry.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import request
from flask_limiter.util import get_remote_address

logger = logging.getLogger(__name__)

# blueprint name -> {"write": limit, "read": limit}; None means exempt
BLUEPRINT_LIMITS = {
    "apprenticeship": {"write": "60/minute", "read": "300/minute"},
    "directory": {"write": "60/minute", "read": "300/minute"},
    "notification": {"write": "60/minute", "read": "200/minute"},
    "health": None,
}

WRITE_METHODS = ["POST", "PUT", "PATCH", "DELETE"]
READ_METHODS = ["GET"]


def client_key():
    """Rate-limit bucket for the current caller."""
    api_key = request.headers.get("X-API-Key", "").strip()
    if api_key:
        return f"key:{api_key[:16]}"
    return get_remote_address()


def init_rate_limits(app, limiter):
    """Apply BLUEPRINT_LIMITS. No-op when TESTING is set."""
    if app.config.get("TESTING"):
        logger.debug("Rate limits skipped in testing")
        return

    for bp_name, limits in BLUEPRINT_LIMITS.items():
        bp = app.blueprints.get(bp_name)
        if bp is None:
            continue
        if limits is None:
            limiter.exempt(bp)
            continue
        limiter.limit(limits["write"], key_func=client_key, methods=WRITE_METHODS)(bp)
        limiter.limit(limits["read"], key_func=client_key, methods=READ_METHODS)(bp)

    logger.info("Rate limits applied: %s", ", ".join(
        f"{name}=exempt" if limits is None else f"{name}={limits['write']} write, {limits['read']} read"
        for name, limits in BLUEPRINT_LIMITS.items()
    ))
