"""
Request correlation and timing.

Every API response carries:
    X-Request-ID           — taken from the request header or generated
    X-Request-Duration-Ms  — wall time spent in the app

One log line per request (DEBUG normally, WARNING when slow, ERROR on 5xx).
The correlation id is stored on ``g.request_id`` and picked up by
RequestContext so service log lines share it.
"""

import logging
import time
import uuid

from flask import g, request

logger = logging.getLogger(__name__)

SLOW_REQUEST_MS = 1000

# Health checks are polled constantly; keep them out of the log
_QUIET_PATHS = ("/api/v1/health/",)


def _log_level(status_code, duration_ms):
    if status_code >= 500:
        return logging.ERROR
    if duration_ms > SLOW_REQUEST_MS:
        return logging.WARNING
    return logging.DEBUG


def init_request_timing(app):
    """Attach the timing hooks to ``app``."""

    @app.before_request
    def _tag_request():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        g.request_started = time.perf_counter()

    @app.after_request
    def _stamp_response(response):
        started = g.pop("request_started", None)
        if started is None:
            return response

        elapsed = (time.perf_counter() - started) * 1000
        response.headers["X-Request-ID"] = g.request_id
        response.headers["X-Request-Duration-Ms"] = f"{elapsed:.1f}"

        if request.path.startswith(_QUIET_PATHS):
            return response

        route_args = request.view_args or {}
        logger.log(
            _log_level(response.status_code, elapsed),
            "%s %s -> %d", request.method, request.path, response.status_code,
            extra={
                "method": request.method,
                "path": request.path,
                "status": response.status_code,
                "duration_ms": elapsed,
                "remote_addr": request.remote_addr,
                "request_id": g.request_id,
                "apprenticeship_id": route_args.get("apprenticeship_id"),
                "flag": route_args.get("flag"),
            },
        )
        return response
