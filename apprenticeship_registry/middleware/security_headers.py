"""
Response security headers.

The registry only serves JSON, so nothing may be framed, embedded or
loaded from it. Headers already set by a view are left alone.
"""

_HEADERS = {
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cache-Control": "no-store",
    # Ignored over plain HTTP
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}


def init_security_headers(app):
    """Register the after_request hook that adds _HEADERS."""

    @app.after_request
    def _security_headers(response):
        for name, value in _HEADERS.items():
            response.headers.setdefault(name, value)
        response.headers.pop("Server", None)
        return response
