"""
Security headers middleware.

Every response carries a locked-down Content-Security-Policy, nosniff,
DENY framing, HSTS, a strict referrer policy and a Permissions-Policy that
leaves only camera and geolocation to the field app. API responses are
never cached: they carry signatures, customer contact details and bearer
session payloads.

Usage:
    from fieldops.middleware.security_headers import init_security_headers
    init_security_headers(app)
"""

from flask import request

_STATIC_HEADERS = {
    # JSON API and PDF downloads only; nothing is rendered as a page
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'; base-uri 'none'",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    # Photos for blade retirement; coordinates on start work / end day
    "Permissions-Policy": "camera=(self), microphone=(), geolocation=(self), payment=()",
}


def init_security_headers(app):
    """Register after_request handler that injects security headers."""

    @app.after_request
    def _add_security_headers(response):
        for name, value in _STATIC_HEADERS.items():
            response.headers.setdefault(name, value)

        if request.path.startswith("/api/"):
            response.headers.setdefault("Cache-Control", "no-store")

        response.headers.pop("Server", None)
        return response
