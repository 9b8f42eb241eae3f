"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter. The Limiter instance
is created in fieldops/__init__.py with no default limits; this module
attaches a limit to each route category, keyed on the session user so a
whole crew behind one site hotspot does not share a bucket.

Usage:
    from fieldops.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)

# Blueprint name -> config key holding its limit
BLUEPRINT_LIMITS = {
    "auth": "RATELIMIT_SESSIONS",
    "jobs": "RATELIMIT_WRITE",
    "workflow": "RATELIMIT_WRITE",
    "silica": "RATELIMIT_WRITE",
    "operators": "RATELIMIT_WRITE",
    "assets": "RATELIMIT_WRITE",
    "reconciliation": "RATELIMIT_WRITE",
    "documents": "RATELIMIT_READ",
}


def rate_limit_key():
    """Session user when authenticated, else remote IP."""
    session = getattr(g, "session", None)
    if session is not None:
        return f"user:{session.user_id}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Defaults (per session user, falling back to remote IP):
        - Session issuing:  20/minute
        - Write endpoints:  60/minute
        - Read endpoints:   200/minute
        - Health check:     exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    applied = {}
    for bp_name, key in BLUEPRINT_LIMITS.items():
        bp = app.blueprints.get(bp_name)
        if bp is None:
            continue
        limit = app.config[key]
        limiter.limit(limit, key_func=rate_limit_key)(bp)
        applied[bp_name] = limit

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    logger.info("Rate limiter configured: %s", applied)
