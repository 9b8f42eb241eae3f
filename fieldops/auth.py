"""
Field Operations Platform
Authentication & session context.

Provides:
    - SessionContext: explicit (user_id, role, session_id) value passed
      from blueprints into every service call
    - Bearer-token resolution on each /api/v1/* request → g.session
    - require_session / require_role decorators for blueprints

Security model:
    - Every /api/v1/* endpoint except health requires a live session
    - Tokens are HS256 JWTs issued by services.session_service; a token
      whose session has been closed (logout) is rejected
    - Roles: admin (office) and operator (field crew)

Configuration:
    API_AUTH_ENABLED  — "false" yields a development admin session
"""

import functools
import logging
from dataclasses import dataclass

from flask import current_app, g, request

from fieldops.core.exceptions import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)

ROLE_ADMIN = "admin"
ROLE_OPERATOR = "operator"

DEV_SESSION_USER = "dev-admin"

# Paths that never need a session
AUTH_SKIP_PREFIXES = (
    "/api/v1/health",
)


@dataclass(frozen=True)
class SessionContext:
    """Who is calling, resolved once per request."""

    user_id: str
    role: str
    session_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def require_admin(self, action: str = "this operation") -> None:
        if not self.is_admin:
            logger.warning(
                "Access denied: user=%s role=%s attempted admin-only %s",
                self.user_id, self.role, action,
            )
            raise AuthorizationError(f"Only administrators may perform {action}", required_role=ROLE_ADMIN)


def _is_auth_enabled() -> bool:
    return str(current_app.config.get("API_AUTH_ENABLED", "true")).lower() not in ("false", "0", "no", "off")


def _bearer_token() -> str | None:
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return None
    return header[7:].strip() or None


def current_session() -> SessionContext:
    """Return the request's session or raise AuthenticationError."""
    ctx = getattr(g, "session", None)
    if ctx is None:
        raise AuthenticationError(getattr(g, "auth_error", None) or "Authentication required")
    return ctx


# ── Decorators ───────────────────────────────────────────────────────────────

def require_session(f):
    """Decorator: endpoint needs any live session."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        current_session()
        return f(*args, **kwargs)
    return decorated


def require_role(role: str):
    """
    Decorator: endpoint needs a session with exactly this role.

    Usage:
        @require_role("admin")
        def create_job(): ...
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            ctx = current_session()
            if ctx.role != role:
                logger.warning(
                    "Access denied: role '%s' tried to access '%s' endpoint %s",
                    ctx.role, role, request.path,
                )
                raise AuthorizationError("Insufficient permissions", required_role=role)
            return f(*args, **kwargs)
        return decorated
    return decorator


# ── before_request hook installer ────────────────────────────────────────────

def init_auth(app):
    """
    Install session resolution on the Flask app.

    Sets g.session to a SessionContext, or None when the request carries no
    usable token (g.auth_error then explains why). Rejection happens in the
    decorators so that health and pre-flight requests pass untouched.
    """
    from fieldops.services.session_service import resolve_token

    @app.before_request
    def _resolve_session():
        g.session = None
        g.auth_error = None

        path = request.path
        if not path.startswith("/api/v1/") or request.method == "OPTIONS":
            return None
        for prefix in AUTH_SKIP_PREFIXES:
            if path.startswith(prefix):
                return None

        if not _is_auth_enabled():
            g.session = SessionContext(user_id=DEV_SESSION_USER, role=ROLE_ADMIN)
            return None

        token = _bearer_token()
        if token is None:
            g.auth_error = "Authentication required. Provide a Bearer token."
            return None

        try:
            g.session = resolve_token(token)
        except AuthenticationError as exc:
            logger.info("Rejected bearer token on %s: %s", path, exc)
            g.auth_error = str(exc)
        return None
