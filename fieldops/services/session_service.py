"""
Session Service — bearer token issue, verification and teardown.

Algorithm: HS256
Lifetime:  SESSION_TOKEN_TTL seconds (default one 12h shift)

Token payload:
{
    "sub": "<user_id>",
    "role": "admin" | "operator",
    "type": "access",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": "<session id>"
}

Each token maps to one UserSession row. Opening a session is the login
side of the lifecycle; closing it stamps ``ended_at`` and every later
request carrying that token is refused.
"""

import logging
import uuid
from datetime import timedelta

import jwt
from flask import current_app

from fieldops.auth import SessionContext
from fieldops.core.exceptions import AuthenticationError, ValidationError
from fieldops.models import db, utcnow
from fieldops.models.auth import ROLES, UserSession

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
DEFAULT_TOKEN_TTL = 12 * 3600


def _get_secret():
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _get_ttl() -> int:
    return int(current_app.config.get("SESSION_TOKEN_TTL", DEFAULT_TOKEN_TTL))


# ═══════════════════════════════════════════════════════════════
# Lifecycle
# ═══════════════════════════════════════════════════════════════

def open_session(
    user_id: str,
    role: str,
    *,
    issued_by: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> dict:
    """Issue a token for ``user_id`` and record the session."""
    user_id = str(user_id or "").strip()
    if not user_id:
        raise ValidationError("user_id is required", details={"user_id": "required"})
    if role not in ROLES:
        raise ValidationError(
            f"role must be one of {', '.join(ROLES)}", details={"role": "invalid"}
        )

    now = utcnow()
    ttl = _get_ttl()
    expires_at = now + timedelta(seconds=ttl)
    jti = uuid.uuid4().hex
    payload = {
        "sub": user_id,
        "role": role,
        "type": "access",
        "iat": now,
        "exp": expires_at,
        "jti": jti,
    }
    token = jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)

    row = UserSession(
        jti=jti,
        user_id=user_id,
        role=role,
        issued_by=issued_by,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:500],
        expires_at=expires_at,
    )
    db.session.add(row)
    db.session.commit()
    logger.info("Session opened user=%s role=%s", user_id, role)

    return {
        "access_token": token,
        "token_type": "Bearer",
        "expires_in": ttl,
        "session": row.to_dict(),
    }


def resolve_token(token: str) -> SessionContext:
    """Decode ``token`` and confirm its session is still open."""
    try:
        payload = jwt.decode(token, _get_secret(), algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationError("Session expired") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError("Invalid token") from exc

    if payload.get("type") != "access" or payload.get("role") not in ROLES:
        raise AuthenticationError("Invalid token")

    row = UserSession.query.filter_by(jti=payload.get("jti")).first()
    if row is None or not row.is_active:
        raise AuthenticationError("Session has ended")

    return SessionContext(user_id=payload["sub"], role=payload["role"], session_id=row.jti)


def close_session(ctx: SessionContext) -> UserSession | None:
    """Logout: stamp ``ended_at`` on the caller's session."""
    if ctx.session_id is None:
        return None
    row = UserSession.query.filter_by(jti=ctx.session_id).first()
    if row is None:
        return None
    if row.ended_at is None:
        row.ended_at = utcnow()
        db.session.commit()
        logger.info("Session closed user=%s", ctx.user_id)
    return row
