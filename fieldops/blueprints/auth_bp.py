"""
Auth Blueprint — session lifecycle endpoints.

Endpoints:
  POST   /api/v1/auth/sessions          — Admin issues a session for a user
  DELETE /api/v1/auth/sessions/current  — Logout (close the caller's session)
  GET    /api/v1/auth/me                — Current session context
"""

from flask import Blueprint, jsonify, request

from fieldops.auth import ROLE_ADMIN, current_session, require_role, require_session
from fieldops.blueprints import json_body, register_error_handlers
from fieldops.services import session_service
from fieldops.services.job_service import operator_profile_for

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")
register_error_handlers(auth_bp)


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/sessions
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/sessions", methods=["POST"])
@require_role(ROLE_ADMIN)
def create_session():
    """
    Issue a bearer token for a user.

    Body: { "user_id": "...", "role": "admin" | "operator" }
    """
    ctx = current_session()
    data = json_body()
    result = session_service.open_session(
        data.get("user_id"),
        data.get("role"),
        issued_by=ctx.user_id,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    return jsonify(result), 201


# ═══════════════════════════════════════════════════════════════
# DELETE /api/v1/auth/sessions/current
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/sessions/current", methods=["DELETE"])
@require_session
def logout():
    row = session_service.close_session(current_session())
    return jsonify({"closed": row is not None}), 200


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/auth/me
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
@require_session
def me():
    ctx = current_session()
    profile = operator_profile_for(ctx)
    return jsonify({
        "user_id": ctx.user_id,
        "role": ctx.role,
        "session_id": ctx.session_id,
        "operator_profile_id": profile.id if profile else None,
    }), 200
