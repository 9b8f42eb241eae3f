"""
Operator Profile Blueprint.

Endpoints:
  GET    /api/v1/operators                         — List (admin), ?active=1
  POST   /api/v1/operators                         — Create (admin)
  GET    /api/v1/operators/me                      — Caller's own profile
  GET    /api/v1/operators/<id>                    — Detail (admin, or the operator themself)
  PATCH  /api/v1/operators/<id>                    — Edit, ?tab=basic|skills|equipment (admin)
  DELETE /api/v1/operators/<id>                    — Deactivate (admin)
  POST   /api/v1/operators/<id>/certifications     — Add certification, JSON or multipart with "document"
  DELETE /api/v1/operators/<id>/certifications/<cert_id>
  GET    /api/v1/operators/<id>/certifications/<cert_id>/document
"""

import io

from flask import Blueprint, jsonify, request, send_file

from fieldops.auth import current_session, require_session
from fieldops.blueprints import json_body, register_error_handlers
from fieldops.core.exceptions import NotFoundError
from fieldops.services import operator_service, storage_service
from fieldops.services.job_service import operator_profile_for

operator_bp = Blueprint("operators", __name__, url_prefix="/api/v1/operators")
register_error_handlers(operator_bp)


@operator_bp.route("", methods=["GET"])
@require_session
def list_operators():
    ctx = current_session()
    active_only = request.args.get("active", "0") in ("1", "true")
    profiles = operator_service.list_profiles(ctx, active_only=active_only)
    return jsonify({
        "items": [operator_service.serialize(ctx, p) for p in profiles],
        "total": len(profiles),
    }), 200


@operator_bp.route("", methods=["POST"])
@require_session
def create_operator():
    ctx = current_session()
    profile = operator_service.create_profile(ctx, json_body())
    return jsonify(operator_service.serialize(ctx, profile)), 201


@operator_bp.route("/me", methods=["GET"])
@require_session
def my_profile():
    ctx = current_session()
    profile = operator_profile_for(ctx)
    if profile is None:
        raise NotFoundError(resource="OperatorProfile", resource_id=ctx.user_id)
    return jsonify(operator_service.serialize(ctx, profile)), 200


@operator_bp.route("/<int:operator_id>", methods=["GET"])
@require_session
def get_operator(operator_id: int):
    ctx = current_session()
    return jsonify(operator_service.serialize(ctx, operator_service.get_profile(ctx, operator_id))), 200


@operator_bp.route("/<int:operator_id>", methods=["PATCH", "PUT"])
@require_session
def update_operator(operator_id: int):
    ctx = current_session()
    profile = operator_service.update_profile(ctx, operator_id, json_body(), tab=request.args.get("tab"))
    return jsonify(operator_service.serialize(ctx, profile)), 200


@operator_bp.route("/<int:operator_id>", methods=["DELETE"])
@require_session
def deactivate_operator(operator_id: int):
    ctx = current_session()
    profile = operator_service.deactivate_profile(ctx, operator_id)
    return jsonify(operator_service.serialize(ctx, profile)), 200


# ── Certifications ───────────────────────────────────────────────────────────


@operator_bp.route("/<int:operator_id>/certifications", methods=["POST"])
@require_session
def add_certification(operator_id: int):
    ctx = current_session()
    if request.mimetype == "multipart/form-data":
        data, document = request.form.to_dict(), request.files.get("document")
    else:
        data, document = json_body(), None
    cert = operator_service.add_certification(ctx, operator_id, data, document)
    return jsonify(cert.to_dict()), 201


@operator_bp.route("/<int:operator_id>/certifications/<int:cert_id>", methods=["DELETE"])
@require_session
def remove_certification(operator_id: int, cert_id: int):
    operator_service.remove_certification(current_session(), operator_id, cert_id)
    return "", 204


@operator_bp.route("/<int:operator_id>/certifications/<int:cert_id>/document", methods=["GET"])
@require_session
def certification_document(operator_id: int, cert_id: int):
    cert, content = operator_service.certification_document(current_session(), operator_id, cert_id)
    filename = cert.document_filename or "certification"
    return send_file(
        io.BytesIO(content),
        mimetype=storage_service.guess_content_type(filename),
        as_attachment=True,
        download_name=filename,
    )
