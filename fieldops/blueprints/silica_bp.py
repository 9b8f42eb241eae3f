"""
Silica Exposure Plan Blueprint.

Endpoints:
  GET  /api/v1/jobs/<id>/silica-plan/check  — Does a plan exist? { exists, view, next_step }
  POST /api/v1/jobs/<id>/silica-plan        — Submit once; a second submit → 409 already_submitted
  GET  /api/v1/jobs/<id>/silica-plan        — The submitted plan

A 409 body carries ``view: "already_submitted"`` and ``next_step`` so the
client can switch straight to the terminal view.
"""

from flask import Blueprint, jsonify

from fieldops.auth import current_session, require_session
from fieldops.blueprints import json_body, register_error_handlers
from fieldops.services import silica_service

silica_bp = Blueprint("silica", __name__, url_prefix="/api/v1/jobs/<int:job_id>/silica-plan")
register_error_handlers(silica_bp)


@silica_bp.route("/check", methods=["GET"])
@require_session
def check(job_id: int):
    return jsonify(silica_service.check(current_session(), job_id)), 200


@silica_bp.route("", methods=["POST"])
@require_session
def submit(job_id: int):
    """
    Body: { "employee_name", "employee_phone"?, "employees_on_job": [...],
            "work_types": [...], "water_delivery_integrated": bool,
            "work_location": "indoor" | "outdoor", "cutting_time",
            "apf10_required", "other_safety_concerns"?, "signature", "signature_date" }
    """
    result = silica_service.submit(current_session(), job_id, json_body())
    doc = result["document"]
    return jsonify({
        "plan": result["plan"].to_dict(),
        "document": doc.to_dict() if doc is not None else None,
        "document_error": result["document_error"],
    }), 201


@silica_bp.route("", methods=["GET"])
@require_session
def get_plan(job_id: int):
    return jsonify(silica_service.get_plan(current_session(), job_id).to_dict()), 200
