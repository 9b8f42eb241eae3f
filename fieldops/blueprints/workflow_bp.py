"""
Workflow Blueprint — the on-site step sequence for one job order.

Endpoints:
  GET    /api/v1/jobs/<id>/workflow                — Step states + next required step
  GET    /api/v1/jobs/<id>/work-performed          — Recorded entries
  POST   /api/v1/jobs/<id>/work-performed          — Append entries { "items": [...] }
  GET    /api/v1/jobs/<id>/work-performed/draft    — Caller's draft
  PUT    /api/v1/jobs/<id>/work-performed/draft    — Replace draft
  DELETE /api/v1/jobs/<id>/work-performed/draft    — Discard draft
  POST   /api/v1/jobs/<id>/work-performed/draft/commit — Draft → entries
  GET    /api/v1/jobs/<id>/standby                 — Standby logs
  POST   /api/v1/jobs/<id>/standby/start           — Open a standby log
  POST   /api/v1/jobs/<id>/standby/end             — Close the active standby log
  POST   /api/v1/jobs/<id>/complete                — Customer signature, job → completed
  POST   /api/v1/jobs/<id>/end-day                 — Multi-day: close today, stay in progress
"""

import logging

from flask import Blueprint, jsonify

from fieldops.auth import current_session, require_session
from fieldops.blueprints import json_body, register_error_handlers
from fieldops.services import job_service, standby_service, work_service, workflow_service

logger = logging.getLogger(__name__)

workflow_bp = Blueprint("workflow", __name__, url_prefix="/api/v1/jobs/<int:job_id>")
register_error_handlers(workflow_bp)


@workflow_bp.route("/workflow", methods=["GET"])
@require_session
def get_workflow(job_id: int):
    return jsonify(workflow_service.get_workflow(current_session(), job_id)), 200


# ── Work performed ───────────────────────────────────────────────────────────


@workflow_bp.route("/work-performed", methods=["GET"])
@require_session
def list_work(job_id: int):
    entries = work_service.list_entries(current_session(), job_id)
    return jsonify({"items": [e.to_dict() for e in entries], "total": len(entries)}), 200


@workflow_bp.route("/work-performed", methods=["POST"])
@require_session
def add_work(job_id: int):
    """
    Body: { "items": [ { "item_name", "quantity", "notes"?,
                         "details_kind": "hole" | "cut" | "general",
                         "details": {...} } ] }
    """
    data = json_body()
    entries = work_service.add_entries(current_session(), job_id, data.get("items"))
    return jsonify({"items": [e.to_dict() for e in entries], "total": len(entries)}), 201


@workflow_bp.route("/work-performed/draft", methods=["GET"])
@require_session
def load_draft(job_id: int):
    return jsonify(work_service.load_draft(current_session(), job_id)), 200


@workflow_bp.route("/work-performed/draft", methods=["PUT"])
@require_session
def save_draft(job_id: int):
    """Body: { "items": [...], "notes"? }"""
    data = json_body()
    draft = work_service.save_draft(current_session(), job_id, data.get("items", []), data.get("notes"))
    return jsonify(draft.to_dict()), 200


@workflow_bp.route("/work-performed/draft", methods=["DELETE"])
@require_session
def clear_draft(job_id: int):
    ctx = current_session()
    job = job_service.get_job(ctx, job_id)
    work_service.clear_draft(job.id, ctx.user_id)
    return "", 204


@workflow_bp.route("/work-performed/draft/commit", methods=["POST"])
@require_session
def commit_draft(job_id: int):
    entries = work_service.commit_draft(current_session(), job_id)
    return jsonify({"items": [e.to_dict() for e in entries], "total": len(entries)}), 201


# ── Standby ──────────────────────────────────────────────────────────────────


@workflow_bp.route("/standby", methods=["GET"])
@require_session
def list_standby(job_id: int):
    logs = standby_service.list_standby(current_session(), job_id)
    return jsonify({"items": [log.to_dict() for log in logs], "total": len(logs)}), 200


@workflow_bp.route("/standby/start", methods=["POST"])
@require_session
def start_standby(job_id: int):
    """Body: { "reason", "client_name"?, "notes"? }"""
    log = standby_service.start_standby(current_session(), job_id, json_body())
    return jsonify(log.to_dict()), 201


@workflow_bp.route("/standby/end", methods=["POST"])
@require_session
def end_standby(job_id: int):
    log = standby_service.end_standby(current_session(), job_id, json_body())
    return jsonify(log.to_dict()), 200


# ── Close-out ────────────────────────────────────────────────────────────────


@workflow_bp.route("/complete", methods=["POST"])
@require_session
def complete_job(job_id: int):
    """
    Body: { "signature", "signer_name", "overall_rating", "cleanliness_rating",
            "communication_rating", "feedback_comments"?, "notes"? }
       or { "contact_not_on_site": true, "notes"? }
    """
    ctx = current_session()
    result = workflow_service.complete_job(ctx, job_id, json_body())
    doc = result["document"]
    return jsonify({
        "job": result["job"].to_dict(include_financials=ctx.is_admin),
        "document": doc.to_dict() if doc is not None else None,
        "document_error": result["document_error"],
    }), 200


@workflow_bp.route("/end-day", methods=["POST"])
@require_session
def end_day(job_id: int):
    """Body: { "notes"?, "signer_name"?, "signature"?, "latitude"?, "longitude"? }"""
    log = workflow_service.end_day(current_session(), job_id, json_body())
    return jsonify(log.to_dict()), 201
