"""
Job Order Blueprint — admin CRUD and field actions on job orders.

Endpoints:
  GET    /api/v1/jobs                           — List (operators: own jobs only), ?status=
  POST   /api/v1/jobs                           — Create (admin)
  GET    /api/v1/jobs/<id>                      — Detail
  PATCH  /api/v1/jobs/<id>                      — Partial update (admin)
  DELETE /api/v1/jobs/<id>                      — Soft delete (admin)
  POST   /api/v1/jobs/<id>/assign               — Assign operator (admin)
  POST   /api/v1/jobs/<id>/start                — Operator arrives, work starts
  POST   /api/v1/jobs/<id>/liability-release    — Customer signs liability release
  GET    /api/v1/jobs/<id>/costs                — Profitability breakdown (admin)
  GET    /api/v1/jobs/<id>/daily-logs           — End-of-day logs for multi-day jobs
  GET    /api/v1/jobs/completed                 — Completed listing with summary (admin)
  GET    /api/v1/jobs/completed/export.xlsx     — Completed listing as Excel (admin)

Financial fields (quoted amount, equipment and material cost) are only
serialised for admin sessions.
"""

import logging
from datetime import datetime, timezone

from flask import Blueprint, jsonify, request, send_file

from fieldops.auth import current_session, require_session
from fieldops.blueprints import json_body, register_error_handlers
from fieldops.services import cost_service, export_service, job_service, workflow_service

logger = logging.getLogger(__name__)

job_bp = Blueprint("jobs", __name__, url_prefix="/api/v1/jobs")
register_error_handlers(job_bp)


def _job_dict(ctx, job) -> dict:
    return job.to_dict(include_financials=ctx.is_admin)


def _document_result(ctx, result: dict) -> dict:
    doc = result["document"]
    return {
        "job": _job_dict(ctx, result["job"]),
        "document": doc.to_dict() if doc is not None else None,
        "document_error": result["document_error"],
    }


# ── Collection ───────────────────────────────────────────────────────────────


@job_bp.route("", methods=["GET"])
@require_session
def list_jobs():
    ctx = current_session()
    jobs = job_service.list_jobs(ctx, status=request.args.get("status"))
    return jsonify({"items": [_job_dict(ctx, j) for j in jobs], "total": len(jobs)}), 200


@job_bp.route("", methods=["POST"])
@require_session
def create_job():
    """
    Create a job order. Accepts canonical names or their aliases
    (customer / client_name, job_location / address, job_quote, ...).
    """
    ctx = current_session()
    job = job_service.create_job(ctx, json_body())
    return jsonify(_job_dict(ctx, job)), 201


@job_bp.route("/completed", methods=["GET"])
@require_session
def completed_jobs():
    ctx = current_session()
    result = job_service.completed_jobs(ctx)
    return jsonify({
        "items": [_job_dict(ctx, j) for j in result["jobs"]],
        "summary": result["summary"],
    }), 200


@job_bp.route("/completed/export.xlsx", methods=["GET"])
@require_session
def export_completed():
    ctx = current_session()
    buf = export_service.export_completed_jobs_xlsx(ctx)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d")
    return send_file(
        buf,
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        as_attachment=True,
        download_name=f"completed_jobs_{stamp}.xlsx",
    )


# ── Single job ───────────────────────────────────────────────────────────────


@job_bp.route("/<int:job_id>", methods=["GET"])
@require_session
def get_job(job_id: int):
    ctx = current_session()
    return jsonify(_job_dict(ctx, job_service.get_job(ctx, job_id))), 200


@job_bp.route("/<int:job_id>", methods=["PATCH", "PUT"])
@require_session
def update_job(job_id: int):
    ctx = current_session()
    job = job_service.update_job(ctx, job_id, json_body())
    return jsonify(_job_dict(ctx, job)), 200


@job_bp.route("/<int:job_id>", methods=["DELETE"])
@require_session
def delete_job(job_id: int):
    ctx = current_session()
    job_service.delete_job(ctx, job_id)
    return "", 204


@job_bp.route("/<int:job_id>/assign", methods=["POST"])
@require_session
def assign_job(job_id: int):
    """Body: { "operator_id": <operator profile id> }"""
    ctx = current_session()
    data = json_body()
    job = job_service.assign_operator(ctx, job_id, data.get("operator_id"))
    return jsonify(_job_dict(ctx, job)), 200


# ── Field actions ────────────────────────────────────────────────────────────


@job_bp.route("/<int:job_id>/start", methods=["POST"])
@require_session
def start_work(job_id: int):
    """Body (optional): { "arrival_time", "latitude", "longitude" }"""
    ctx = current_session()
    job = job_service.start_work(ctx, job_id, json_body())
    return jsonify(_job_dict(ctx, job)), 200


@job_bp.route("/<int:job_id>/liability-release", methods=["POST"])
@require_session
def liability_release(job_id: int):
    """Body: { "signer_name", "customer_email"? }"""
    ctx = current_session()
    result = job_service.sign_liability_release(ctx, job_id, json_body())
    return jsonify(_document_result(ctx, result)), 201


@job_bp.route("/<int:job_id>/costs", methods=["GET"])
@require_session
def job_costs(job_id: int):
    ctx = current_session()
    return jsonify(cost_service.job_costs(ctx, job_id)), 200


@job_bp.route("/<int:job_id>/daily-logs", methods=["GET"])
@require_session
def daily_logs(job_id: int):
    ctx = current_session()
    logs = workflow_service.daily_logs(ctx, job_id)
    return jsonify({"items": [log.to_dict() for log in logs], "total": len(logs)}), 200
