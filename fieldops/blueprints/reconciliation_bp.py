"""
Reconciliation Blueprint — admin consistency audit.

Endpoints:
  GET  /api/v1/reconciliation/status-breakdown        — Count per status
  GET  /api/v1/reconciliation/multi-day               — Jobs with >1 daily log
  GET  /api/v1/reconciliation/orphans                 — Detect orphans (read-only)
  POST /api/v1/reconciliation/orphan-scans            — Detect and persist a scan
  GET  /api/v1/reconciliation/orphan-scans            — Scan history
  GET  /api/v1/reconciliation/orphan-scans/<id>       — One scan
  POST /api/v1/reconciliation/orphan-scans/<id>/cleanup  — { "confirm": true } deletes the stored set
  GET  /api/v1/reconciliation/drift                   — Status drift report
  POST /api/v1/reconciliation/drift/repair            — { "confirm": true, "job_ids"? } forward-only fix
"""

import logging

from flask import Blueprint, jsonify

from fieldops.auth import ROLE_ADMIN, current_session, require_role
from fieldops.blueprints import json_body, register_error_handlers
from fieldops.services import reconciliation_service

logger = logging.getLogger(__name__)

reconciliation_bp = Blueprint("reconciliation", __name__, url_prefix="/api/v1/reconciliation")
register_error_handlers(reconciliation_bp)


@reconciliation_bp.route("/status-breakdown", methods=["GET"])
@require_role(ROLE_ADMIN)
def status_breakdown():
    return jsonify(reconciliation_service.status_breakdown(current_session())), 200


@reconciliation_bp.route("/multi-day", methods=["GET"])
@require_role(ROLE_ADMIN)
def multi_day():
    items = reconciliation_service.multi_day_jobs(current_session())
    return jsonify({"items": items, "total": len(items)}), 200


# ── Orphans ──────────────────────────────────────────────────────────────────


@reconciliation_bp.route("/orphans", methods=["GET"])
@require_role(ROLE_ADMIN)
def find_orphans():
    return jsonify(reconciliation_service.find_orphans(current_session())), 200


@reconciliation_bp.route("/orphan-scans", methods=["POST"])
@require_role(ROLE_ADMIN)
def create_scan():
    scan = reconciliation_service.create_scan(current_session())
    return jsonify(scan.to_dict()), 201


@reconciliation_bp.route("/orphan-scans", methods=["GET"])
@require_role(ROLE_ADMIN)
def list_scans():
    scans = reconciliation_service.list_scans(current_session())
    return jsonify({"items": [s.to_dict() for s in scans], "total": len(scans)}), 200


@reconciliation_bp.route("/orphan-scans/<int:scan_id>", methods=["GET"])
@require_role(ROLE_ADMIN)
def get_scan(scan_id: int):
    return jsonify(reconciliation_service.get_scan(current_session(), scan_id).to_dict()), 200


@reconciliation_bp.route("/orphan-scans/<int:scan_id>/cleanup", methods=["POST"])
@require_role(ROLE_ADMIN)
def cleanup_scan(scan_id: int):
    data = json_body()
    scan = reconciliation_service.cleanup_scan(current_session(), scan_id, confirm=data.get("confirm") is True)
    return jsonify(scan.to_dict()), 200


# ── Drift ────────────────────────────────────────────────────────────────────


@reconciliation_bp.route("/drift", methods=["GET"])
@require_role(ROLE_ADMIN)
def drift():
    items = reconciliation_service.detect_drift(current_session())
    return jsonify({"items": items, "total": len(items)}), 200


@reconciliation_bp.route("/drift/repair", methods=["POST"])
@require_role(ROLE_ADMIN)
def repair_drift():
    data = json_body()
    result = reconciliation_service.repair_drift(
        current_session(), confirm=data.get("confirm") is True, job_ids=data.get("job_ids")
    )
    return jsonify(result), 200
