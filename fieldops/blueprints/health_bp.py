"""
Health check blueprint.

Endpoints:
    GET /api/v1/health        — simple 200 with app name
    GET /api/v1/health/ready  — readiness: database reachable and document store writable
    GET /api/v1/health/live   — liveness: 200 if the process is serving
"""

import logging
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from fieldops.models import db
from fieldops.services import storage_service

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@health_bp.route("", methods=["GET"])
def health():
    return jsonify({"status": "ok", "app": current_app.config.get("COMPANY_NAME")}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Simple liveness probe — always 200 if app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Readiness check with dependency status."""
    checks = {}
    overall = True

    # ── Database ─────────────────────────────────────────────────────
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        checks["database"] = {"status": "ok", "latency_ms": round(db_ms, 1)}
    except SQLAlchemyError as exc:
        db.session.rollback()
        checks["database"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check: database failed: %s", exc)

    # ── Document store ───────────────────────────────────────────────
    checks["storage"] = storage_service.check_writable()
    if checks["storage"]["status"] != "ok":
        overall = False
        logger.error("Health check: storage failed: %s", checks["storage"].get("detail"))

    checks["app"] = {
        "debug": current_app.debug,
        "testing": current_app.testing,
    }

    status_code = 200 if overall else 503
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), status_code
