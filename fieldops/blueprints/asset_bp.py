"""
Blade / Bit Blueprint.

Endpoints:
  GET  /api/v1/blades                     — List (operators: own blades), ?status= &brand=
  POST /api/v1/blades                     — Create (admin)
  GET  /api/v1/blades/analytics/brands    — Per-brand analytics (admin)
  GET  /api/v1/blades/<id>                — Detail
  POST /api/v1/blades/<id>/assign         — Assign / unassign operator (admin)
  POST /api/v1/blades/<id>/usage          — Record usage; retired blades → applied=false
  POST /api/v1/blades/<id>/retire         — multipart: reason + photo

purchase_cost is only serialised for admin sessions.
"""

from flask import Blueprint, jsonify, request

from fieldops.auth import current_session, require_session
from fieldops.blueprints import json_body, register_error_handlers
from fieldops.services import asset_service

asset_bp = Blueprint("assets", __name__, url_prefix="/api/v1/blades")
register_error_handlers(asset_bp)


def _blade_dict(ctx, blade) -> dict:
    return blade.to_dict(include_cost=ctx.is_admin)


@asset_bp.route("", methods=["GET"])
@require_session
def list_blades():
    ctx = current_session()
    blades = asset_service.list_blades(ctx, status=request.args.get("status"), brand=request.args.get("brand"))
    return jsonify({"items": [_blade_dict(ctx, b) for b in blades], "total": len(blades)}), 200


@asset_bp.route("", methods=["POST"])
@require_session
def create_blade():
    ctx = current_session()
    blade = asset_service.create_blade(ctx, json_body())
    return jsonify(_blade_dict(ctx, blade)), 201


@asset_bp.route("/analytics/brands", methods=["GET"])
@require_session
def brand_analytics():
    return jsonify({"brands": asset_service.brand_analytics(current_session())}), 200


@asset_bp.route("/<int:blade_id>", methods=["GET"])
@require_session
def get_blade(blade_id: int):
    ctx = current_session()
    return jsonify(_blade_dict(ctx, asset_service.get_visible_blade(ctx, blade_id))), 200


@asset_bp.route("/<int:blade_id>/assign", methods=["POST"])
@require_session
def assign_blade(blade_id: int):
    """Body: { "operator_id": <id> | null }"""
    ctx = current_session()
    blade = asset_service.assign_blade(ctx, blade_id, json_body().get("operator_id"))
    return jsonify(_blade_dict(ctx, blade)), 200


@asset_bp.route("/<int:blade_id>/usage", methods=["POST"])
@require_session
def record_usage(blade_id: int):
    """Body: { "linear_feet" } for saws, { "inches", "holes_count" } for core bits."""
    ctx = current_session()
    blade, applied = asset_service.record_usage(ctx, blade_id, json_body())
    return jsonify({"blade": _blade_dict(ctx, blade), "applied": applied}), 200


@asset_bp.route("/<int:blade_id>/retire", methods=["POST"])
@require_session
def retire_blade(blade_id: int):
    """multipart/form-data: reason=<text>, photo=<image file>"""
    ctx = current_session()
    blade = asset_service.retire_blade(
        ctx, blade_id, request.form.get("reason"), request.files.get("photo")
    )
    return jsonify(_blade_dict(ctx, blade)), 200
