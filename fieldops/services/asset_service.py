"""
Blade / Bit Lifecycle — Service Layer.

Business logic for:
    - Inventory:        admin-only create, assign to operator
    - Usage:            monotonic counters while active; no-op once retired
    - Retirement:       reason + photo mandatory, terminal
    - Brand analytics:  read-side aggregation over all blades by brand
"""

import logging
from collections import defaultdict
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError

from fieldops.core.exceptions import NotFoundError, ValidationError
from fieldops.models import db, utcnow
from fieldops.models.asset import BLADE_TYPES, Blade, validate_blade_transition
from fieldops.models.operator import OperatorProfile
from fieldops.services import storage_service
from fieldops.utils.helpers import as_utc, clean_str, get_or_raise, parse_date, parse_decimal

logger = logging.getLogger(__name__)


def get_blade(blade_id: int) -> Blade:
    return get_or_raise(Blade, blade_id, "Blade")


def get_visible_blade(ctx, blade_id: int) -> Blade:
    """Operators may only touch blades assigned to them."""
    blade = get_blade(blade_id)
    if not ctx.is_admin:
        from fieldops.services.job_service import operator_profile_for

        profile = operator_profile_for(ctx)
        if profile is None or blade.assigned_operator_id != profile.id:
            raise NotFoundError(resource="Blade", resource_id=blade_id)
    return blade


def list_blades(ctx, status: str | None = None, brand: str | None = None) -> list[Blade]:
    query = Blade.query
    if not ctx.is_admin:
        from fieldops.services.job_service import operator_profile_for

        profile = operator_profile_for(ctx)
        if profile is None:
            return []
        query = query.filter(Blade.assigned_operator_id == profile.id)
    if status:
        query = query.filter(Blade.status == status)
    if brand:
        query = query.filter(Blade.brand == brand)
    return query.order_by(Blade.brand, Blade.serial_number).all()


def create_blade(ctx, data: dict) -> Blade:
    ctx.require_admin("blade creation")
    errors = {}
    blade_type = data.get("blade_type")
    if blade_type not in BLADE_TYPES:
        errors["blade_type"] = "invalid"
    brand = clean_str(data.get("brand"), "brand")
    if not brand:
        errors["brand"] = "required"
    serial = clean_str(data.get("serial_number"), "serial_number")
    if not serial:
        errors["serial_number"] = "required"
    if errors:
        raise ValidationError("Blade is missing required fields", details=errors)
    if Blade.query.filter_by(serial_number=serial).first() is not None:
        raise ValidationError("serial_number already exists", details={"serial_number": "duplicate"})

    blade = Blade(
        blade_type=blade_type,
        brand=brand,
        size=clean_str(data.get("size"), "size") or None,
        serial_number=serial,
        purchase_date=parse_date(data.get("purchase_date")),
        purchase_cost=parse_decimal(data.get("purchase_cost"), "purchase_cost", minimum=0),
        notes=clean_str(data.get("notes"), "notes") or None,
        status="active",
    )
    if data.get("assigned_operator_id") not in (None, ""):
        blade.assigned_operator_id = get_or_raise(
            OperatorProfile, int(data["assigned_operator_id"]), "OperatorProfile"
        ).id
    db.session.add(blade)
    db.session.commit()
    logger.info("Created blade %s (%s %s)", blade.id, brand, serial)
    return blade


def assign_blade(ctx, blade_id: int, operator_id) -> Blade:
    ctx.require_admin("blade assignment")
    blade = get_blade(blade_id)
    if blade.status == "retired":
        raise ValidationError("Retired blades cannot be assigned", details={"status": "retired"})
    if operator_id in (None, ""):
        blade.assigned_operator_id = None
    else:
        try:
            operator_pk = int(operator_id)
        except (TypeError, ValueError) as exc:
            raise ValidationError("operator_id must be an integer", details={"operator_id": "invalid"}) from exc
        blade.assigned_operator_id = get_or_raise(OperatorProfile, operator_pk, "OperatorProfile").id
    db.session.commit()
    return blade


def record_usage(ctx, blade_id: int, data: dict) -> tuple[Blade, bool]:
    """Add usage to an active blade.

    Returns ``(blade, applied)``. Usage against a retired blade is accepted
    as a no-op (``applied=False``) so counters stay frozen.
    """
    blade = get_visible_blade(ctx, blade_id)

    linear_feet = parse_decimal(data.get("linear_feet"), "linear_feet", minimum=0) or Decimal("0")
    inches = parse_decimal(data.get("inches"), "inches", minimum=0) or Decimal("0")
    holes = data.get("holes_count") or 0
    try:
        holes = int(holes)
    except (TypeError, ValueError) as exc:
        raise ValidationError("holes_count must be an integer", details={"holes_count": "invalid"}) from exc
    if holes < 0:
        raise ValidationError("holes_count cannot be negative", details={"holes_count": "negative"})

    if blade.status == "retired":
        logger.info("Ignoring usage for retired blade %s", blade.id)
        return blade, False

    if blade.is_core_bit:
        if linear_feet:
            raise ValidationError("Core bits track inches and holes, not linear feet", details={"linear_feet": "invalid"})
        blade.total_inches = (blade.total_inches or 0) + inches
        blade.holes_count = (blade.holes_count or 0) + holes
    else:
        if inches or holes:
            raise ValidationError("Saw blades track linear feet only", details={"inches": "invalid"})
        blade.total_linear_feet = (blade.total_linear_feet or 0) + linear_feet
    db.session.commit()
    return blade, True


def retire_blade(ctx, blade_id: int, reason: str, photo) -> Blade:
    """Retire a blade; ``photo`` is a werkzeug FileStorage (or None)."""
    blade = get_visible_blade(ctx, blade_id)

    if not validate_blade_transition(blade.status, "retired"):
        raise ValidationError("Blade is already retired", details={"status": blade.status})
    reason = clean_str(reason, "reason")
    errors = {}
    if not reason:
        errors["reason"] = "required"
    if photo is None or not getattr(photo, "filename", None):
        errors["photo"] = "required"
    if errors:
        raise ValidationError("A reason and a photo are required to retire a blade", details=errors)

    key = storage_service.put_upload(
        photo, folder=f"blades/{blade.id}", allowed=storage_service.ALLOWED_IMAGE_TYPES, field="photo"
    )
    blade.status = "retired"
    blade.retired_at = utcnow()
    blade.retirement_reason = reason
    blade.retirement_photo_key = key
    blade.retired_by = ctx.user_id
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        storage_service.delete(key)
        logger.error("Blade %s retirement not saved; discarded photo %s", blade_id, key)
        raise
    logger.info("Retired blade %s: %s", blade.id, reason)
    return blade


def brand_analytics(ctx) -> list[dict]:
    """Per-brand totals over active and retired blades."""
    ctx.require_admin("blade analytics")
    groups = defaultdict(list)
    for blade in Blade.query.all():
        groups[blade.brand].append(blade)

    results = []
    for brand in sorted(groups):
        blades = groups[brand]
        retired = [b for b in blades if b.status == "retired"]
        investment = sum((b.purchase_cost or Decimal("0") for b in blades), Decimal("0"))
        total_usage = sum(Decimal(str(b.usage_amount)) for b in blades)

        lifespans = [
            (as_utc(b.retired_at).date() - b.purchase_date).days
            for b in retired
            if b.retired_at is not None and b.purchase_date is not None
        ]
        retired_usage = [b.usage_amount for b in retired]
        results.append({
            "brand": brand,
            "total_blades": len(blades),
            "active": len(blades) - len(retired),
            "retired": len(retired),
            "total_investment": str(investment.quantize(Decimal("0.01"))),
            "total_usage": float(total_usage),
            "total_linear_feet": float(sum(Decimal(str(b.total_linear_feet or 0)) for b in blades)),
            "total_inches": float(sum(Decimal(str(b.total_inches or 0)) for b in blades)),
            "total_holes": sum(b.holes_count or 0 for b in blades),
            "average_lifespan_days": round(sum(lifespans) / len(lifespans), 1) if lifespans else None,
            "average_usage_at_retirement": round(sum(retired_usage) / len(retired_usage), 2) if retired_usage else None,
            "usage_per_dollar": round(float(total_usage / investment), 4) if investment > 0 else None,
        })
    return results
