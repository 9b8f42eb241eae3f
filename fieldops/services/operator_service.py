"""
Operator Profiles — Service Layer.

Business logic for:
    - Profile CRUD:      admin-only create / edit / deactivate
    - Editor tabs:       basic, skills, equipment, certifications
    - Skill maps:        proficiency clamped into [1, 10]
    - Certifications:    optional scanned document kept in the document store
    - Completion hooks:  running-mean ratings and performance metrics

Operators may read their own profile; ``hourly_rate`` is only ever written by
and serialised for admins.
"""

import logging
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError

from fieldops.core.exceptions import NotFoundError, ValidationError
from fieldops.models import db
from fieldops.models.operator import OperatorCertification, OperatorProfile, clamp_proficiency
from fieldops.services import storage_service
from fieldops.utils.helpers import clean_str, get_or_raise, parse_date, parse_decimal

logger = logging.getLogger(__name__)

PROFILE_TABS = ("basic", "skills", "equipment", "certifications")

BASIC_FIELDS = ("full_name", "email", "phone", "address", "hire_date", "is_active")


# ── Access ───────────────────────────────────────────────────────────────────


def get_profile(ctx, operator_id: int) -> OperatorProfile:
    """Admins see any profile; operators only their own."""
    profile = get_or_raise(OperatorProfile, operator_id, "OperatorProfile")
    if not ctx.is_admin and profile.user_id != ctx.user_id:
        raise NotFoundError(resource="OperatorProfile", resource_id=operator_id)
    return profile


def list_profiles(ctx, active_only: bool = False) -> list[OperatorProfile]:
    ctx.require_admin("operator listing")
    query = OperatorProfile.query
    if active_only:
        query = query.filter(OperatorProfile.is_active.is_(True))
    return query.order_by(OperatorProfile.full_name).all()


def serialize(ctx, profile: OperatorProfile) -> dict:
    return profile.to_dict(include_rate=ctx.is_admin)


# ── Tab parsers ──────────────────────────────────────────────────────────────


def _basic_values(data: dict, *, creating: bool) -> dict:
    values = {}
    for key in BASIC_FIELDS:
        if key not in data:
            continue
        raw = data[key]
        if key == "hire_date":
            parsed = parse_date(raw)
            if raw not in (None, "") and parsed is None:
                raise ValidationError("hire_date must be a date", details={"hire_date": "invalid"})
            values[key] = parsed
        elif key == "is_active":
            if not isinstance(raw, bool):
                raise ValidationError("is_active must be a boolean", details={"is_active": "invalid"})
            values[key] = raw
        else:
            values[key] = str(raw).strip() or None if raw is not None else None

    if creating or "full_name" in values:
        if not values.get("full_name"):
            raise ValidationError("full_name is required", details={"full_name": "required"})
    return values


def _skill_levels(raw) -> dict:
    if not isinstance(raw, dict):
        raise ValidationError("skill_levels must be an object", details={"skill_levels": "invalid"})
    return {str(task): clamp_proficiency(level) for task, level in raw.items()}


def _equipment_qualifications(raw) -> dict:
    if not isinstance(raw, dict):
        raise ValidationError(
            "equipment_qualifications must be an object", details={"equipment_qualifications": "invalid"}
        )
    result = {}
    for equipment, entry in raw.items():
        if isinstance(entry, dict):
            qualified = bool(entry.get("qualified", True))
            proficiency = entry.get("proficiency", 1)
        else:
            # bare number shorthand: {"wall_saw": 7}
            qualified, proficiency = True, entry
        result[str(equipment)] = {"qualified": qualified, "proficiency": clamp_proficiency(proficiency)}
    return result


def _apply_rate(ctx, profile: OperatorProfile, data: dict) -> None:
    if "hourly_rate" not in data:
        return
    ctx.require_admin("hourly rate edits")
    profile.hourly_rate = parse_decimal(data["hourly_rate"], "hourly_rate", minimum=0)


# ── CRUD ─────────────────────────────────────────────────────────────────────


def create_profile(ctx, data: dict) -> OperatorProfile:
    ctx.require_admin("operator profile creation")
    user_id = clean_str(data.get("user_id"), "user_id")
    if not user_id:
        raise ValidationError("user_id is required", details={"user_id": "required"})
    if OperatorProfile.query.filter_by(user_id=user_id).first() is not None:
        raise ValidationError("user_id already has a profile", details={"user_id": "duplicate"})

    profile = OperatorProfile(user_id=user_id, **_basic_values(data, creating=True))
    profile.skill_levels = _skill_levels(data.get("skill_levels") or {})
    profile.equipment_qualifications = _equipment_qualifications(data.get("equipment_qualifications") or {})
    _apply_rate(ctx, profile, data)
    db.session.add(profile)
    db.session.commit()
    logger.info("Created operator profile %s for user %s", profile.id, user_id)
    return profile


def update_profile(ctx, operator_id: int, data: dict, tab: str | None = None) -> OperatorProfile:
    """Apply one editor tab, or every known field when ``tab`` is None."""
    ctx.require_admin("operator profile edits")
    if tab is not None and tab not in PROFILE_TABS:
        raise ValidationError(f"tab must be one of {', '.join(PROFILE_TABS)}", details={"tab": "invalid"})
    profile = get_profile(ctx, operator_id)

    if tab in (None, "basic"):
        for key, value in _basic_values(data, creating=False).items():
            setattr(profile, key, value)
        _apply_rate(ctx, profile, data)
    if tab in (None, "skills") and "skill_levels" in data:
        profile.skill_levels = _skill_levels(data["skill_levels"])
    if tab in (None, "equipment") and "equipment_qualifications" in data:
        profile.equipment_qualifications = _equipment_qualifications(data["equipment_qualifications"])
    if tab == "certifications":
        raise ValidationError(
            "Certifications are managed through the certifications endpoints",
            details={"tab": "certifications"},
        )

    db.session.commit()
    return profile


def deactivate_profile(ctx, operator_id: int) -> OperatorProfile:
    """Profiles are never hard-deleted; assigned jobs keep their history."""
    ctx.require_admin("operator profile deactivation")
    profile = get_profile(ctx, operator_id)
    profile.is_active = False
    db.session.commit()
    logger.info("Deactivated operator profile %s", profile.id)
    return profile


# ── Certifications ───────────────────────────────────────────────────────────


def add_certification(ctx, operator_id: int, data: dict, document=None) -> OperatorCertification:
    """``document`` is an optional werkzeug FileStorage (PDF or image scan)."""
    ctx.require_admin("certification edits")
    profile = get_profile(ctx, operator_id)

    name = clean_str(data.get("name"), "name")
    issued = parse_date(data.get("issued_date"))
    errors = {}
    if not name:
        errors["name"] = "required"
    if issued is None:
        errors["issued_date"] = "required"
    expiry = parse_date(data.get("expiry_date"))
    if expiry is not None and issued is not None and expiry < issued:
        errors["expiry_date"] = "before_issued_date"
    if errors:
        raise ValidationError("Certification is incomplete", details=errors)

    cert = OperatorCertification(operator_id=profile.id, name=name, issued_date=issued, expiry_date=expiry)
    key = None
    if document is not None and document.filename:
        key = storage_service.put_upload(document, folder=f"certifications/{profile.id}", field="document")
        cert.document_key = key
        cert.document_filename = document.filename
    db.session.add(cert)
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        if key:
            storage_service.delete(key)
        raise
    logger.info("Added certification %s to operator %s", cert.id, profile.id)
    return cert


def remove_certification(ctx, operator_id: int, cert_id: int) -> None:
    ctx.require_admin("certification edits")
    profile = get_profile(ctx, operator_id)
    cert = OperatorCertification.query.filter_by(id=cert_id, operator_id=profile.id).first()
    if cert is None:
        raise NotFoundError(resource="OperatorCertification", resource_id=cert_id)
    key = cert.document_key
    db.session.delete(cert)
    db.session.commit()
    if key:
        storage_service.delete(key)


def certification_document(ctx, operator_id: int, cert_id: int) -> tuple[OperatorCertification, bytes]:
    profile = get_profile(ctx, operator_id)
    cert = OperatorCertification.query.filter_by(id=cert_id, operator_id=profile.id).first()
    if cert is None or not cert.document_key:
        raise NotFoundError(resource="OperatorCertification", resource_id=cert_id)
    return cert, storage_service.get(cert.document_key)


# ── Completion hooks ─────────────────────────────────────────────────────────


def _running_mean(current, count: int, new_value: int) -> float:
    if current is None or count <= 0:
        return float(new_value)
    return (current * count + new_value) / (count + 1)


def record_completion(profile: OperatorProfile, *, revenue, hours, linear_feet, ratings: dict | None) -> None:
    """Fold one completed job into the operator's metrics; caller commits."""
    profile.jobs_completed = (profile.jobs_completed or 0) + 1
    profile.revenue_generated = Decimal(str(profile.revenue_generated or 0)) + Decimal(str(revenue or 0))
    profile.hours_worked = (
        Decimal(str(profile.hours_worked or 0)) + Decimal(str(hours or 0))
    ).quantize(Decimal("0.01"))
    profile.linear_feet_cut = Decimal(str(profile.linear_feet_cut or 0)) + Decimal(str(linear_feet or 0))

    if ratings:
        count = profile.total_ratings_received or 0
        profile.avg_overall_rating = _running_mean(profile.avg_overall_rating, count, ratings["overall"])
        profile.avg_cleanliness_rating = _running_mean(profile.avg_cleanliness_rating, count, ratings["cleanliness"])
        profile.avg_communication_rating = _running_mean(
            profile.avg_communication_rating, count, ratings["communication"]
        )
        profile.total_ratings_received = count + 1
