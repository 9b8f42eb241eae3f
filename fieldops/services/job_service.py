"""
Job Orders — Service Layer.

Business logic for:
    - Field alias normalisation at the API boundary
    - Job number generation:  JO-0001, JO-0002, ...
    - CRUD:                   admin-only create / partial update / soft delete
    - Assignment:             unassigned → scheduled
    - Start work:             scheduled → in_progress, first arrival stamp
    - Liability release:      customer signature + PDF
    - Completed listing:      newest first, with summary counts
    - Status moves:           monotonic, enforced in one place (advance_status)

Operators only ever see job orders assigned to their own profile; any other
id looks exactly like a missing one.
"""

import logging

from sqlalchemy import func

from fieldops.core.exceptions import NotFoundError, ValidationError
from fieldops.models import db, utcnow
from fieldops.models.job import JOB_PRIORITIES, JOB_STATUSES, JobOrder, status_rank, validate_job_transition
from fieldops.models.operator import OperatorProfile
from fieldops.utils.helpers import (
    clean_str,
    get_or_raise,
    parse_coordinates,
    parse_date,
    parse_datetime,
    parse_decimal,
)

logger = logging.getLogger(__name__)


# ── Alias normalisation ──────────────────────────────────────────────────────

# canonical field → accepted aliases, first present wins
FIELD_ALIASES = {
    "customer_name": ("customer_name", "customer", "client_name", "client"),
    "customer_contact": ("customer_contact", "contact", "contact_name", "foreman_name"),
    "customer_email": ("customer_email", "contact_email", "email"),
    "location": ("location", "job_location", "address", "site_address"),
    "quoted_amount": ("quoted_amount", "job_quote", "quote", "quote_amount"),
    "description": ("description", "scope", "scope_of_work"),
    "scheduled_date": ("scheduled_date", "date", "start_date"),
    "job_type": ("job_type", "type"),
    "assigned_operator_id": ("assigned_operator_id", "operator_id", "assigned_to"),
}

EDITABLE_FIELDS = (
    "title", "customer_name", "customer_contact", "customer_email", "location",
    "job_type", "description", "po_number", "priority", "difficulty_rating",
    "scheduled_date", "end_date", "estimated_days", "shop_arrival_time",
    "quoted_amount", "equipment_cost", "material_cost",
)


def normalize_job_payload(data: dict) -> dict:
    """Resolve aliases into canonical field names; canonical keys win."""
    data = dict(data or {})
    result = {k: v for k, v in data.items() if k not in _ALL_ALIASES}
    for canonical, aliases in FIELD_ALIASES.items():
        for alias in aliases:
            if alias in data and data[alias] not in (None, ""):
                result[canonical] = data[alias]
                break
        else:
            if canonical in data:
                result[canonical] = data[canonical]
    return result


_ALL_ALIASES = {alias for aliases in FIELD_ALIASES.values() for alias in aliases}


def _clean_fields(data: dict) -> dict:
    """Type-convert the editable fields present in ``data``."""
    values = {}
    for key in EDITABLE_FIELDS:
        if key not in data:
            continue
        raw = data[key]
        if key in ("quoted_amount", "equipment_cost", "material_cost"):
            values[key] = parse_decimal(raw, key, minimum=0)
        elif key in ("scheduled_date", "end_date"):
            parsed = parse_date(raw)
            if raw not in (None, "") and parsed is None:
                raise ValidationError(f"{key} must be a date", details={key: "invalid"})
            values[key] = parsed
        elif key == "shop_arrival_time":
            values[key] = parse_datetime(raw, key)
        elif key == "difficulty_rating":
            values[key] = _rating(raw, key) if raw not in (None, "") else None
        elif key == "estimated_days":
            if raw in (None, ""):
                values[key] = None
            else:
                try:
                    values[key] = int(raw)
                except (TypeError, ValueError) as exc:
                    raise ValidationError("estimated_days must be an integer", details={key: "invalid"}) from exc
                if values[key] < 1:
                    raise ValidationError("estimated_days must be at least 1", details={key: "out_of_range"})
        elif key == "priority":
            if raw not in JOB_PRIORITIES:
                raise ValidationError(
                    f"priority must be one of {', '.join(JOB_PRIORITIES)}", details={key: "invalid"}
                )
            values[key] = raw
        else:
            values[key] = None if raw is None else clean_str(raw, key)
    return values


def _rating(value, field: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be an integer 1-10", details={field: "invalid"}) from exc
    if not 1 <= number <= 10:
        raise ValidationError(f"{field} must be between 1 and 10", details={field: "out_of_range"})
    return number


# ── Access ───────────────────────────────────────────────────────────────────


def operator_profile_for(ctx) -> OperatorProfile | None:
    return OperatorProfile.query.filter_by(user_id=ctx.user_id).first()


def _visible_query(ctx):
    query = JobOrder.query.filter(JobOrder.deleted_at.is_(None))
    if ctx.is_admin:
        return query
    profile = operator_profile_for(ctx)
    if profile is None:
        return query.filter(db.false())
    return query.filter(JobOrder.assigned_operator_id == profile.id)


def get_job(ctx, job_id: int) -> JobOrder:
    """Fetch a job the caller may act on, or raise NotFoundError."""
    job = _visible_query(ctx).filter(JobOrder.id == job_id).first()
    if job is None:
        raise NotFoundError(resource="JobOrder", resource_id=job_id)
    return job


def list_jobs(ctx, status: str | None = None) -> list[JobOrder]:
    query = _visible_query(ctx)
    if status:
        if status not in JOB_STATUSES:
            raise ValidationError(
                f"status must be one of {', '.join(JOB_STATUSES)}", details={"status": "invalid"}
            )
        query = query.filter(JobOrder.status == status)
    return query.order_by(JobOrder.scheduled_date.desc(), JobOrder.id.desc()).all()


# ── Status ───────────────────────────────────────────────────────────────────


def advance_status(job: JobOrder, new_status: str) -> None:
    """Move a job forward; regressions and unknown moves are rejected."""
    old = job.status
    if old == new_status:
        return
    if not validate_job_transition(old, new_status):
        raise ValidationError(
            f"Invalid transition: {old} → {new_status}",
            details={"status": "regression" if status_rank(new_status) < status_rank(old) else "invalid"},
        )
    job.status = new_status
    logger.info("Job %s status %s → %s", job.id, old, new_status, extra={"job_id": job.id})


# ── CRUD ─────────────────────────────────────────────────────────────────────


def generate_job_number() -> str:
    """Next job number: JO-0001, JO-0002, ... (skips numbers already taken)."""
    count = db.session.query(func.count(JobOrder.id)).scalar() or 0
    candidate = count + 1
    while JobOrder.query.filter_by(job_number=f"JO-{candidate:04d}").first() is not None:
        candidate += 1
    return f"JO-{candidate:04d}"


def create_job(ctx, data: dict) -> JobOrder:
    ctx.require_admin("job order creation")
    data = normalize_job_payload(data)

    missing = {f: "required" for f in ("customer_name", "location") if not str(data.get(f) or "").strip()}
    if missing:
        raise ValidationError("Customer and location are required", details=missing)

    job_number = clean_str(data.get("job_number"), "job_number") or generate_job_number()
    if JobOrder.query.filter_by(job_number=job_number).first() is not None:
        raise ValidationError("job_number already exists", details={"job_number": "duplicate"})

    job = JobOrder(job_number=job_number, status="unassigned", created_by=ctx.user_id, **_clean_fields(data))
    if job.estimated_days and job.estimated_days > 1:
        job.is_multi_day = True
    db.session.add(job)
    db.session.flush()

    operator_id = data.get("assigned_operator_id")
    if operator_id not in (None, ""):
        _assign(job, operator_id)

    db.session.commit()
    logger.info("Created job order %s (%s)", job.job_number, job.id, extra={"job_id": job.id})
    return job


def update_job(ctx, job_id: int, data: dict) -> JobOrder:
    """Partial update of named fields; status is never set directly here."""
    ctx.require_admin("job order edits")
    job = get_job(ctx, job_id)
    data = normalize_job_payload(data)
    if "status" in data:
        raise ValidationError("status cannot be edited directly", details={"status": "read_only"})

    for key, value in _clean_fields(data).items():
        if key in ("customer_name", "location") and not value:
            raise ValidationError(f"{key} cannot be empty", details={key: "required"})
        setattr(job, key, value)
    if job.estimated_days and job.estimated_days > 1:
        job.is_multi_day = True

    if "assigned_operator_id" in data and data["assigned_operator_id"] not in (None, ""):
        _assign(job, data["assigned_operator_id"])

    db.session.commit()
    return job


def _assign(job: JobOrder, operator_id) -> None:
    if job.is_completed:
        raise ValidationError("Completed jobs cannot be reassigned", details={"status": "completed"})
    try:
        operator_pk = int(operator_id)
    except (TypeError, ValueError) as exc:
        raise ValidationError("operator_id must be an integer", details={"operator_id": "invalid"}) from exc
    operator = get_or_raise(OperatorProfile, operator_pk, "OperatorProfile")
    if not operator.is_active:
        raise ValidationError("Operator is inactive", details={"operator_id": "inactive"})
    job.assigned_operator_id = operator.id
    job.assigned_operator = operator
    if job.status == "unassigned":
        advance_status(job, "scheduled")


def assign_operator(ctx, job_id: int, operator_id) -> JobOrder:
    ctx.require_admin("job assignment")
    job = get_job(ctx, job_id)
    _assign(job, operator_id)
    db.session.commit()
    logger.info("Assigned job %s to operator %s", job.id, job.assigned_operator_id, extra={"job_id": job.id})
    return job


def delete_job(ctx, job_id: int) -> JobOrder:
    """Soft delete; child records stay and are not orphans."""
    ctx.require_admin("job order deletion")
    job = get_job(ctx, job_id)
    job.deleted_at = utcnow()
    job.deleted_by = ctx.user_id
    db.session.commit()
    logger.info("Soft-deleted job %s", job.id, extra={"job_id": job.id})
    return job


# ── Field actions ────────────────────────────────────────────────────────────


def start_work(ctx, job_id: int, data: dict | None = None) -> JobOrder:
    """Operator arrives on site: stamp arrival, start the working day."""
    data = data or {}
    job = get_job(ctx, job_id)
    if job.is_completed:
        raise ValidationError("Job is already completed", details={"status": "completed"})
    if job.status == "unassigned":
        raise ValidationError("Job has no assigned operator", details={"status": "unassigned"})
    if job.work_started_at is not None:
        raise ValidationError("Work has already started for today", details={"work_started_at": "set"})

    now = utcnow()
    if job.arrival_time is None:
        job.arrival_time = parse_datetime(data.get("arrival_time"), "arrival_time") or now
    job.work_started_at = now
    lat, lng = parse_coordinates(
        data.get("latitude"), data.get("longitude"), context=f"start_work job={job.id}"
    )
    job.work_start_latitude, job.work_start_longitude = lat, lng
    advance_status(job, "in_progress")
    db.session.commit()
    return job


def sign_liability_release(ctx, job_id: int, data: dict) -> dict:
    """Record the customer's liability release, then render its PDF."""
    from fieldops.services import document_service

    job = get_job(ctx, job_id)
    if job.is_completed:
        raise ValidationError("Job is already completed", details={"status": "completed"})
    signer = clean_str(data.get("signer_name"), "signer_name")
    if not signer:
        raise ValidationError("signer_name is required", details={"signer_name": "required"})
    if job.liability_release_signed_at is not None:
        raise ValidationError("Liability release already signed", details={"liability_release": "signed"})

    job.liability_release_signer_name = signer
    job.liability_release_customer_email = clean_str(data.get("customer_email"), "customer_email") or job.customer_email or None
    job.liability_release_signed_at = utcnow()
    db.session.commit()

    doc, error = document_service.try_persist_for_job(job, "liability_release", ctx.user_id)
    return {"job": job, "document": doc, "document_error": error}


# ── Completed listing ────────────────────────────────────────────────────────


def completed_jobs(ctx) -> dict:
    """Completed jobs newest first, with summary counts."""
    ctx.require_admin("completed job listing")
    jobs = (
        _visible_query(ctx)
        .filter(JobOrder.status == "completed")
        .order_by(JobOrder.completed_at.desc(), JobOrder.id.desc())
        .all()
    )
    rated = [j.customer_overall_rating for j in jobs if j.customer_overall_rating is not None]
    summary = {
        "total": len(jobs),
        "signed": sum(1 for j in jobs if j.completion_signed_at is not None),
        "contact_not_on_site": sum(1 for j in jobs if j.contact_not_on_site),
        "average_customer_rating": round(sum(rated) / len(rated), 2) if rated else None,
    }
    return {"jobs": jobs, "summary": summary}
