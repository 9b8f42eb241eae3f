"""
Silica Exposure Plan — submission and lookup.

Submission order:
    1. guard check  → existing plan short-circuits with ConflictError, no writes
    2. validate answers against the fixed vocabularies
    3. insert; a unique-constraint race is turned into the same ConflictError
    4. render + persist the PDF; a failure is logged and reported, the plan stays
"""

import logging

from sqlalchemy.exc import IntegrityError

from fieldops.core.exceptions import ConflictError, NotFoundError, ValidationError
from fieldops.models import db
from fieldops.models.silica import (
    APF10_ANSWERS,
    CUTTING_TIME_BUCKETS,
    SILICA_WORK_TYPES,
    WORK_LOCATIONS,
    SilicaExposurePlan,
)
from fieldops.services import submission_guard
from fieldops.utils.helpers import clean_str, parse_date

logger = logging.getLogger(__name__)

KIND = "silica_plan"


def _already_submitted(job) -> ConflictError:
    from fieldops.services.workflow_service import workflow_for_job

    state = workflow_for_job(job)
    return ConflictError(
        "SilicaExposurePlan", "job_order_id", job.id,
        context={"view": "already_submitted", "next_step": state.next_step},
    )


def check(ctx, job_id: int) -> dict:
    """Existence check used before showing the form."""
    from fieldops.services.job_service import get_job
    from fieldops.services.workflow_service import workflow_for_job

    job = get_job(ctx, job_id)
    exists = submission_guard.exists(job.id, KIND)
    return {
        "job_id": job.id,
        "exists": exists,
        "view": "already_submitted" if exists else "form",
        "next_step": workflow_for_job(job).next_step,
    }


def _text(data: dict, key: str, errors: dict) -> str:
    """Stripped text answer; a non-string records ``invalid`` instead of raising."""
    try:
        return clean_str(data.get(key), key)
    except ValidationError:
        errors[key] = "invalid"
        return ""


def _validate(data: dict) -> dict:
    errors = {}

    employee_name = _text(data, "employee_name", errors)
    if not employee_name and "employee_name" not in errors:
        errors["employee_name"] = "required"

    work_types = data.get("work_types") or []
    if not isinstance(work_types, list) or not work_types:
        errors["work_types"] = "required"
    elif any(w not in SILICA_WORK_TYPES for w in work_types):
        errors["work_types"] = "invalid"

    work_location = _text(data, "work_location", errors).lower()
    if work_location not in WORK_LOCATIONS:
        errors["work_location"] = "invalid"

    cutting_time = data.get("cutting_time")
    if cutting_time not in CUTTING_TIME_BUCKETS:
        errors["cutting_time"] = "invalid"

    apf10 = data.get("apf10_required")
    if apf10 not in APF10_ANSWERS:
        errors["apf10_required"] = "invalid"

    water = data.get("water_delivery_integrated")
    if not isinstance(water, bool):
        errors["water_delivery_integrated"] = "required"

    signature = _text(data, "signature", errors)
    if not signature and "signature" not in errors:
        errors["signature"] = "required"

    signature_date = parse_date(data.get("signature_date"))
    if signature_date is None:
        errors["signature_date"] = "required"

    roster = data.get("employees_on_job") or []
    if not isinstance(roster, list):
        errors["employees_on_job"] = "invalid"

    employee_phone = _text(data, "employee_phone", errors) or None
    other_safety_concerns = _text(data, "other_safety_concerns", errors) or None

    if errors:
        raise ValidationError("Silica exposure plan is incomplete", details=errors)

    return {
        "employee_name": employee_name,
        "employee_phone": employee_phone,
        "employees_on_job": [str(n).strip() for n in roster if str(n).strip()],
        "work_types": list(dict.fromkeys(work_types)),
        "water_delivery_integrated": water,
        "work_location": work_location,
        "cutting_time": cutting_time,
        "apf10_required": apf10,
        "other_safety_concerns": other_safety_concerns,
        "signature": signature,
        "signature_date": signature_date,
    }


def submit(ctx, job_id: int, data: dict) -> dict:
    from fieldops.services import document_service
    from fieldops.services.job_service import get_job

    job = get_job(ctx, job_id)
    if submission_guard.exists(job.id, KIND):
        logger.info("Silica plan already on file for job %s; submission skipped", job.id, extra={"job_id": job.id})
        raise _already_submitted(job)
    if job.is_completed:
        raise ValidationError("Job is already completed", details={"status": "completed"})

    values = _validate(data)
    plan = SilicaExposurePlan(job_order_id=job.id, submitted_by=ctx.user_id, **values)
    db.session.add(plan)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.warning(
            "Concurrent silica plan submission lost the race for job %s", job_id,
            extra={"job_id": job_id, "operation": "silica_submit"},
        )
        raise _already_submitted(get_job(ctx, job_id)) from None

    logger.info("Silica plan %s submitted for job %s", plan.id, job.id, extra={"job_id": job.id})
    doc, error = document_service.try_persist_for_job(job, KIND, ctx.user_id)
    return {"plan": plan, "document": doc, "document_error": error}


def get_plan(ctx, job_id: int) -> SilicaExposurePlan:
    from fieldops.services.job_service import get_job

    job = get_job(ctx, job_id)
    plan = submission_guard.existing(job.id, KIND)
    if plan is None:
        raise NotFoundError(resource="SilicaExposurePlan", resource_id=job.id)
    return plan
