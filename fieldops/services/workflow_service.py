"""
Workflow Step Sequencer — on-site step ordering and job close-out.

Steps, in order:
    silica_plan     → required first; once submitted it is skipped and shows
                      the "already submitted" view instead of the form
    work_performed  → requires the silica plan
    standby         → optional, open/close any time before completion
    signature       → last; requires silica + work recorded + no open standby

Terminal actions for a visit (mutually exclusive on the same calendar day):
    complete_job    → customer signature (or contact-not-on-site), status → completed
    end_day         → multi-day jobs only; writes a DailyJobLog, status unchanged

``compute_workflow`` is a pure function over StepFlags so it can be tested
and reused without a database.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import date
from decimal import Decimal

from fieldops.core.exceptions import ValidationError
from fieldops.models import db, utcnow
from fieldops.models.job import DailyJobLog, JobOrder
from fieldops.models.worklog import CutSpec, StandbyLog, WorkPerformedEntry
from fieldops.services import submission_guard
from fieldops.utils.helpers import as_utc, clean_str, parse_bool, parse_coordinates

logger = logging.getLogger(__name__)

STEP_ORDER = ("silica_plan", "work_performed", "standby", "signature")
REQUIRED_STEPS = ("silica_plan", "work_performed", "signature")
RATING_FIELDS = ("overall", "cleanliness", "communication")


@dataclass(frozen=True)
class StepFlags:
    silica_submitted: bool = False
    work_recorded: bool = False
    standby_active: bool = False
    job_started: bool = False
    completed: bool = False
    multi_day: bool = False
    day_ended_today: bool = False


@dataclass(frozen=True)
class StepState:
    step: str
    complete: bool
    enterable: bool
    view: str
    blocked_by: tuple = ()


@dataclass(frozen=True)
class WorkflowState:
    steps: tuple
    next_step: str | None
    can_complete: bool
    can_end_day: bool

    def step(self, name: str) -> StepState:
        return next(s for s in self.steps if s.step == name)

    def to_dict(self) -> dict:
        return {
            "steps": [
                {**asdict(s), "blocked_by": list(s.blocked_by)} for s in self.steps
            ],
            "next_step": self.next_step,
            "actions": {"complete_job": self.can_complete, "end_day": self.can_end_day},
        }


def compute_workflow(flags: StepFlags) -> WorkflowState:
    """Derive step availability and the next required step from completion flags."""
    done = flags.completed
    visit_closed = flags.day_ended_today

    silica = StepState(
        step="silica_plan",
        complete=flags.silica_submitted,
        enterable=not done and not flags.silica_submitted,
        view="already_submitted" if flags.silica_submitted else ("locked" if done else "form"),
        blocked_by=("completed",) if done else (),
    )

    work_blockers = []
    if done:
        work_blockers.append("completed")
    if not flags.silica_submitted:
        work_blockers.append("silica_plan")
    work = StepState(
        step="work_performed",
        complete=flags.work_recorded,
        enterable=not work_blockers,
        view="read_only" if done else ("form" if not work_blockers else "locked"),
        blocked_by=tuple(work_blockers),
    )

    standby = StepState(
        step="standby",
        complete=not flags.standby_active,
        enterable=not done,
        view="active" if flags.standby_active else ("locked" if done else "form"),
        blocked_by=("completed",) if done else (),
    )

    sig_blockers = []
    if done:
        sig_blockers.append("completed")
    if not flags.silica_submitted:
        sig_blockers.append("silica_plan")
    if not flags.work_recorded:
        sig_blockers.append("work_performed")
    if flags.standby_active:
        sig_blockers.append("standby")
    if not flags.job_started and not done:
        sig_blockers.append("not_started")
    if visit_closed and not done:
        sig_blockers.append("day_ended")
    signature = StepState(
        step="signature",
        complete=done,
        enterable=not sig_blockers,
        view="complete" if done else ("form" if not sig_blockers else "locked"),
        blocked_by=tuple(sig_blockers),
    )

    steps = (silica, work, standby, signature)

    if done:
        next_step = None
    elif flags.standby_active:
        next_step = "standby"
    else:
        next_step = next(
            s.step for s in steps if s.step in REQUIRED_STEPS and not s.complete
        )

    can_end_day = (
        flags.multi_day
        and flags.job_started
        and not done
        and not visit_closed
        and not flags.standby_active
    )
    return WorkflowState(
        steps=steps,
        next_step=next_step,
        can_complete=signature.enterable,
        can_end_day=can_end_day,
    )


# ── Flags from the database ──────────────────────────────────────────────────


def _today() -> date:
    return utcnow().date()


def collect_flags(job: JobOrder) -> StepFlags:
    work_count = WorkPerformedEntry.query.filter_by(job_order_id=job.id).count()
    standby_active = (
        StandbyLog.query.filter_by(job_order_id=job.id, status="active").first() is not None
    )
    log_count = DailyJobLog.query.filter_by(job_order_id=job.id).count()
    ended_today = (
        DailyJobLog.query.filter_by(job_order_id=job.id, log_date=_today()).first() is not None
    )
    return StepFlags(
        silica_submitted=submission_guard.exists(job.id, "silica_plan"),
        work_recorded=work_count > 0,
        standby_active=standby_active,
        job_started=job.status == "in_progress" and job.work_started_at is not None,
        completed=job.is_completed,
        multi_day=bool(job.is_multi_day or log_count > 0 or (job.estimated_days or 0) > 1),
        day_ended_today=ended_today,
    )


def workflow_for_job(job: JobOrder) -> WorkflowState:
    return compute_workflow(collect_flags(job))


def get_workflow(ctx, job_id: int) -> dict:
    from fieldops.services.job_service import get_job

    job = get_job(ctx, job_id)
    state = workflow_for_job(job)
    return {"job_id": job.id, "status": job.status, **state.to_dict()}


def require_step(job: JobOrder, step: str) -> WorkflowState:
    """Raise ValidationError unless ``step`` is currently enterable."""
    state = workflow_for_job(job)
    current = state.step(step)
    if not current.enterable:
        raise ValidationError(
            f"Step '{step}' is not available",
            details={"step": step, "blocked_by": list(current.blocked_by), "next_step": state.next_step},
        )
    return state


# ── Close-out actions ────────────────────────────────────────────────────────


def _parse_ratings(data: dict) -> dict:
    ratings = {}
    missing = {}
    for name in RATING_FIELDS:
        key = f"{name}_rating"
        raw = data.get(key)
        if raw in (None, ""):
            missing[key] = "required"
            continue
        try:
            value = int(raw)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"{key} must be an integer 1-10", details={key: "invalid"}) from exc
        if not 1 <= value <= 10:
            raise ValidationError(f"{key} must be between 1 and 10", details={key: "out_of_range"})
        ratings[name] = value
    if missing:
        raise ValidationError("Customer ratings are required", details=missing)
    return ratings


def _apply_completion_to_operator(job: JobOrder, ratings: dict | None, hours: Decimal) -> None:
    from fieldops.services import operator_service

    operator = job.assigned_operator
    if operator is None:
        return
    linear_feet = Decimal("0")
    for entry in WorkPerformedEntry.query.filter_by(job_order_id=job.id).all():
        spec = entry.spec
        if isinstance(spec, CutSpec):
            linear_feet += Decimal(str(spec.total_linear_feet))
    operator_service.record_completion(
        operator, revenue=job.quoted_amount, hours=hours, linear_feet=linear_feet, ratings=ratings
    )


def complete_job(ctx, job_id: int, data: dict) -> dict:
    """Customer sign-off: the only path into ``completed``."""
    from fieldops.services import cost_service, document_service, work_service
    from fieldops.services.job_service import advance_status, get_job

    job = get_job(ctx, job_id)
    if job.is_completed:
        raise ValidationError("Job is already completed", details={"status": "completed"})
    require_step(job, "signature")

    contact_not_on_site = parse_bool(data.get("contact_not_on_site"), "contact_not_on_site")
    now = utcnow()
    ratings = None
    if contact_not_on_site:
        job.completion_signature = None
        job.completion_signer_name = None
        job.completion_signed_at = None
    else:
        signature = clean_str(data.get("signature"), "signature")
        signer = clean_str(data.get("signer_name"), "signer_name")
        missing = {}
        if not signature:
            missing["signature"] = "required"
        if not signer:
            missing["signer_name"] = "required"
        if missing:
            raise ValidationError(
                "Customer signature is required unless the contact is not on site", details=missing
            )
        ratings = _parse_ratings(data)
        job.completion_signature = signature
        job.completion_signer_name = signer
        job.completion_signed_at = now
        job.customer_overall_rating = ratings["overall"]
        job.customer_cleanliness_rating = ratings["cleanliness"]
        job.customer_communication_rating = ratings["communication"]
        job.customer_feedback_comments = clean_str(data.get("feedback_comments"), "feedback_comments") or None

    job.contact_not_on_site = contact_not_on_site
    job.completion_notes = clean_str(data.get("notes"), "notes") or None
    job.completed_at = now
    job.work_started_at = None
    advance_status(job, "completed")

    hours = cost_service.job_hours(job)
    _apply_completion_to_operator(job, ratings, hours)
    work_service.clear_draft(job.id, ctx.user_id, commit=False)
    db.session.commit()
    logger.info(
        "Job %s completed (contact_not_on_site=%s)", job.id, contact_not_on_site,
        extra={"job_id": job.id, "operation": "complete_job"},
    )

    doc, error = document_service.try_persist_for_job(job, "completion_agreement", ctx.user_id)
    return {"job": job, "document": doc, "document_error": error}


def end_day(ctx, job_id: int, data: dict) -> DailyJobLog:
    """Close today's work on a multi-day job; the job stays in progress."""
    from fieldops.services import cost_service
    from fieldops.services.job_service import get_job

    job = get_job(ctx, job_id)
    state = workflow_for_job(job)
    if not state.can_end_day:
        raise ValidationError(
            "End Day is not available for this job right now",
            details={"end_day": "unavailable", "next_step": state.next_step},
        )

    now = utcnow()
    started = as_utc(job.work_started_at)
    hours = cost_service.elapsed_hours(started, now)
    lat, lng = parse_coordinates(
        data.get("latitude"), data.get("longitude"), context=f"end_day job={job.id}"
    )
    entries_today = (
        WorkPerformedEntry.query.filter(
            WorkPerformedEntry.job_order_id == job.id,
            WorkPerformedEntry.created_at >= started,
        ).all()
        if started is not None else []
    )
    log = DailyJobLog(
        job_order_id=job.id,
        operator_user_id=ctx.user_id,
        log_date=now.date(),
        work_started_at=started,
        day_completed_at=now,
        hours_worked=hours.quantize(Decimal("0.01")),
        work_summary=[{"item_name": e.item_name, "quantity": str(e.quantity)} for e in entries_today],
        notes=clean_str(data.get("notes"), "notes") or None,
        signer_name=clean_str(data.get("signer_name"), "signer_name") or None,
        signature_data=data.get("signature") or None,
        day_end_latitude=lat,
        day_end_longitude=lng,
    )
    db.session.add(log)
    job.is_multi_day = True
    job.work_started_at = None
    db.session.commit()
    logger.info("Job %s day ended (%.2fh)", job.id, float(hours), extra={"job_id": job.id, "operation": "end_day"})
    return log


def daily_logs(ctx, job_id: int) -> list[DailyJobLog]:
    from fieldops.services.job_service import get_job

    job = get_job(ctx, job_id)
    return (
        DailyJobLog.query.filter_by(job_order_id=job.id)
        .order_by(DailyJobLog.log_date, DailyJobLog.id)
        .all()
    )
