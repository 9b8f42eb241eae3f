"""
Standby — non-productive on-site waiting time.

One active log per job at a time. Closing a log fixes its duration as
``(ended_at - started_at) in ms / 3 600 000`` hours; only completed logs
count toward standby billing.
"""

import logging
from decimal import Decimal

from fieldops.core.exceptions import ConflictError, ValidationError
from fieldops.models import db, utcnow
from fieldops.models.worklog import StandbyLog
from fieldops.services.cost_service import elapsed_hours
from fieldops.utils.helpers import as_utc, clean_str

logger = logging.getLogger(__name__)


def active_standby(job_id: int) -> StandbyLog | None:
    return StandbyLog.query.filter_by(job_order_id=job_id, status="active").first()


def start_standby(ctx, job_id: int, data: dict) -> StandbyLog:
    from fieldops.services.job_service import get_job

    job = get_job(ctx, job_id)
    if job.is_completed:
        raise ValidationError("Job is already completed", details={"status": "completed"})
    reason = clean_str(data.get("reason"), "reason")
    if not reason:
        raise ValidationError("A standby reason is required", details={"reason": "required"})
    if active_standby(job.id) is not None:
        raise ConflictError("StandbyLog", "status", "active", context={"job_order_id": job.id})

    log = StandbyLog(
        job_order_id=job.id,
        operator_user_id=ctx.user_id,
        started_at=utcnow(),
        reason=reason,
        client_name=clean_str(data.get("client_name"), "client_name") or None,
        notes=clean_str(data.get("notes"), "notes") or None,
        status="active",
    )
    db.session.add(log)
    db.session.commit()
    logger.info("Standby started on job %s: %s", job.id, reason, extra={"job_id": job.id})
    return log


def end_standby(ctx, job_id: int, data: dict | None = None) -> StandbyLog:
    from fieldops.services.job_service import get_job

    job = get_job(ctx, job_id)
    log = active_standby(job.id)
    if log is None:
        raise ValidationError("No active standby for this job", details={"standby": "none_active"})

    now = utcnow()
    log.ended_at = now
    log.duration_hours = elapsed_hours(as_utc(log.started_at), now).quantize(Decimal("0.0001"))
    log.status = "completed"
    notes = clean_str((data or {}).get("notes"), "notes")
    if notes:
        log.notes = f"{log.notes}\n{notes}" if log.notes else notes
    db.session.commit()
    logger.info("Standby ended on job %s (%sh)", job.id, log.duration_hours, extra={"job_id": job.id})
    return log


def list_standby(ctx, job_id: int) -> list[StandbyLog]:
    from fieldops.services.job_service import get_job

    job = get_job(ctx, job_id)
    return StandbyLog.query.filter_by(job_order_id=job.id).order_by(StandbyLog.started_at).all()
