"""
Status Reconciliation — admin audit over the whole job order population.

Read-side reports:
    status_breakdown()  → count per status, every status present (zeros included)
    multi_day_jobs()    → jobs with more than one DailyJobLog
    find_orphans()      → child rows whose job_order_id has no JobOrder row
    detect_drift()      → status disagreeing with signature / arrival / child records

Destructive actions, each gated behind ``confirm=True``:
    cleanup_scan()      → delete exactly the ids stored on a pending OrphanScan
    repair_drift()      → advance drifted jobs forward; never moves a status back

Soft-deleted job orders still exist, so their children are not orphans.
Each orphan check runs independently; a failing check is reported in
``check_errors`` and does not abort the others.
"""

import logging

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from fieldops.core.exceptions import ValidationError
from fieldops.models import db, utcnow
from fieldops.models.document import GeneratedDocument
from fieldops.models.job import JOB_STATUSES, DailyJobLog, JobOrder, status_rank
from fieldops.models.reconciliation import OrphanScan
from fieldops.models.worklog import StandbyLog, WorkDraft, WorkPerformedEntry
from fieldops.utils.helpers import get_or_raise

logger = logging.getLogger(__name__)

# collection name → child model with a job_order_id column
CHILD_COLLECTIONS = {
    "work_performed_entries": WorkPerformedEntry,
    "standby_logs": StandbyLog,
    "daily_job_logs": DailyJobLog,
    "work_drafts": WorkDraft,
    "generated_documents": GeneratedDocument,
}


# ── Reports ──────────────────────────────────────────────────────────────────


def status_breakdown(ctx) -> dict:
    ctx.require_admin("reconciliation")
    counts = dict.fromkeys(JOB_STATUSES, 0)
    rows = (
        db.session.query(JobOrder.status, func.count(JobOrder.id))
        .filter(JobOrder.deleted_at.is_(None))
        .group_by(JobOrder.status)
        .all()
    )
    for status, count in rows:
        counts[status] = count
    return {"total": sum(counts.values()), "by_status": counts}


def multi_day_jobs(ctx) -> list[dict]:
    ctx.require_admin("reconciliation")
    counts = (
        db.session.query(DailyJobLog.job_order_id, func.count(DailyJobLog.id).label("log_count"))
        .group_by(DailyJobLog.job_order_id)
        .having(func.count(DailyJobLog.id) > 1)
        .subquery()
    )
    rows = (
        db.session.query(JobOrder, counts.c.log_count)
        .join(counts, counts.c.job_order_id == JobOrder.id)
        .filter(JobOrder.deleted_at.is_(None))
        .order_by(JobOrder.id)
        .all()
    )
    return [
        {
            "job_id": job.id,
            "job_number": job.job_number,
            "status": job.status,
            "daily_log_count": log_count,
            "is_multi_day": bool(job.is_multi_day),
        }
        for job, log_count in rows
    ]


# ── Orphans ──────────────────────────────────────────────────────────────────


def _orphan_ids(model) -> list[int]:
    rows = (
        db.session.query(model.id)
        .outerjoin(JobOrder, JobOrder.id == model.job_order_id)
        .filter(JobOrder.id.is_(None))
        .order_by(model.id)
        .all()
    )
    return [row[0] for row in rows]


def find_orphans(ctx) -> dict:
    """Detect orphaned child rows without mutating anything.

    Returns ``{"orphans": {collection: [ids]}, "total": n, "check_errors": {...}}``.
    Two calls with no intervening writes return the same result.
    """
    ctx.require_admin("reconciliation")
    orphans, errors = {}, {}
    for name, model in CHILD_COLLECTIONS.items():
        try:
            orphans[name] = _orphan_ids(model)
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.warning(
                "Orphan check failed for %s: %s", name, exc,
                extra={"operation": "find_orphans", "kind": name},
            )
            errors[name] = str(exc.__class__.__name__)
    total = sum(len(ids) for ids in orphans.values())
    return {"orphans": orphans, "total": total, "check_errors": errors}


def create_scan(ctx) -> OrphanScan:
    """Run detection and persist the result so cleanup can act on it later."""
    result = find_orphans(ctx)
    scan = OrphanScan(
        orphan_set=result["orphans"],
        total_orphans=result["total"],
        check_errors=result["check_errors"],
        status="pending",
        scanned_by=ctx.user_id,
    )
    db.session.add(scan)
    db.session.commit()
    logger.info("Orphan scan %s found %d orphan(s)", scan.id, scan.total_orphans)
    return scan


def get_scan(ctx, scan_id: int) -> OrphanScan:
    ctx.require_admin("reconciliation")
    return get_or_raise(OrphanScan, scan_id, "OrphanScan")


def list_scans(ctx) -> list[OrphanScan]:
    ctx.require_admin("reconciliation")
    return OrphanScan.query.order_by(OrphanScan.scanned_at.desc(), OrphanScan.id.desc()).all()


def cleanup_scan(ctx, scan_id: int, confirm: bool = False) -> OrphanScan:
    """Delete exactly the orphan ids recorded on a pending scan.

    Ids whose parent job has reappeared since the scan, or that are already
    gone, are skipped and reported.
    """
    ctx.require_admin("orphan cleanup")
    scan = get_or_raise(OrphanScan, scan_id, "OrphanScan")
    if confirm is not True:
        raise ValidationError(
            "Orphan cleanup requires explicit confirmation",
            details={"confirm": "required", "total_orphans": scan.total_orphans},
        )
    if scan.status != "pending":
        raise ValidationError("Scan has already been executed", details={"status": scan.status})

    deleted, skipped = {}, {}
    for name, ids in (scan.orphan_set or {}).items():
        model = CHILD_COLLECTIONS.get(name)
        if model is None or not ids:
            continue
        still_orphaned = set(_orphan_ids(model)) & set(ids)
        removed = []
        for child in model.query.filter(model.id.in_(sorted(still_orphaned))).all():
            db.session.delete(child)
            removed.append(child.id)
        deleted[name] = sorted(removed)
        missed = sorted(set(ids) - set(removed))
        if missed:
            skipped[name] = missed

    scan.status = "executed"
    scan.executed_by = ctx.user_id
    scan.executed_at = utcnow()
    scan.cleanup_result = {
        "deleted": deleted,
        "skipped": skipped,
        "total_deleted": sum(len(v) for v in deleted.values()),
    }
    db.session.commit()
    logger.warning(
        "Orphan scan %s executed: %d row(s) deleted", scan.id, scan.cleanup_result["total_deleted"],
        extra={"operation": "orphan_cleanup"},
    )
    return scan


# ── Status drift ─────────────────────────────────────────────────────────────


def _drift_for(job: JobOrder, work_jobs: set, log_jobs: set) -> tuple[str, str] | None:
    """(issue, target_status) for one job, or None when consistent."""
    if job.completion_signed_at is not None and job.status != "completed":
        return "signed_not_completed", "completed"
    if job.status in ("unassigned", "scheduled"):
        if job.id in work_jobs:
            return "work_recorded_before_start", "in_progress"
        if job.id in log_jobs:
            return "daily_logs_before_start", "in_progress"
        if job.arrival_time is not None:
            return "arrived_not_started", "in_progress"
    return None


def detect_drift(ctx) -> list[dict]:
    ctx.require_admin("reconciliation")
    work_jobs = {row[0] for row in db.session.query(WorkPerformedEntry.job_order_id).distinct()}
    log_jobs = {row[0] for row in db.session.query(DailyJobLog.job_order_id).distinct()}

    drift = []
    jobs = JobOrder.query.filter(JobOrder.deleted_at.is_(None)).order_by(JobOrder.id).all()
    for job in jobs:
        found = _drift_for(job, work_jobs, log_jobs)
        if found is None:
            continue
        issue, target = found
        drift.append({
            "job_id": job.id,
            "job_number": job.job_number,
            "status": job.status,
            "issue": issue,
            "target_status": target,
        })
    return drift


def repair_drift(ctx, confirm: bool = False, job_ids: list | None = None) -> dict:
    """Advance drifted jobs to their target status; forward moves only."""
    from fieldops.services.job_service import advance_status

    ctx.require_admin("drift repair")
    drift = detect_drift(ctx)
    if job_ids is not None:
        wanted = {int(j) for j in job_ids}
        drift = [d for d in drift if d["job_id"] in wanted]
    if confirm is not True:
        raise ValidationError(
            "Drift repair requires explicit confirmation",
            details={"confirm": "required", "drifted": len(drift)},
        )

    result = {"checked": len(drift), "updated": 0, "errors": []}
    for item in drift:
        job = db.session.get(JobOrder, item["job_id"])
        if status_rank(item["target_status"]) <= status_rank(job.status):
            continue
        try:
            advance_status(job, item["target_status"])
        except ValidationError as exc:
            result["errors"].append({"job_number": job.job_number, "error": str(exc)})
            continue
        if item["target_status"] == "completed" and job.completed_at is None:
            job.completed_at = job.completion_signed_at
        result["updated"] += 1
    db.session.commit()
    logger.info(
        "Drift repair advanced %d of %d job(s)", result["updated"], result["checked"],
        extra={"operation": "drift_repair"},
    )
    return result
