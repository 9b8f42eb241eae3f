"""
Work Performed — append-only itemised entries plus the per-operator draft
repository.

Entries can be added while the job is in progress and the silica plan is on
file; they are never edited or removed afterwards, and a completed job is
read-only. Multi-day jobs keep appending across days.

Draft contract (keyed by job id + operator):
    save_draft   → replace the stored draft
    load_draft   → current draft or an empty one
    clear_draft  → drop it (also done on successful completion)
    commit_draft → turn every draft item into an entry, then clear
"""

import logging

from fieldops.core.exceptions import ValidationError
from fieldops.models import db, utcnow
from fieldops.models.worklog import WorkDraft, WorkPerformedEntry, details_to_json, parse_details
from fieldops.utils.helpers import clean_str, parse_date, parse_decimal

logger = logging.getLogger(__name__)


def _require_open_job(job) -> None:
    from fieldops.services.workflow_service import require_step

    if job.is_completed:
        raise ValidationError("Work performed is read-only once a job is completed", details={"status": "completed"})
    if job.status != "in_progress":
        raise ValidationError("Work can only be recorded while the job is in progress", details={"status": job.status})
    require_step(job, "work_performed")


def _build_entry(job, user_id: str, item: dict) -> WorkPerformedEntry:
    if not isinstance(item, dict):
        raise ValidationError("Each work item must be an object", details={"items": "invalid"})
    name = clean_str(item.get("item_name") or item.get("name"), "item_name")
    if not name:
        raise ValidationError("item_name is required", details={"item_name": "required"})
    quantity = parse_decimal(item.get("quantity", 1), "quantity", allow_none=False)
    if quantity <= 0:
        raise ValidationError("quantity must be greater than zero", details={"quantity": "out_of_range"})
    kind = item.get("details_kind") or "general"
    spec = parse_details(kind, item.get("details"))
    return WorkPerformedEntry(
        job_order_id=job.id,
        operator_user_id=user_id,
        item_name=name,
        quantity=quantity,
        notes=clean_str(item.get("notes"), "notes") or None,
        details_kind=spec.kind,
        details=details_to_json(spec),
        work_date=parse_date(item.get("work_date")) or utcnow().date(),
    )


def add_entries(ctx, job_id: int, items: list) -> list[WorkPerformedEntry]:
    """Append one or more entries in a single transaction."""
    from fieldops.services.job_service import get_job

    if not isinstance(items, list) or not items:
        raise ValidationError("At least one work item is required", details={"items": "required"})
    job = get_job(ctx, job_id)
    _require_open_job(job)
    entries = [_build_entry(job, ctx.user_id, item) for item in items]
    db.session.add_all(entries)
    db.session.commit()
    logger.info("Recorded %d work item(s) on job %s", len(entries), job.id, extra={"job_id": job.id})
    return entries


def list_entries(ctx, job_id: int) -> list[WorkPerformedEntry]:
    from fieldops.services.job_service import get_job

    job = get_job(ctx, job_id)
    return (
        WorkPerformedEntry.query.filter_by(job_order_id=job.id)
        .order_by(WorkPerformedEntry.created_at, WorkPerformedEntry.id)
        .all()
    )


# ── Drafts ───────────────────────────────────────────────────────────────────


def _draft(job_id: int, user_id: str) -> WorkDraft | None:
    return WorkDraft.query.filter_by(job_order_id=job_id, operator_user_id=user_id).first()


def save_draft(ctx, job_id: int, items: list, notes: str | None = None) -> WorkDraft:
    from fieldops.services.job_service import get_job

    job = get_job(ctx, job_id)
    if job.is_completed:
        raise ValidationError("Job is already completed", details={"status": "completed"})
    if not isinstance(items, list):
        raise ValidationError("items must be a list", details={"items": "invalid"})
    draft = _draft(job.id, ctx.user_id)
    if draft is None:
        draft = WorkDraft(job_order_id=job.id, operator_user_id=ctx.user_id)
        db.session.add(draft)
    draft.items = items
    draft.notes = notes
    draft.updated_at = utcnow()
    db.session.commit()
    return draft


def load_draft(ctx, job_id: int) -> dict:
    from fieldops.services.job_service import get_job

    job = get_job(ctx, job_id)
    draft = _draft(job.id, ctx.user_id)
    if draft is None:
        return {"job_order_id": job.id, "operator_user_id": ctx.user_id, "items": [], "notes": None, "updated_at": None}
    return draft.to_dict()


def clear_draft(job_id: int, user_id: str, commit: bool = True) -> bool:
    draft = _draft(job_id, user_id)
    if draft is None:
        return False
    db.session.delete(draft)
    if commit:
        db.session.commit()
    return True


def commit_draft(ctx, job_id: int) -> list[WorkPerformedEntry]:
    """Submit the stored draft as entries; the draft is kept if validation fails."""
    from fieldops.services.job_service import get_job

    job = get_job(ctx, job_id)
    draft = _draft(job.id, ctx.user_id)
    if draft is None or not draft.items:
        raise ValidationError("No draft items to submit", details={"draft": "empty"})
    _require_open_job(job)
    entries = [_build_entry(job, ctx.user_id, item) for item in draft.items]
    db.session.add_all(entries)
    db.session.delete(draft)
    db.session.commit()
    logger.info("Committed draft with %d item(s) on job %s", len(entries), job.id, extra={"job_id": job.id})
    return entries
