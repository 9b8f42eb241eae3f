"""
One-Time-Submission Guard.

Per-job singleton documents are registered here by kind. ``exists`` is a
plain existence query, not a lock: two sessions can both see ``False`` and
race to insert. The storage-layer unique constraint on ``job_order_id``
decides that race and the loser gets a ConflictError from the service.

Usage:
    from fieldops.services.submission_guard import exists

    if exists(job.id, "silica_plan"):
        ...  # show the already-submitted view
"""

import logging

from fieldops.models import db
from fieldops.models.silica import SilicaExposurePlan

logger = logging.getLogger(__name__)

# kind → (model, job id column)
SINGLETON_DOCUMENTS = {
    "silica_plan": (SilicaExposurePlan, SilicaExposurePlan.job_order_id),
}


def exists(job_id: int, kind: str) -> bool:
    """True if a ``kind`` document has already been submitted for ``job_id``."""
    try:
        model, column = SINGLETON_DOCUMENTS[kind]
    except KeyError:
        raise ValueError(f"Unknown singleton document kind: {kind}") from None
    found = db.session.query(db.exists().where(column == job_id)).scalar()
    if found:
        logger.debug("Submission guard hit: %s already exists for job %s", kind, job_id)
    return bool(found)


def existing(job_id: int, kind: str):
    """Return the submitted record, or None."""
    model, column = SINGLETON_DOCUMENTS[kind]
    return model.query.filter(column == job_id).first()
