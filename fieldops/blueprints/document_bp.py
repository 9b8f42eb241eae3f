"""
Document Blueprint — PDF download, regeneration and stored-document retrieval.

Endpoints:
  GET  /api/v1/jobs/<id>/documents/<kind>.pdf   — Render and download (no persistence)
  POST /api/v1/jobs/<id>/documents/<kind>       — Render, store and record (admin)
  GET  /api/v1/jobs/<id>/documents              — GeneratedDocument rows for a job (admin)
  GET  /api/v1/documents/<doc_id>               — Stream a stored document (admin)

kind: silica_plan | completion_agreement | liability_release
"""

import io
import logging

from flask import Blueprint, jsonify, send_file

from fieldops.auth import current_session, require_session
from fieldops.blueprints import register_error_handlers
from fieldops.core.exceptions import NotFoundError
from fieldops.models.document import DOCUMENT_KINDS
from fieldops.services import document_service, job_service

logger = logging.getLogger(__name__)

document_bp = Blueprint("documents", __name__, url_prefix="/api/v1")
register_error_handlers(document_bp)

PDF_MIMETYPE = "application/pdf"


def _check_kind(kind: str) -> None:
    if kind not in DOCUMENT_KINDS:
        raise NotFoundError(resource="DocumentKind", resource_id=kind)


@document_bp.route("/jobs/<int:job_id>/documents/<kind>.pdf", methods=["GET"])
@require_session
def download(job_id: int, kind: str):
    ctx = current_session()
    _check_kind(kind)
    job = job_service.get_job(ctx, job_id)
    content = document_service.render_for_job(job, kind)
    return send_file(
        io.BytesIO(content),
        mimetype=PDF_MIMETYPE,
        as_attachment=True,
        download_name=document_service.filename_for(job, kind),
    )


@document_bp.route("/jobs/<int:job_id>/documents/<kind>", methods=["POST"])
@require_session
def regenerate(job_id: int, kind: str):
    """Retry path for a document whose workflow-step generation failed."""
    ctx = current_session()
    ctx.require_admin("document regeneration")
    _check_kind(kind)
    job = job_service.get_job(ctx, job_id)
    doc, _ = document_service.persist_for_job(job, kind, ctx.user_id)
    return jsonify(doc.to_dict()), 201


@document_bp.route("/jobs/<int:job_id>/documents", methods=["GET"])
@require_session
def list_documents(job_id: int):
    ctx = current_session()
    job = job_service.get_job(ctx, job_id)
    docs = document_service.list_documents(ctx, job.id)
    return jsonify({"items": [d.to_dict() for d in docs], "total": len(docs)}), 200


@document_bp.route("/documents/<int:doc_id>", methods=["GET"])
@require_session
def get_document(doc_id: int):
    doc, content = document_service.get_document(current_session(), doc_id)
    return send_file(
        io.BytesIO(content),
        mimetype=doc.content_type or PDF_MIMETYPE,
        as_attachment=True,
        download_name=doc.filename,
    )
