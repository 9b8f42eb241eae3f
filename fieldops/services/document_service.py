"""
Document Generator — fixed-layout PDFs for compliance and sign-off.

Kinds:
    silica_plan            Silica Exposure Control Plan (OSHA 1926.1153 Table 1)
    completion_agreement   Service completion agreement with itemised work performed
    liability_release      Customer liability release signed before work starts

Two invocation modes share one renderer:
    download  render_for_job(job, kind)            → bytes
    persist   persist_for_job(job, kind, user_id)  → (GeneratedDocument, bytes)

Rendering is deterministic: the same payload always yields the same bytes
(reportlab ``invariant`` mode, no wall-clock values in the layout), so a
persisted copy can be handed straight back as the download.

Callers inside workflow steps save their record first and treat a
DocumentRenderError as non-fatal.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from io import BytesIO
from xml.sax.saxutils import escape

from flask import current_app
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from fieldops.core.exceptions import DocumentRenderError, NotFoundError, ValidationError
from fieldops.models import db, utcnow
from fieldops.models.document import DOCUMENT_KINDS, GeneratedDocument
from fieldops.models.job import JobOrder
from fieldops.models.silica import SilicaExposurePlan
from fieldops.models.worklog import StandbyLog, WorkPerformedEntry
from fieldops.services import storage_service
from fieldops.services.storage_service import StorageError

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"

SILICA_BOILERPLATE = (
    "This written exposure control plan is maintained under OSHA 29 CFR 1926.1153. "
    "Engineering and work-practice controls from Table 1 are applied to each task listed "
    "above. Water delivery must be operating whenever blades or bits are cutting, and dry "
    "sweeping or compressed-air cleaning of silica dust is prohibited. Employees working "
    "under this plan have been trained on the hazards of respirable crystalline silica."
)

COMPLETION_BOILERPLATE = (
    "The customer acknowledges that the work itemised above has been completed in a "
    "workmanlike manner and that the work area has been inspected. Any additional work "
    "requested after this sign-off will be quoted and billed separately."
)

LIABILITY_SECTIONS = (
    ("Layout Assistance",
     "Layout and marking provided as a courtesy are the customer's responsibility to verify "
     "before cutting, coring or demolition begins. The contractor is not liable for work "
     "performed according to layouts supplied by the customer or third parties."),
    ("Limitation of Liability",
     "Liability for any claim arising from this work shall not exceed the amount paid for "
     "the services rendered. The contractor is not liable for indirect, incidental or "
     "consequential damages."),
    ("Underground Utilities",
     "The customer warrants that embedded and underground utilities have been located and "
     "marked. The contractor is not liable for damage to unmarked or incorrectly marked "
     "utilities."),
    ("Site Conditions",
     "The customer is responsible for site safety and access. Unforeseen site conditions "
     "that change the scope of work may result in additional charges."),
)


# ── Typed payloads ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Letterhead:
    name: str
    address: str = ""
    phone: str = ""

    @classmethod
    def from_config(cls, config) -> "Letterhead":
        return cls(
            name=config.get("COMPANY_NAME") or "",
            address=config.get("COMPANY_ADDRESS") or "",
            phone=config.get("COMPANY_PHONE") or "",
        )


@dataclass(frozen=True)
class SilicaPlanPayload:
    job_number: str
    customer_name: str
    location: str
    employee_name: str
    employee_phone: str
    employees_on_job: tuple
    work_types: tuple
    water_delivery_integrated: bool
    work_location: str
    cutting_time: str
    apf10_required: str
    other_safety_concerns: str
    signer_name: str
    signature_date: str


@dataclass(frozen=True)
class WorkLine:
    item_name: str
    quantity: str
    kind: str
    detail: str
    notes: str = ""


@dataclass(frozen=True)
class CompletionPayload:
    job_number: str
    customer_name: str
    location: str
    operator_name: str
    work_lines: tuple = field(default_factory=tuple)
    standby_hours: str = "0"
    signer_name: str = ""
    signed_at: str = ""
    contact_not_on_site: bool = False
    notes: str = ""


@dataclass(frozen=True)
class LiabilityPayload:
    job_number: str
    customer_name: str
    customer_email: str
    location: str
    operator_name: str
    signer_name: str
    signed_at: str


def _fmt_dt(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M UTC") if value is not None else ""


def _operator_name(job: JobOrder) -> str:
    return job.assigned_operator.full_name if job.assigned_operator else "Unassigned"


def build_payload(job: JobOrder, kind: str):
    """Collect the typed payload for ``kind`` from the job's stored records."""
    if kind == "silica_plan":
        plan = SilicaExposurePlan.query.filter_by(job_order_id=job.id).first()
        if plan is None:
            raise NotFoundError(resource="SilicaExposurePlan", resource_id=job.id)
        return SilicaPlanPayload(
            job_number=job.job_number,
            customer_name=job.customer_name,
            location=job.location,
            employee_name=plan.employee_name,
            employee_phone=plan.employee_phone or "",
            employees_on_job=tuple(plan.employees_on_job or ()),
            work_types=tuple(plan.work_types or ()),
            water_delivery_integrated=bool(plan.water_delivery_integrated),
            work_location=plan.work_location,
            cutting_time=plan.cutting_time,
            apf10_required=plan.apf10_required,
            other_safety_concerns=plan.other_safety_concerns or "",
            signer_name=plan.employee_name,
            signature_date=plan.signature_date.isoformat(),
        )

    if kind == "completion_agreement":
        entries = (
            WorkPerformedEntry.query.filter_by(job_order_id=job.id)
            .order_by(WorkPerformedEntry.id)
            .all()
        )
        standby = StandbyLog.query.filter_by(job_order_id=job.id, status="completed").all()
        standby_hours = sum((s.duration_hours or 0) for s in standby)
        return CompletionPayload(
            job_number=job.job_number,
            customer_name=job.customer_name,
            location=job.location,
            operator_name=_operator_name(job),
            work_lines=tuple(
                WorkLine(
                    item_name=e.item_name,
                    quantity=str(e.quantity),
                    kind=e.details_kind,
                    detail=e.spec.summary(),
                    notes=e.notes or "",
                )
                for e in entries
            ),
            standby_hours=f"{float(standby_hours):.2f}",
            signer_name=job.completion_signer_name or "",
            signed_at=_fmt_dt(job.completion_signed_at or job.completed_at),
            contact_not_on_site=bool(job.contact_not_on_site),
            notes=job.completion_notes or "",
        )

    if kind == "liability_release":
        if not job.liability_release_signed_at:
            raise ValidationError("Liability release has not been signed", details={"kind": kind})
        return LiabilityPayload(
            job_number=job.job_number,
            customer_name=job.customer_name,
            customer_email=job.liability_release_customer_email or job.customer_email or "",
            location=job.location,
            operator_name=_operator_name(job),
            signer_name=job.liability_release_signer_name or "",
            signed_at=_fmt_dt(job.liability_release_signed_at),
        )

    raise ValidationError(
        f"kind must be one of {', '.join(DOCUMENT_KINDS)}", details={"kind": "invalid"}
    )


# ── Rendering ────────────────────────────────────────────────────────────────


def _styles():
    styles = getSampleStyleSheet()
    normal = ParagraphStyle("FieldNormal", parent=styles["Normal"], fontSize=10, leading=13, spaceAfter=3)
    return {
        "title": ParagraphStyle(
            "FieldTitle", parent=styles["Heading1"], fontSize=18, leading=22, alignment=1, spaceAfter=6,
        ),
        "company": ParagraphStyle(
            "FieldCompany", parent=normal, alignment=1, fontName="Helvetica-Bold", fontSize=12,
        ),
        "letterhead": ParagraphStyle("FieldLetterhead", parent=normal, alignment=1, textColor=colors.darkgrey),
        "section": ParagraphStyle(
            "FieldSection", parent=styles["Heading2"], fontSize=12, leading=15,
            spaceBefore=10, spaceAfter=4, textColor=colors.darkblue,
        ),
        "normal": normal,
        "small": ParagraphStyle("FieldSmall", parent=normal, fontSize=8, leading=10, textColor=colors.darkgrey),
    }


def _p(text, style):
    return Paragraph(escape(str(text or "")), style)


def _letterhead(elements, letterhead: Letterhead, title: str, st):
    elements.append(_p(letterhead.name, st["company"]))
    contact = " | ".join(part for part in (letterhead.address, letterhead.phone) if part)
    if contact:
        elements.append(_p(contact, st["letterhead"]))
    elements.append(Spacer(1, 0.1 * inch))
    elements.append(_p(title, st["title"]))


def _qa_table(rows, st):
    data = [[_p(q, st["normal"]), _p(a, st["normal"])] for q, a in rows]
    table = Table(data, colWidths=[2.6 * inch, 4.0 * inch])
    table.setStyle(TableStyle([
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
        ("LINEBELOW", (0, 0), (-1, -1), 0.25, colors.lightgrey),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
    ]))
    return table


def _signature_block(elements, signer: str, signed: str, st, label="Customer Signature"):
    data = [
        [_p(label, st["normal"]), _p("Date", st["normal"])],
        [_p(f"Signed electronically by {signer}" if signer else "", st["normal"]), _p(signed, st["normal"])],
    ]
    table = Table(data, colWidths=[4.0 * inch, 2.6 * inch])
    table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("LINEBELOW", (0, 1), (-1, 1), 1, colors.black),
        ("TOPPADDING", (0, 1), (-1, 1), 18),
    ]))
    elements.append(Spacer(1, 0.25 * inch))
    elements.append(table)


def _silica_elements(payload: SilicaPlanPayload, letterhead: Letterhead, st):
    elements = []
    _letterhead(elements, letterhead, "Silica Exposure Control Plan", st)
    elements.append(_p("Job", st["section"]))
    elements.append(_qa_table([
        ("Job Number", payload.job_number),
        ("Customer", payload.customer_name),
        ("Location", payload.location),
        ("Competent Person", payload.employee_name),
        ("Phone", payload.employee_phone),
        ("Employees on Job", ", ".join(payload.employees_on_job) or "None listed"),
    ], st))
    elements.append(_p("Exposure Controls", st["section"]))
    elements.append(_qa_table([
        ("Type(s) of work", ", ".join(payload.work_types)),
        ("Integrated water delivery on equipment?", "Yes" if payload.water_delivery_integrated else "No"),
        ("Work location", payload.work_location.capitalize()),
        ("Cutting time", payload.cutting_time),
        ("APF 10 respirator required?", payload.apf10_required),
        ("Other safety concerns", payload.other_safety_concerns or "None"),
    ], st))
    elements.append(Spacer(1, 0.15 * inch))
    elements.append(_p(SILICA_BOILERPLATE, st["small"]))
    _signature_block(elements, payload.signer_name, payload.signature_date, st, label="Employee Signature")
    return elements


def _completion_elements(payload: CompletionPayload, letterhead: Letterhead, st):
    elements = []
    _letterhead(elements, letterhead, "Service Completion Agreement", st)
    elements.append(_qa_table([
        ("Job Number", payload.job_number),
        ("Customer", payload.customer_name),
        ("Location", payload.location),
        ("Operator", payload.operator_name),
    ], st))

    elements.append(_p("Work Performed", st["section"]))
    if payload.work_lines:
        data = [["Item", "Qty", "Details"]]
        for line in payload.work_lines:
            detail = line.detail
            if line.notes:
                detail = f"{detail} ({line.notes})" if detail else line.notes
            data.append([_p(line.item_name, st["normal"]), line.quantity, _p(detail, st["normal"])])
        table = Table(data, colWidths=[2.2 * inch, 0.6 * inch, 3.8 * inch], repeatRows=1)
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.darkblue),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("ALIGN", (1, 1), (1, -1), "CENTER"),
            ("GRID", (0, 0), (-1, -1), 0.25, colors.lightgrey),
        ]))
        elements.append(table)
    else:
        elements.append(_p("No itemised work recorded.", st["normal"]))
    elements.append(_p(f"Standby time: {payload.standby_hours} hours", st["normal"]))
    if payload.notes:
        elements.append(_p(payload.notes, st["normal"]))

    elements.append(Spacer(1, 0.15 * inch))
    elements.append(_p(COMPLETION_BOILERPLATE, st["small"]))
    if payload.contact_not_on_site:
        elements.append(_p("Customer contact was not on site at completion; no signature collected.", st["normal"]))
        _signature_block(elements, "", payload.signed_at, st)
    else:
        _signature_block(elements, payload.signer_name, payload.signed_at, st)
    return elements


def _liability_elements(payload: LiabilityPayload, letterhead: Letterhead, st):
    elements = []
    _letterhead(elements, letterhead, "Liability Release & Indemnification", st)
    elements.append(_qa_table([
        ("Job Number", payload.job_number),
        ("Location", payload.location),
        ("Customer", payload.customer_name),
        ("Customer Email", payload.customer_email),
        ("Operator", payload.operator_name),
    ], st))
    for heading, text in LIABILITY_SECTIONS:
        elements.append(_p(heading, st["section"]))
        elements.append(_p(text, st["normal"]))
    _signature_block(elements, payload.signer_name, payload.signed_at, st)
    return elements


_BUILDERS = {
    SilicaPlanPayload: ("silica_plan", _silica_elements),
    CompletionPayload: ("completion_agreement", _completion_elements),
    LiabilityPayload: ("liability_release", _liability_elements),
}


def render(payload, letterhead: Letterhead) -> bytes:
    """Render a typed payload to PDF bytes."""
    kind, builder = _BUILDERS[type(payload)]
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=letter,
        rightMargin=54,
        leftMargin=54,
        topMargin=54,
        bottomMargin=54,
        title=f"{kind} {payload.job_number}",
        author=letterhead.name,
        invariant=1,
    )
    doc.build(builder(payload, letterhead, _styles()))
    return buffer.getvalue()


def filename_for(job: JobOrder, kind: str) -> str:
    return f"{kind}_{job.job_number}.pdf"


# ── Modes ────────────────────────────────────────────────────────────────────


def render_for_job(job: JobOrder, kind: str) -> bytes:
    """Download mode."""
    payload = build_payload(job, kind)
    try:
        return render(payload, Letterhead.from_config(current_app.config))
    except Exception as exc:
        logger.exception(
            "PDF render failed", extra={"operation": "render", "job_id": job.id, "kind": kind}
        )
        raise DocumentRenderError(kind, job.id, str(exc)) from exc


def persist_for_job(job: JobOrder, kind: str, user_id: str | None = None):
    """Persist mode: render, store, record metadata, point the job at it.

    Returns ``(GeneratedDocument, pdf_bytes)`` so the caller can also serve
    the same bytes as a download.
    """
    content = render_for_job(job, kind)
    filename = filename_for(job, kind)
    try:
        key = storage_service.put(content, filename, folder=f"documents/{job.id}")
    except StorageError as exc:
        raise DocumentRenderError(kind, job.id, f"storage failed: {exc}") from exc

    generated_at = utcnow()
    doc = GeneratedDocument(
        job_order_id=job.id,
        kind=kind,
        storage_key=key,
        filename=filename,
        content_type=PDF_CONTENT_TYPE,
        size_bytes=len(content),
        sha256=hashlib.sha256(content).hexdigest(),
        generated_by=user_id,
        generated_at=generated_at,
    )
    db.session.add(doc)
    job.set_document_ref(kind, key, generated_at)
    db.session.commit()
    logger.info("Persisted %s for job %s as %s", kind, job.id, key)
    return doc, content


def try_persist_for_job(job: JobOrder, kind: str, user_id: str | None = None):
    """Workflow-step variant: never raises for render/storage failures.

    Returns ``(GeneratedDocument | None, error_message | None)``.
    """
    try:
        doc, _ = persist_for_job(job, kind, user_id)
    except DocumentRenderError as exc:
        db.session.rollback()
        logger.warning(
            "Document generation failed; record kept, retry available: %s", exc,
            extra={"operation": "persist_document", "job_id": job.id, "kind": kind},
        )
        return None, str(exc)
    return doc, None


def get_document(ctx, document_id: int):
    """Stored document metadata plus bytes, for administrators."""
    ctx.require_admin("document retrieval")
    doc = db.session.get(GeneratedDocument, document_id)
    if doc is None:
        raise NotFoundError(resource="GeneratedDocument", resource_id=document_id)
    return doc, storage_service.get(doc.storage_key)


def list_documents(ctx, job_id: int) -> list[GeneratedDocument]:
    ctx.require_admin("document listing")
    return (
        GeneratedDocument.query.filter_by(job_order_id=job_id)
        .order_by(GeneratedDocument.generated_at.desc(), GeneratedDocument.id.desc())
        .all()
    )
