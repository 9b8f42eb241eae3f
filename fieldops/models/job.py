"""
Job Order — the canonical record for one unit of billable field work.

A job order carries its schedule, assignment, status and every completion
artifact (signature, customer ratings, generated document references).
Child collections (work-performed entries, standby logs, daily logs) point
back at ``job_orders.id`` by value only; the reconciliation service is what
finds children whose parent has disappeared.

Status lifecycle (monotonic, never regresses):
    unassigned → scheduled → in_progress → completed
"""

from fieldops.models import db, iso, utcnow

# ── Constants ─────────────────────────────────────────────────────────────────

JOB_STATUSES = ("unassigned", "scheduled", "in_progress", "completed")

_STATUS_RANK = {status: rank for rank, status in enumerate(JOB_STATUSES)}

# Forward moves only. Normal workflow actions advance one step at a time;
# drift repair may advance several.
JOB_TRANSITIONS = {
    "unassigned":  ["scheduled", "in_progress", "completed"],
    "scheduled":   ["in_progress", "completed"],
    "in_progress": ["completed"],
    "completed":   [],
}

JOB_PRIORITIES = ("low", "medium", "high", "urgent")

# Kinds of generated PDF a job order keeps a reference to.
DOCUMENT_REF_FIELDS = {
    "completion_agreement": "agreement_pdf",
    "liability_release": "liability_release_pdf",
    "silica_plan": "silica_form_pdf",
}


def validate_job_transition(old_status, new_status):
    """Return True if JobOrder status transition is valid."""
    return new_status in JOB_TRANSITIONS.get(old_status, [])


def status_rank(status):
    """Position of a status in the lifecycle; unknown values sort first."""
    return _STATUS_RANK.get(status, -1)


def money(value):
    """Decimal → string for JSON, preserving cents exactly."""
    return str(value) if value is not None else None


class JobOrder(db.Model):
    """One contracted unit of field work, tracked from scheduling to signed completion."""

    __tablename__ = "job_orders"

    id = db.Column(db.Integer, primary_key=True)
    job_number = db.Column(db.String(30), unique=True, nullable=False)
    title = db.Column(db.String(200), default="")

    # Customer (canonical names; aliases are resolved in job_service)
    customer_name = db.Column(db.String(200), nullable=False)
    customer_contact = db.Column(db.String(200), nullable=True)
    customer_email = db.Column(db.String(200), nullable=True)
    location = db.Column(db.String(500), nullable=False)
    job_type = db.Column(db.String(100), nullable=True)
    description = db.Column(db.Text, default="")
    po_number = db.Column(db.String(100), nullable=True)

    # Assignment
    assigned_operator_id = db.Column(
        db.Integer,
        db.ForeignKey("operator_profiles.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    priority = db.Column(db.String(20), default="medium")
    difficulty_rating = db.Column(db.Integer, nullable=True, comment="1-10")

    # Scheduling
    scheduled_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    estimated_days = db.Column(
        db.Integer, nullable=True,
        comment="Admin-set duration; >1 marks the job multi-day up front",
    )
    is_multi_day = db.Column(db.Boolean, nullable=False, default=False)
    shop_arrival_time = db.Column(db.DateTime(timezone=True), nullable=True)
    arrival_time = db.Column(
        db.DateTime(timezone=True), nullable=True,
        comment="First on-site arrival; start boundary for job hours",
    )
    work_started_at = db.Column(
        db.DateTime(timezone=True), nullable=True,
        comment="Start of the current working day; cleared by End Day",
    )
    work_start_latitude = db.Column(db.Float, nullable=True)
    work_start_longitude = db.Column(db.Float, nullable=True)

    status = db.Column(
        db.String(20), nullable=False, default="unassigned",
        comment="unassigned | scheduled | in_progress | completed",
    )

    # Money (decimal, rounded only for display)
    quoted_amount = db.Column(db.Numeric(12, 2), nullable=True)
    equipment_cost = db.Column(db.Numeric(12, 2), nullable=True)
    material_cost = db.Column(db.Numeric(12, 2), nullable=True)

    # Completion / customer signature
    completion_signature = db.Column(db.Text, nullable=True)
    completion_signer_name = db.Column(db.String(200), nullable=True)
    completion_signed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    contact_not_on_site = db.Column(db.Boolean, nullable=False, default=False)
    completion_notes = db.Column(db.Text, nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Customer satisfaction (1-10)
    customer_overall_rating = db.Column(db.Integer, nullable=True)
    customer_cleanliness_rating = db.Column(db.Integer, nullable=True)
    customer_communication_rating = db.Column(db.Integer, nullable=True)
    customer_feedback_comments = db.Column(db.Text, nullable=True)

    # Liability release
    liability_release_signer_name = db.Column(db.String(200), nullable=True)
    liability_release_customer_email = db.Column(db.String(200), nullable=True)
    liability_release_signed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Generated documents (object-store reference + generation timestamp)
    agreement_pdf_ref = db.Column(db.String(500), nullable=True)
    agreement_pdf_generated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    liability_release_pdf_ref = db.Column(db.String(500), nullable=True)
    liability_release_pdf_generated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    silica_form_pdf_ref = db.Column(db.String(500), nullable=True)
    silica_form_pdf_generated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Metadata
    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deleted_by = db.Column(db.String(64), nullable=True)

    assigned_operator = db.relationship("OperatorProfile", lazy="joined")

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('unassigned','scheduled','in_progress','completed')",
            name="ck_job_orders_status",
        ),
        db.Index("ix_job_orders_status_completed", "status", "completed_at"),
    )

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    def set_document_ref(self, kind: str, ref: str, generated_at) -> None:
        prefix = DOCUMENT_REF_FIELDS[kind]
        setattr(self, f"{prefix}_ref", ref)
        setattr(self, f"{prefix}_generated_at", generated_at)

    def to_dict(self, include_financials: bool = False) -> dict:
        result = {
            "id": self.id,
            "job_number": self.job_number,
            "title": self.title,
            "customer_name": self.customer_name,
            "customer_contact": self.customer_contact,
            "customer_email": self.customer_email,
            "location": self.location,
            "job_type": self.job_type,
            "description": self.description,
            "po_number": self.po_number,
            "assigned_operator_id": self.assigned_operator_id,
            "operator_name": self.assigned_operator.full_name if self.assigned_operator else None,
            "priority": self.priority,
            "difficulty_rating": self.difficulty_rating,
            "scheduled_date": iso(self.scheduled_date),
            "end_date": iso(self.end_date),
            "estimated_days": self.estimated_days,
            "is_multi_day": self.is_multi_day,
            "shop_arrival_time": iso(self.shop_arrival_time),
            "arrival_time": iso(self.arrival_time),
            "work_started_at": iso(self.work_started_at),
            "status": self.status,
            "completion_signer_name": self.completion_signer_name,
            "completion_signed_at": iso(self.completion_signed_at),
            "completion_signature": self.completion_signature,
            "contact_not_on_site": self.contact_not_on_site,
            "completion_notes": self.completion_notes,
            "completed_at": iso(self.completed_at),
            "customer_overall_rating": self.customer_overall_rating,
            "customer_cleanliness_rating": self.customer_cleanliness_rating,
            "customer_communication_rating": self.customer_communication_rating,
            "customer_feedback_comments": self.customer_feedback_comments,
            "liability_release_signer_name": self.liability_release_signer_name,
            "liability_release_signed_at": iso(self.liability_release_signed_at),
            "documents": {
                kind: {
                    "ref": getattr(self, f"{prefix}_ref"),
                    "generated_at": iso(getattr(self, f"{prefix}_generated_at")),
                }
                for kind, prefix in DOCUMENT_REF_FIELDS.items()
            },
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if include_financials:
            result["quoted_amount"] = money(self.quoted_amount)
            result["equipment_cost"] = money(self.equipment_cost)
            result["material_cost"] = money(self.material_cost)
        return result

    def __repr__(self) -> str:
        return f"<JobOrder #{self.id} {self.job_number} {self.status}>"


class DailyJobLog(db.Model):
    """End-of-day record for a job that continues on a later calendar day."""

    __tablename__ = "daily_job_logs"

    id = db.Column(db.Integer, primary_key=True)
    job_order_id = db.Column(db.Integer, nullable=False, index=True)
    operator_user_id = db.Column(db.String(64), nullable=True)
    log_date = db.Column(db.Date, nullable=False)
    work_started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    day_completed_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    hours_worked = db.Column(db.Numeric(8, 2), nullable=True)
    work_summary = db.Column(db.JSON, default=list)
    notes = db.Column(db.Text, nullable=True)
    signer_name = db.Column(db.String(200), nullable=True)
    signature_data = db.Column(db.Text, nullable=True)
    day_end_latitude = db.Column(db.Float, nullable=True)
    day_end_longitude = db.Column(db.Float, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "job_order_id": self.job_order_id,
            "operator_user_id": self.operator_user_id,
            "log_date": iso(self.log_date),
            "work_started_at": iso(self.work_started_at),
            "day_completed_at": iso(self.day_completed_at),
            "hours_worked": money(self.hours_worked),
            "work_summary": self.work_summary or [],
            "notes": self.notes,
            "signer_name": self.signer_name,
            "day_end_latitude": self.day_end_latitude,
            "day_end_longitude": self.day_end_longitude,
        }
