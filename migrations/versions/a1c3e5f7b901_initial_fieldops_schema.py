"""initial_fieldops_schema

Creates the field operations schema:
  - operator_profiles, operator_certifications
  - job_orders, daily_job_logs
  - work_performed_entries, standby_logs, work_drafts
  - silica_exposure_plans
  - generated_documents
  - blades
  - user_sessions
  - orphan_scans

Child collections of job_orders (work entries, standby, daily logs, drafts,
generated documents) reference the job by value only so the reconciliation
scan can find rows whose parent is gone.

Tables created conditionally (IF NOT EXISTS semantics) to support idempotent
execution against databases that already received these tables via db.create_all()
in a development environment.

Revision ID: a1c3e5f7b901
Revises:
Create Date: 2026-09-28 09:14:22.418305
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = 'a1c3e5f7b901'
down_revision = None
branch_labels = None
depends_on = None


def _tz():
    return sa.DateTime(timezone=True)


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── OperatorProfile ───────────────────────────────────────────────────
    if "operator_profiles" not in existing:
        op.create_table(
            "operator_profiles",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.String(length=64), nullable=False, comment="Session subject id"),
            sa.Column("full_name", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=True),
            sa.Column("phone", sa.String(length=50), nullable=True),
            sa.Column("address", sa.String(length=500), nullable=True),
            sa.Column("hire_date", sa.Date(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("hourly_rate", sa.Numeric(precision=10, scale=2), nullable=True, comment="Admin-only"),
            sa.Column("skill_levels", sa.JSON(), nullable=True),
            sa.Column("equipment_qualifications", sa.JSON(), nullable=True),
            sa.Column("jobs_completed", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("revenue_generated", sa.Numeric(precision=14, scale=2), nullable=False, server_default="0"),
            sa.Column("hours_worked", sa.Numeric(precision=10, scale=2), nullable=False, server_default="0"),
            sa.Column("linear_feet_cut", sa.Numeric(precision=12, scale=2), nullable=False, server_default="0"),
            sa.Column("avg_overall_rating", sa.Float(), nullable=True),
            sa.Column("avg_cleanliness_rating", sa.Float(), nullable=True),
            sa.Column("avg_communication_rating", sa.Float(), nullable=True),
            sa.Column("total_ratings_received", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", _tz(), nullable=True),
            sa.Column("updated_at", _tz(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("user_id"),
        )

    if "operator_certifications" not in existing:
        op.create_table(
            "operator_certifications",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("operator_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("issued_date", sa.Date(), nullable=False),
            sa.Column("expiry_date", sa.Date(), nullable=True),
            sa.Column("document_key", sa.String(length=500), nullable=True),
            sa.Column("document_filename", sa.String(length=255), nullable=True),
            sa.Column("created_at", _tz(), nullable=True),
            sa.ForeignKeyConstraint(["operator_id"], ["operator_profiles.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_operator_certifications_operator_id", "operator_certifications", ["operator_id"])

    # ── JobOrder ──────────────────────────────────────────────────────────
    if "job_orders" not in existing:
        op.create_table(
            "job_orders",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("job_number", sa.String(length=30), nullable=False),
            sa.Column("title", sa.String(length=200), nullable=True),
            sa.Column("customer_name", sa.String(length=200), nullable=False),
            sa.Column("customer_contact", sa.String(length=200), nullable=True),
            sa.Column("customer_email", sa.String(length=200), nullable=True),
            sa.Column("location", sa.String(length=500), nullable=False),
            sa.Column("job_type", sa.String(length=100), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("po_number", sa.String(length=100), nullable=True),
            sa.Column("assigned_operator_id", sa.Integer(), nullable=True),
            sa.Column("priority", sa.String(length=20), nullable=True),
            sa.Column("difficulty_rating", sa.Integer(), nullable=True, comment="1-10"),
            sa.Column("scheduled_date", sa.Date(), nullable=True),
            sa.Column("end_date", sa.Date(), nullable=True),
            sa.Column(
                "estimated_days", sa.Integer(), nullable=True,
                comment="Admin-set duration; >1 marks the job multi-day up front",
            ),
            sa.Column("is_multi_day", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("shop_arrival_time", _tz(), nullable=True),
            sa.Column(
                "arrival_time", _tz(), nullable=True,
                comment="First on-site arrival; start boundary for job hours",
            ),
            sa.Column(
                "work_started_at", _tz(), nullable=True,
                comment="Start of the current working day; cleared by End Day",
            ),
            sa.Column("work_start_latitude", sa.Float(), nullable=True),
            sa.Column("work_start_longitude", sa.Float(), nullable=True),
            sa.Column(
                "status", sa.String(length=20), nullable=False,
                server_default="unassigned",
                comment="unassigned | scheduled | in_progress | completed",
            ),
            sa.Column("quoted_amount", sa.Numeric(precision=12, scale=2), nullable=True),
            sa.Column("equipment_cost", sa.Numeric(precision=12, scale=2), nullable=True),
            sa.Column("material_cost", sa.Numeric(precision=12, scale=2), nullable=True),
            sa.Column("completion_signature", sa.Text(), nullable=True),
            sa.Column("completion_signer_name", sa.String(length=200), nullable=True),
            sa.Column("completion_signed_at", _tz(), nullable=True),
            sa.Column("contact_not_on_site", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("completion_notes", sa.Text(), nullable=True),
            sa.Column("completed_at", _tz(), nullable=True),
            sa.Column("customer_overall_rating", sa.Integer(), nullable=True),
            sa.Column("customer_cleanliness_rating", sa.Integer(), nullable=True),
            sa.Column("customer_communication_rating", sa.Integer(), nullable=True),
            sa.Column("customer_feedback_comments", sa.Text(), nullable=True),
            sa.Column("liability_release_signer_name", sa.String(length=200), nullable=True),
            sa.Column("liability_release_customer_email", sa.String(length=200), nullable=True),
            sa.Column("liability_release_signed_at", _tz(), nullable=True),
            sa.Column("agreement_pdf_ref", sa.String(length=500), nullable=True),
            sa.Column("agreement_pdf_generated_at", _tz(), nullable=True),
            sa.Column("liability_release_pdf_ref", sa.String(length=500), nullable=True),
            sa.Column("liability_release_pdf_generated_at", _tz(), nullable=True),
            sa.Column("silica_form_pdf_ref", sa.String(length=500), nullable=True),
            sa.Column("silica_form_pdf_generated_at", _tz(), nullable=True),
            sa.Column("created_by", sa.String(length=64), nullable=True),
            sa.Column("created_at", _tz(), nullable=True),
            sa.Column("updated_at", _tz(), nullable=True),
            sa.Column("deleted_at", _tz(), nullable=True),
            sa.Column("deleted_by", sa.String(length=64), nullable=True),
            sa.CheckConstraint(
                "status IN ('unassigned','scheduled','in_progress','completed')",
                name="ck_job_orders_status",
            ),
            sa.ForeignKeyConstraint(["assigned_operator_id"], ["operator_profiles.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("job_number"),
        )
        op.create_index("ix_job_orders_assigned_operator_id", "job_orders", ["assigned_operator_id"])
        op.create_index("ix_job_orders_status_completed", "job_orders", ["status", "completed_at"])

    if "daily_job_logs" not in existing:
        op.create_table(
            "daily_job_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("job_order_id", sa.Integer(), nullable=False),
            sa.Column("operator_user_id", sa.String(length=64), nullable=True),
            sa.Column("log_date", sa.Date(), nullable=False),
            sa.Column("work_started_at", _tz(), nullable=True),
            sa.Column("day_completed_at", _tz(), nullable=False),
            sa.Column("hours_worked", sa.Numeric(precision=8, scale=2), nullable=True),
            sa.Column("work_summary", sa.JSON(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("signer_name", sa.String(length=200), nullable=True),
            sa.Column("signature_data", sa.Text(), nullable=True),
            sa.Column("day_end_latitude", sa.Float(), nullable=True),
            sa.Column("day_end_longitude", sa.Float(), nullable=True),
            sa.Column("created_at", _tz(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_daily_job_logs_job_order_id", "daily_job_logs", ["job_order_id"])

    # ── Work records ──────────────────────────────────────────────────────
    if "work_performed_entries" not in existing:
        op.create_table(
            "work_performed_entries",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("job_order_id", sa.Integer(), nullable=False),
            sa.Column("operator_user_id", sa.String(length=64), nullable=True),
            sa.Column("item_name", sa.String(length=200), nullable=False),
            sa.Column("quantity", sa.Numeric(precision=10, scale=2), nullable=False, server_default="1"),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column(
                "details_kind", sa.String(length=20), nullable=False,
                server_default="general", comment="hole | cut | general",
            ),
            sa.Column("details", sa.JSON(), nullable=True),
            sa.Column("work_date", sa.Date(), nullable=True),
            sa.Column("created_at", _tz(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_work_performed_entries_job_order_id", "work_performed_entries", ["job_order_id"])

    if "standby_logs" not in existing:
        op.create_table(
            "standby_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("job_order_id", sa.Integer(), nullable=False),
            sa.Column("operator_user_id", sa.String(length=64), nullable=True),
            sa.Column("started_at", _tz(), nullable=False),
            sa.Column("ended_at", _tz(), nullable=True),
            sa.Column("duration_hours", sa.Numeric(precision=10, scale=4), nullable=True),
            sa.Column("reason", sa.String(length=500), nullable=False),
            sa.Column("client_name", sa.String(length=200), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column(
                "status", sa.String(length=20), nullable=False,
                server_default="active", comment="active | completed",
            ),
            sa.Column("created_at", _tz(), nullable=True),
            sa.CheckConstraint("status IN ('active','completed')", name="ck_standby_logs_status"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_standby_logs_job_order_id", "standby_logs", ["job_order_id"])

    if "work_drafts" not in existing:
        op.create_table(
            "work_drafts",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("job_order_id", sa.Integer(), nullable=False),
            sa.Column("operator_user_id", sa.String(length=64), nullable=False),
            sa.Column("items", sa.JSON(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("updated_at", _tz(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("job_order_id", "operator_user_id", name="uq_work_draft_job_operator"),
        )

    # ── SilicaExposurePlan ────────────────────────────────────────────────
    if "silica_exposure_plans" not in existing:
        op.create_table(
            "silica_exposure_plans",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("job_order_id", sa.Integer(), nullable=False),
            sa.Column("employee_name", sa.String(length=200), nullable=False),
            sa.Column("employee_phone", sa.String(length=50), nullable=True),
            sa.Column("employees_on_job", sa.JSON(), nullable=True, comment="Roster of names"),
            sa.Column("work_types", sa.JSON(), nullable=True),
            sa.Column("water_delivery_integrated", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("work_location", sa.String(length=20), nullable=False, comment="indoor | outdoor"),
            sa.Column("cutting_time", sa.String(length=40), nullable=False),
            sa.Column("apf10_required", sa.String(length=10), nullable=False, comment="Yes | No | N/A"),
            sa.Column("other_safety_concerns", sa.Text(), nullable=True),
            sa.Column("signature", sa.Text(), nullable=False),
            sa.Column("signature_date", sa.Date(), nullable=False),
            sa.Column("submitted_by", sa.String(length=64), nullable=True),
            sa.Column("submitted_at", _tz(), nullable=True),
            sa.ForeignKeyConstraint(["job_order_id"], ["job_orders.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("job_order_id"),
        )

    # ── GeneratedDocument ─────────────────────────────────────────────────
    if "generated_documents" not in existing:
        op.create_table(
            "generated_documents",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("job_order_id", sa.Integer(), nullable=False),
            sa.Column("kind", sa.String(length=40), nullable=False),
            sa.Column("storage_key", sa.String(length=500), nullable=False),
            sa.Column("filename", sa.String(length=255), nullable=False),
            sa.Column("content_type", sa.String(length=100), nullable=False, server_default="application/pdf"),
            sa.Column("size_bytes", sa.Integer(), nullable=False),
            sa.Column("sha256", sa.String(length=64), nullable=False),
            sa.Column("generated_by", sa.String(length=64), nullable=True),
            sa.Column("generated_at", _tz(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_generated_documents_job_order_id", "generated_documents", ["job_order_id"])

    # ── Blade ─────────────────────────────────────────────────────────────
    if "blades" not in existing:
        op.create_table(
            "blades",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("blade_type", sa.String(length=20), nullable=False),
            sa.Column("brand", sa.String(length=100), nullable=False),
            sa.Column("size", sa.String(length=50), nullable=True),
            sa.Column("serial_number", sa.String(length=100), nullable=False),
            sa.Column("purchase_date", sa.Date(), nullable=True),
            sa.Column("purchase_cost", sa.Numeric(precision=10, scale=2), nullable=True, comment="Admin-only"),
            sa.Column(
                "status", sa.String(length=20), nullable=False,
                server_default="active", comment="active | retired",
            ),
            sa.Column("assigned_operator_id", sa.Integer(), nullable=True),
            sa.Column("total_linear_feet", sa.Numeric(precision=12, scale=2), nullable=False, server_default="0"),
            sa.Column("total_inches", sa.Numeric(precision=12, scale=2), nullable=False, server_default="0"),
            sa.Column("holes_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("retired_at", _tz(), nullable=True),
            sa.Column("retirement_reason", sa.String(length=500), nullable=True),
            sa.Column("retirement_photo_key", sa.String(length=500), nullable=True),
            sa.Column("retired_by", sa.String(length=64), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("created_at", _tz(), nullable=True),
            sa.Column("updated_at", _tz(), nullable=True),
            sa.CheckConstraint("status IN ('active','retired')", name="ck_blades_status"),
            sa.ForeignKeyConstraint(["assigned_operator_id"], ["operator_profiles.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("serial_number"),
        )
        op.create_index("ix_blades_assigned_operator_id", "blades", ["assigned_operator_id"])

    # ── UserSession ───────────────────────────────────────────────────────
    if "user_sessions" not in existing:
        op.create_table(
            "user_sessions",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("jti", sa.String(length=64), nullable=False),
            sa.Column("user_id", sa.String(length=64), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False, comment="admin | operator"),
            sa.Column("issued_by", sa.String(length=64), nullable=True),
            sa.Column("ip_address", sa.String(length=45), nullable=True),
            sa.Column("user_agent", sa.String(length=500), nullable=True),
            sa.Column("started_at", _tz(), nullable=True),
            sa.Column("expires_at", _tz(), nullable=False),
            sa.Column("ended_at", _tz(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("jti"),
        )
        op.create_index("ix_user_sessions_user_id", "user_sessions", ["user_id"])

    # ── OrphanScan ────────────────────────────────────────────────────────
    if "orphan_scans" not in existing:
        op.create_table(
            "orphan_scans",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column(
                "orphan_set", sa.JSON(), nullable=True,
                comment="{collection: [child ids]} found at scan time",
            ),
            sa.Column("total_orphans", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("check_errors", sa.JSON(), nullable=True),
            sa.Column(
                "status", sa.String(length=20), nullable=False,
                server_default="pending", comment="pending | executed",
            ),
            sa.Column("scanned_by", sa.String(length=64), nullable=True),
            sa.Column("scanned_at", _tz(), nullable=True),
            sa.Column("executed_by", sa.String(length=64), nullable=True),
            sa.Column("executed_at", _tz(), nullable=True),
            sa.Column("cleanup_result", sa.JSON(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )


def downgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # children first so FK drops succeed
    for table in (
        "orphan_scans",
        "user_sessions",
        "blades",
        "generated_documents",
        "silica_exposure_plans",
        "work_drafts",
        "standby_logs",
        "work_performed_entries",
        "daily_job_logs",
        "job_orders",
        "operator_certifications",
        "operator_profiles",
    ):
        if table in existing:
            op.drop_table(table)
