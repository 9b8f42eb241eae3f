"""
Operator profiles: one per field worker.

Skill maps are stored as JSON:
    skill_levels             {task_id: proficiency 1-10}
    equipment_qualifications {equipment_id: {"qualified": bool, "proficiency": 1-10}}

Customer-rating averages are running means maintained by the completion
workflow; they are never written through the profile editor.
"""

from fieldops.models import db, iso, utcnow

PROFICIENCY_MIN = 1
PROFICIENCY_MAX = 10


def clamp_proficiency(value) -> int:
    """Coerce to int and clamp into [1, 10]."""
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError):
        return PROFICIENCY_MIN
    return max(PROFICIENCY_MIN, min(PROFICIENCY_MAX, number))


class OperatorProfile(db.Model):
    __tablename__ = "operator_profiles"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), unique=True, nullable=False, comment="Session subject id")
    full_name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    address = db.Column(db.String(500), nullable=True)
    hire_date = db.Column(db.Date, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    hourly_rate = db.Column(db.Numeric(10, 2), nullable=True, comment="Admin-only")

    skill_levels = db.Column(db.JSON, default=dict)
    equipment_qualifications = db.Column(db.JSON, default=dict)

    # Performance metrics (updated on job completion)
    jobs_completed = db.Column(db.Integer, nullable=False, default=0)
    revenue_generated = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    hours_worked = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    linear_feet_cut = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Running customer-rating means
    avg_overall_rating = db.Column(db.Float, nullable=True)
    avg_cleanliness_rating = db.Column(db.Float, nullable=True)
    avg_communication_rating = db.Column(db.Float, nullable=True)
    total_ratings_received = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    certifications = db.relationship(
        "OperatorCertification",
        backref="operator",
        lazy="select",
        cascade="all, delete-orphan",
        order_by="OperatorCertification.issued_date",
    )

    @property
    def average_production_rate(self):
        """Linear feet per hour worked, or None before any hours are logged."""
        hours = float(self.hours_worked or 0)
        if hours <= 0:
            return None
        return round(float(self.linear_feet_cut or 0) / hours, 2)

    def to_dict(self, include_rate: bool = False) -> dict:
        result = {
            "id": self.id,
            "user_id": self.user_id,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "hire_date": iso(self.hire_date),
            "is_active": self.is_active,
            "skill_levels": self.skill_levels or {},
            "equipment_qualifications": self.equipment_qualifications or {},
            "certifications": [c.to_dict() for c in self.certifications],
            "metrics": {
                "jobs_completed": self.jobs_completed,
                "revenue_generated": str(self.revenue_generated or 0),
                "hours_worked": str(self.hours_worked or 0),
                "linear_feet_cut": str(self.linear_feet_cut or 0),
                "average_production_rate": self.average_production_rate,
            },
            "ratings": {
                "overall": self.avg_overall_rating,
                "cleanliness": self.avg_cleanliness_rating,
                "communication": self.avg_communication_rating,
                "total_ratings_received": self.total_ratings_received,
            },
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if include_rate:
            result["hourly_rate"] = str(self.hourly_rate) if self.hourly_rate is not None else None
        return result

    def __repr__(self) -> str:
        return f"<OperatorProfile #{self.id} {self.full_name}>"


class OperatorCertification(db.Model):
    __tablename__ = "operator_certifications"

    id = db.Column(db.Integer, primary_key=True)
    operator_id = db.Column(
        db.Integer,
        db.ForeignKey("operator_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    issued_date = db.Column(db.Date, nullable=False)
    expiry_date = db.Column(db.Date, nullable=True)
    document_key = db.Column(db.String(500), nullable=True)
    document_filename = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "operator_id": self.operator_id,
            "name": self.name,
            "issued_date": iso(self.issued_date),
            "expiry_date": iso(self.expiry_date),
            "document_key": self.document_key,
            "document_filename": self.document_filename,
        }
