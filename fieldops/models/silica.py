"""
Silica Exposure Plan — OSHA compliance form, at most one per job order.

The unique constraint on ``job_order_id`` is the authoritative guard; the
submission guard's existence check only saves a round-trip.
"""

from fieldops.models import db, iso, utcnow

SILICA_WORK_TYPES = (
    "Hand Saw or Chain Saw",
    "Core Drilling",
    "Wall Sawing or Wire Sawing",
    "Slab Sawing",
    "Jack Hammer",
)
WORK_LOCATIONS = ("indoor", "outdoor")
CUTTING_TIME_BUCKETS = ("Less than 4 Hours", "More than 4 Hours")
APF10_ANSWERS = ("Yes", "No", "N/A")


class SilicaExposurePlan(db.Model):
    __tablename__ = "silica_exposure_plans"

    id = db.Column(db.Integer, primary_key=True)
    job_order_id = db.Column(
        db.Integer,
        db.ForeignKey("job_orders.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    employee_name = db.Column(db.String(200), nullable=False)
    employee_phone = db.Column(db.String(50), nullable=True)
    employees_on_job = db.Column(db.JSON, default=list, comment="Roster of names")
    work_types = db.Column(db.JSON, default=list)
    water_delivery_integrated = db.Column(db.Boolean, nullable=False, default=False)
    work_location = db.Column(db.String(20), nullable=False, comment="indoor | outdoor")
    cutting_time = db.Column(db.String(40), nullable=False)
    apf10_required = db.Column(db.String(10), nullable=False, comment="Yes | No | N/A")
    other_safety_concerns = db.Column(db.Text, nullable=True)
    signature = db.Column(db.Text, nullable=False)
    signature_date = db.Column(db.Date, nullable=False)
    submitted_by = db.Column(db.String(64), nullable=True)
    submitted_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "job_order_id": self.job_order_id,
            "employee_name": self.employee_name,
            "employee_phone": self.employee_phone,
            "employees_on_job": self.employees_on_job or [],
            "work_types": self.work_types or [],
            "water_delivery_integrated": self.water_delivery_integrated,
            "work_location": self.work_location,
            "cutting_time": self.cutting_time,
            "apf10_required": self.apf10_required,
            "other_safety_concerns": self.other_safety_concerns,
            "signature_date": iso(self.signature_date),
            "submitted_by": self.submitted_by,
            "submitted_at": iso(self.submitted_at),
        }

    def __repr__(self) -> str:
        return f"<SilicaExposurePlan job={self.job_order_id}>"
