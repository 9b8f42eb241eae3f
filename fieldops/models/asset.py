"""
Blade / bit inventory.

Lifecycle:
    active → retired   (terminal)

Usage counters only grow while a blade is active. Core bits track inches
drilled and hole count; every other type tracks linear feet.
"""

from fieldops.models import db, iso, utcnow

BLADE_TYPES = ("wall_saw", "hand_saw", "slab_saw", "chainsaw", "core_bit")
BLADE_STATUSES = ("active", "retired")

BLADE_TRANSITIONS = {
    "active":  ["retired"],
    "retired": [],
}


def validate_blade_transition(old_status, new_status):
    """Return True if Blade status transition is valid."""
    return new_status in BLADE_TRANSITIONS.get(old_status, [])


class Blade(db.Model):
    __tablename__ = "blades"

    id = db.Column(db.Integer, primary_key=True)
    blade_type = db.Column(db.String(20), nullable=False)
    brand = db.Column(db.String(100), nullable=False)
    size = db.Column(db.String(50), nullable=True)
    serial_number = db.Column(db.String(100), unique=True, nullable=False)
    purchase_date = db.Column(db.Date, nullable=True)
    purchase_cost = db.Column(db.Numeric(10, 2), nullable=True, comment="Admin-only")
    status = db.Column(db.String(20), nullable=False, default="active", comment="active | retired")

    assigned_operator_id = db.Column(
        db.Integer,
        db.ForeignKey("operator_profiles.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    total_linear_feet = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_inches = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    holes_count = db.Column(db.Integer, nullable=False, default=0)

    retired_at = db.Column(db.DateTime(timezone=True), nullable=True)
    retirement_reason = db.Column(db.String(500), nullable=True)
    retirement_photo_key = db.Column(db.String(500), nullable=True)
    retired_by = db.Column(db.String(64), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    assigned_operator = db.relationship("OperatorProfile", lazy="joined")

    __table_args__ = (
        db.CheckConstraint("status IN ('active','retired')", name="ck_blades_status"),
    )

    @property
    def is_core_bit(self) -> bool:
        return self.blade_type == "core_bit"

    @property
    def usage_amount(self) -> float:
        """Primary usage measure: inches for core bits, linear feet otherwise."""
        if self.is_core_bit:
            return float(self.total_inches or 0)
        return float(self.total_linear_feet or 0)

    def to_dict(self, include_cost: bool = False) -> dict:
        result = {
            "id": self.id,
            "blade_type": self.blade_type,
            "brand": self.brand,
            "size": self.size,
            "serial_number": self.serial_number,
            "purchase_date": iso(self.purchase_date),
            "status": self.status,
            "assigned_operator_id": self.assigned_operator_id,
            "operator_name": self.assigned_operator.full_name if self.assigned_operator else None,
            "total_linear_feet": str(self.total_linear_feet or 0),
            "total_inches": str(self.total_inches or 0),
            "holes_count": self.holes_count or 0,
            "retired_at": iso(self.retired_at),
            "retirement_reason": self.retirement_reason,
            "retirement_photo_key": self.retirement_photo_key,
            "notes": self.notes,
            "created_at": iso(self.created_at),
        }
        if include_cost:
            result["purchase_cost"] = str(self.purchase_cost) if self.purchase_cost is not None else None
        return result

    def __repr__(self) -> str:
        return f"<Blade #{self.id} {self.brand} {self.serial_number} {self.status}>"
