"""
On-site work records attached to a job order.

    WorkPerformedEntry  itemised labour/material line, append-only while in progress
    StandbyLog          non-productive waiting time (active | completed)
    WorkDraft           server-side draft of work items, one per (job, operator)

Work-performed ``details`` are a tagged variant. ``details_kind`` is the
discriminator and ``details`` holds the matching spec serialised as JSON:

    hole     → HoleSpec(holes=[{quantity, diameter_in, depth_in}], equipment=[...])
    cut      → CutSpec(cuts=[{linear_feet, depth_in, cut_type}], equipment=[...])
    general  → GeneralSpec(duration_hours, equipment=[...])
"""

import math
from dataclasses import asdict, dataclass, field
from decimal import Decimal, InvalidOperation

from fieldops.core.exceptions import ValidationError
from fieldops.models import db, iso, utcnow
from fieldops.utils.helpers import clean_str

STANDBY_STATUSES = ("active", "completed")
DETAIL_KINDS = ("hole", "cut", "general")


# ── Work-performed detail variants ───────────────────────────────────────────


def _non_negative(value, label: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be a number", details={label: "invalid"})
    try:
        number = float(Decimal(str(value)))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValidationError(f"{label} must be a number", details={label: "invalid"}) from exc
    # Non-finite values would poison the operator totals at completion
    if not math.isfinite(number):
        raise ValidationError(f"{label} must be a number", details={label: "invalid"})
    if number < 0:
        raise ValidationError(f"{label} cannot be negative", details={label: "negative"})
    return number


def _require_mapping(row, label: str) -> None:
    if not isinstance(row, dict):
        raise ValidationError(f"Each {label} row must be an object", details={label: "invalid"})


def _equipment(raw) -> list[str]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("equipment must be a list", details={"equipment": "invalid"})
    return [str(item).strip() for item in raw if str(item).strip()]


@dataclass(frozen=True)
class HoleSpec:
    """Core-drilled holes: one row per (diameter, depth) group."""

    holes: list = field(default_factory=list)
    equipment: list = field(default_factory=list)
    kind: str = "hole"

    @classmethod
    def from_dict(cls, data: dict) -> "HoleSpec":
        rows = data.get("holes")
        if not rows or not isinstance(rows, list):
            raise ValidationError("Hole details need at least one hole row", details={"holes": "required"})
        holes = []
        for row in rows:
            _require_mapping(row, "holes")
            quantity = int(_non_negative(row.get("quantity", 0), "quantity"))
            if quantity == 0:
                raise ValidationError("Hole quantity must be at least 1", details={"quantity": "required"})
            holes.append({
                "quantity": quantity,
                "diameter_in": _non_negative(row.get("diameter_in", 0), "diameter_in"),
                "depth_in": _non_negative(row.get("depth_in", 0), "depth_in"),
            })
        return cls(holes=holes, equipment=_equipment(data.get("equipment")))

    @property
    def total_holes(self) -> int:
        return sum(h["quantity"] for h in self.holes)

    @property
    def total_inches(self) -> float:
        return sum(h["quantity"] * h["depth_in"] for h in self.holes)

    def summary(self) -> str:
        parts = [
            f'{h["quantity"]} x {h["diameter_in"]:g}" dia @ {h["depth_in"]:g}" deep'
            for h in self.holes
        ]
        return "; ".join(parts)


@dataclass(frozen=True)
class CutSpec:
    """Linear cuts (wall, slab, hand saw)."""

    cuts: list = field(default_factory=list)
    equipment: list = field(default_factory=list)
    kind: str = "cut"

    @classmethod
    def from_dict(cls, data: dict) -> "CutSpec":
        rows = data.get("cuts")
        if not rows or not isinstance(rows, list):
            raise ValidationError("Cut details need at least one cut row", details={"cuts": "required"})
        cuts = []
        for row in rows:
            _require_mapping(row, "cuts")
            cuts.append({
                "linear_feet": _non_negative(row.get("linear_feet", 0), "linear_feet"),
                "depth_in": _non_negative(row.get("depth_in", 0), "depth_in"),
                "cut_type": clean_str(row.get("cut_type"), "cut_type") or None,
            })
        return cls(cuts=cuts, equipment=_equipment(data.get("equipment")))

    @property
    def total_linear_feet(self) -> float:
        return sum(c["linear_feet"] for c in self.cuts)

    def summary(self) -> str:
        parts = []
        for c in self.cuts:
            text = f'{c["linear_feet"]:g} LF @ {c["depth_in"]:g}" deep'
            if c["cut_type"]:
                text += f' ({c["cut_type"]})'
            parts.append(text)
        return "; ".join(parts)


@dataclass(frozen=True)
class GeneralSpec:
    """Anything that is neither drilling nor linear cutting: demo, haul-off, setup."""

    duration_hours: float = 0.0
    equipment: list = field(default_factory=list)
    kind: str = "general"

    @classmethod
    def from_dict(cls, data: dict) -> "GeneralSpec":
        return cls(
            duration_hours=_non_negative(data.get("duration_hours", 0), "duration_hours"),
            equipment=_equipment(data.get("equipment")),
        )

    def summary(self) -> str:
        text = f"{self.duration_hours:g} h" if self.duration_hours else ""
        if self.equipment:
            text = (text + " using " if text else "Using ") + ", ".join(self.equipment)
        return text


_DETAIL_TYPES = {"hole": HoleSpec, "cut": CutSpec, "general": GeneralSpec}


def parse_details(kind: str, data: dict | None):
    """Build the detail variant for ``kind``; raises ValidationError on bad input."""
    if kind not in _DETAIL_TYPES:
        raise ValidationError(
            f"details_kind must be one of {', '.join(DETAIL_KINDS)}",
            details={"details_kind": "invalid"},
        )
    return _DETAIL_TYPES[kind].from_dict(data or {})


def details_to_json(spec) -> dict:
    payload = asdict(spec)
    payload.pop("kind", None)
    return payload


# ── Models ───────────────────────────────────────────────────────────────────


class WorkPerformedEntry(db.Model):
    """One itemised unit of work recorded on site."""

    __tablename__ = "work_performed_entries"

    id = db.Column(db.Integer, primary_key=True)
    job_order_id = db.Column(db.Integer, nullable=False, index=True)
    operator_user_id = db.Column(db.String(64), nullable=True)
    item_name = db.Column(db.String(200), nullable=False)
    quantity = db.Column(db.Numeric(10, 2), nullable=False, default=1)
    notes = db.Column(db.Text, nullable=True)
    details_kind = db.Column(
        db.String(20), nullable=False, default="general",
        comment="hole | cut | general",
    )
    details = db.Column(db.JSON, default=dict)
    work_date = db.Column(db.Date, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    @property
    def spec(self):
        """Rehydrated detail variant (HoleSpec | CutSpec | GeneralSpec)."""
        cls = _DETAIL_TYPES.get(self.details_kind, GeneralSpec)
        data = dict(self.details or {})
        if cls is HoleSpec:
            return HoleSpec(holes=data.get("holes", []), equipment=data.get("equipment", []))
        if cls is CutSpec:
            return CutSpec(cuts=data.get("cuts", []), equipment=data.get("equipment", []))
        return GeneralSpec(
            duration_hours=float(data.get("duration_hours") or 0),
            equipment=data.get("equipment", []),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "job_order_id": self.job_order_id,
            "operator_user_id": self.operator_user_id,
            "item_name": self.item_name,
            "quantity": str(self.quantity) if self.quantity is not None else None,
            "notes": self.notes,
            "details_kind": self.details_kind,
            "details": self.details or {},
            "work_date": iso(self.work_date),
            "created_at": iso(self.created_at),
        }


class StandbyLog(db.Model):
    """Billable on-site waiting time."""

    __tablename__ = "standby_logs"

    id = db.Column(db.Integer, primary_key=True)
    job_order_id = db.Column(db.Integer, nullable=False, index=True)
    operator_user_id = db.Column(db.String(64), nullable=True)
    started_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    ended_at = db.Column(db.DateTime(timezone=True), nullable=True)
    duration_hours = db.Column(db.Numeric(10, 4), nullable=True)
    reason = db.Column(db.String(500), nullable=False)
    client_name = db.Column(db.String(200), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="active", comment="active | completed")
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        db.CheckConstraint("status IN ('active','completed')", name="ck_standby_logs_status"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "job_order_id": self.job_order_id,
            "operator_user_id": self.operator_user_id,
            "started_at": iso(self.started_at),
            "ended_at": iso(self.ended_at),
            "duration_hours": str(self.duration_hours) if self.duration_hours is not None else None,
            "reason": self.reason,
            "client_name": self.client_name,
            "notes": self.notes,
            "status": self.status,
        }


class WorkDraft(db.Model):
    """Unsaved work-performed items held for an operator between visits."""

    __tablename__ = "work_drafts"

    id = db.Column(db.Integer, primary_key=True)
    job_order_id = db.Column(db.Integer, nullable=False)
    operator_user_id = db.Column(db.String(64), nullable=False)
    items = db.Column(db.JSON, default=list)
    notes = db.Column(db.Text, nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.UniqueConstraint("job_order_id", "operator_user_id", name="uq_work_draft_job_operator"),
    )

    def to_dict(self) -> dict:
        return {
            "job_order_id": self.job_order_id,
            "operator_user_id": self.operator_user_id,
            "items": self.items or [],
            "notes": self.notes,
            "updated_at": iso(self.updated_at),
        }
