"""
Cost / Profitability Calculator.

    totalJobHours     = (end - start) in ms / 3 600 000
                        start = arrival_time, else scheduled_date (midnight UTC)
                        end   = completion_signed_at, else completed_at
    laborCost         = totalJobHours × hourly rate
                        (operator rate, else COST_BASE_HOURLY_RATE)
    overheadAmount    = COST_OVERHEAD_PERCENT / 100 × quotedAmount
    netProfit         = quotedAmount − laborCost − equipmentCost
                        − materialCost − overheadAmount

Standby is billed on its own line at COST_STANDBY_HOURLY_RATE with a
minimum of COST_STANDBY_MINIMUM_HOURS per job that had any standby; it is
reported next to net profit, not inside it.

Every figure is a Decimal carried at full precision; ``to_dict`` rounds to
cents (hours to two places) for display only.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal

from flask import current_app

from fieldops.models.job import JobOrder
from fieldops.models.worklog import CutSpec, HoleSpec, StandbyLog, WorkPerformedEntry
from fieldops.utils.helpers import as_utc

logger = logging.getLogger(__name__)

MS_PER_HOUR = Decimal(3_600_000)
ZERO = Decimal("0")
CENTS = Decimal("0.01")


@dataclass(frozen=True)
class CostSettings:
    base_hourly_rate: Decimal
    standby_hourly_rate: Decimal
    standby_minimum_hours: Decimal
    overhead_percent: Decimal

    @classmethod
    def from_config(cls, config) -> "CostSettings":
        return cls(
            base_hourly_rate=Decimal(str(config.get("COST_BASE_HOURLY_RATE", "0"))),
            standby_hourly_rate=Decimal(str(config.get("COST_STANDBY_HOURLY_RATE", "0"))),
            standby_minimum_hours=Decimal(str(config.get("COST_STANDBY_MINIMUM_HOURS", "0"))),
            overhead_percent=Decimal(str(config.get("COST_OVERHEAD_PERCENT", "0"))),
        )


@dataclass(frozen=True)
class CostBreakdown:
    quoted_amount: Decimal
    total_job_hours: Decimal
    hourly_rate: Decimal
    labor_cost: Decimal
    equipment_cost: Decimal
    material_cost: Decimal
    overhead_amount: Decimal
    net_profit: Decimal
    total_standby_hours: Decimal
    standby_billable_hours: Decimal
    standby_charge: Decimal
    work_entries: int = 0
    total_linear_feet: Decimal = ZERO
    total_holes: int = 0

    @property
    def profit_margin_percent(self):
        if self.quoted_amount == 0:
            return None
        return self.net_profit / self.quoted_amount * 100

    def to_dict(self) -> dict:
        def cents(value):
            return str(value.quantize(CENTS, rounding=ROUND_HALF_UP))

        margin = self.profit_margin_percent
        return {
            "quoted_amount": cents(self.quoted_amount),
            "total_job_hours": cents(self.total_job_hours),
            "hourly_rate": cents(self.hourly_rate),
            "labor_cost": cents(self.labor_cost),
            "equipment_cost": cents(self.equipment_cost),
            "material_cost": cents(self.material_cost),
            "overhead_amount": cents(self.overhead_amount),
            "net_profit": cents(self.net_profit),
            "profit_margin_percent": cents(margin) if margin is not None else None,
            "total_standby_hours": cents(self.total_standby_hours),
            "standby_billable_hours": cents(self.standby_billable_hours),
            "standby_charge": cents(self.standby_charge),
            "work_entries": self.work_entries,
            "total_linear_feet": cents(self.total_linear_feet),
            "total_holes": self.total_holes,
        }


def _dec(value) -> Decimal:
    if value is None:
        return ZERO
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _as_boundary(value):
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    return None


def elapsed_hours(start, end) -> Decimal:
    """Wall-clock hours between two timestamps; 0 if either is missing or end < start."""
    start, end = _as_boundary(start), _as_boundary(end)
    if start is None or end is None:
        return ZERO
    delta = end - start
    ms = (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000
    if ms <= 0:
        return ZERO
    return Decimal(ms) / MS_PER_HOUR


def job_hours(job) -> Decimal:
    start = job.arrival_time or job.scheduled_date
    end = job.completion_signed_at or job.completed_at
    return elapsed_hours(start, end)


def standby_hours(logs) -> Decimal:
    """Sum of completed standby durations; active logs are ignored."""
    return sum((_dec(log.duration_hours) for log in logs if log.status == "completed"), ZERO)


def compute_costs(job, standby_logs, operator_rate, settings: CostSettings, entries=()) -> CostBreakdown:
    """Pure calculation over already-loaded records."""
    quoted = _dec(job.quoted_amount)
    hours = job_hours(job)
    rate = _dec(operator_rate) if operator_rate is not None else settings.base_hourly_rate
    labor = hours * rate
    equipment = _dec(job.equipment_cost)
    material = _dec(job.material_cost)
    overhead = quoted * settings.overhead_percent / Decimal(100)
    net = quoted - labor - equipment - material - overhead

    standby = standby_hours(standby_logs)
    billable = max(standby, settings.standby_minimum_hours) if standby > 0 else ZERO
    standby_charge = billable * settings.standby_hourly_rate

    linear_feet = ZERO
    holes = 0
    for entry in entries:
        spec = entry.spec
        if isinstance(spec, CutSpec):
            linear_feet += Decimal(str(spec.total_linear_feet))
        elif isinstance(spec, HoleSpec):
            holes += spec.total_holes

    return CostBreakdown(
        quoted_amount=quoted,
        total_job_hours=hours,
        hourly_rate=rate,
        labor_cost=labor,
        equipment_cost=equipment,
        material_cost=material,
        overhead_amount=overhead,
        net_profit=net,
        total_standby_hours=standby,
        standby_billable_hours=billable,
        standby_charge=standby_charge,
        work_entries=len(entries),
        total_linear_feet=linear_feet,
        total_holes=holes,
    )


def costs_for_job(job: JobOrder, settings: CostSettings | None = None) -> CostBreakdown:
    """Load a job's children and compute its breakdown."""
    settings = settings or CostSettings.from_config(current_app.config)
    standby_logs = StandbyLog.query.filter_by(job_order_id=job.id).all()
    entries = WorkPerformedEntry.query.filter_by(job_order_id=job.id).all()
    operator_rate = job.assigned_operator.hourly_rate if job.assigned_operator else None
    if operator_rate is None:
        logger.debug("Job %s has no operator rate; using base rate", job.id)
    return compute_costs(job, standby_logs, operator_rate, settings, entries)


def job_costs(ctx, job_id: int) -> dict:
    """Admin view of a job's profitability."""
    from fieldops.services.job_service import get_job

    ctx.require_admin("cost reporting")
    job = get_job(ctx, job_id)
    breakdown = costs_for_job(job)
    return {
        "job_id": job.id,
        "job_number": job.job_number,
        "status": job.status,
        "is_final": job.is_completed,
        "costs": breakdown.to_dict(),
    }
