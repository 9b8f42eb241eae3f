"""
Persisted orphan scans.

A scan records the orphan id set found at detection time. Cleanup only
ever deletes ids from a stored, pending scan.

Lifecycle:
    pending → executed
"""

from fieldops.models import db, iso, utcnow


class OrphanScan(db.Model):
    __tablename__ = "orphan_scans"

    id = db.Column(db.Integer, primary_key=True)
    orphan_set = db.Column(
        db.JSON, default=dict,
        comment="{collection: [child ids]} found at scan time",
    )
    total_orphans = db.Column(db.Integer, nullable=False, default=0)
    check_errors = db.Column(db.JSON, default=dict)
    status = db.Column(db.String(20), nullable=False, default="pending", comment="pending | executed")
    scanned_by = db.Column(db.String(64), nullable=True)
    scanned_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    executed_by = db.Column(db.String(64), nullable=True)
    executed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cleanup_result = db.Column(db.JSON, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "orphan_set": self.orphan_set or {},
            "total_orphans": self.total_orphans,
            "check_errors": self.check_errors or {},
            "status": self.status,
            "scanned_by": self.scanned_by,
            "scanned_at": iso(self.scanned_at),
            "executed_by": self.executed_by,
            "executed_at": iso(self.executed_at),
            "cleanup_result": self.cleanup_result,
        }
