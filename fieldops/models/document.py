"""Metadata for every PDF persisted to the document store."""

from fieldops.models import db, iso, utcnow

DOCUMENT_KINDS = ("silica_plan", "completion_agreement", "liability_release")


class GeneratedDocument(db.Model):
    __tablename__ = "generated_documents"

    id = db.Column(db.Integer, primary_key=True)
    job_order_id = db.Column(db.Integer, nullable=False, index=True)
    kind = db.Column(db.String(40), nullable=False)
    storage_key = db.Column(db.String(500), nullable=False)
    filename = db.Column(db.String(255), nullable=False)
    content_type = db.Column(db.String(100), nullable=False, default="application/pdf")
    size_bytes = db.Column(db.Integer, nullable=False)
    sha256 = db.Column(db.String(64), nullable=False)
    generated_by = db.Column(db.String(64), nullable=True)
    generated_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "job_order_id": self.job_order_id,
            "kind": self.kind,
            "storage_key": self.storage_key,
            "filename": self.filename,
            "content_type": self.content_type,
            "size_bytes": self.size_bytes,
            "sha256": self.sha256,
            "generated_by": self.generated_by,
            "generated_at": iso(self.generated_at),
        }
