"""Authenticated sessions issued to admins and operators."""

from fieldops.models import db, iso, utcnow

ROLES = ("admin", "operator")


class UserSession(db.Model):
    """One bearer-token session, identified by the token's ``jti``."""

    __tablename__ = "user_sessions"

    id = db.Column(db.Integer, primary_key=True)
    jti = db.Column(db.String(64), unique=True, nullable=False)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    role = db.Column(db.String(20), nullable=False, comment="admin | operator")
    issued_by = db.Column(db.String(64), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(500), nullable=True)
    started_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    ended_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def is_active(self) -> bool:
        return self.ended_at is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "role": self.role,
            "started_at": iso(self.started_at),
            "expires_at": iso(self.expires_at),
            "ended_at": iso(self.ended_at),
        }
