"""
Field Operations Platform
SQLAlchemy extension instance and model registry.

Usage:
    from fieldops.models import db
    from fieldops.models.job import JobOrder
"""

from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def utcnow() -> datetime:
    """Timezone-aware UTC now, used as the column default everywhere."""
    return datetime.now(timezone.utc)


def iso(value):
    """Serialise a date/datetime (or None) for to_dict()."""
    return value.isoformat() if value is not None else None
