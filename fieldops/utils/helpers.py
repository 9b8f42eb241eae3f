"""Shared parsing and lookup helpers for services and blueprints.

get_or_raise:    primary-key lookup that raises NotFoundError
parse_date:      lenient date parsing (None on bad input)
parse_datetime:  ISO-8601 timestamp parsing, naive values assumed UTC
parse_decimal:   money/quantity parsing that raises ValidationError
clean_str:       optional free-text field, stripped; non-strings rejected
parse_bool:      strict JSON boolean flag
as_utc:          normalise DB datetimes (SQLite drops tzinfo)
"""
import logging
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation

from fieldops.core.exceptions import NotFoundError, ValidationError
from fieldops.models import db

logger = logging.getLogger(__name__)


def get_or_raise(model, pk, label=None):
    """Fetch a model instance by primary key or raise NotFoundError."""
    obj = db.session.get(model, pk)
    if obj is None:
        raise NotFoundError(resource=label or model.__name__, resource_id=pk)
    return obj


def parse_date(value):
    """Parse a date string (ISO or MM/DD/YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - MM/DD/YYYY (US field-sheet format)
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%m/%d/%Y").date()
    except (ValueError, TypeError):
        return None


def parse_datetime(value, field: str = "timestamp"):
    """Parse an ISO-8601 timestamp; naive values are taken as UTC.

    Returns None for empty input, raises ValidationError for garbage.
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(text))
    except ValueError as exc:
        raise ValidationError(
            f"{field} must be an ISO-8601 timestamp", details={field: "invalid"}
        ) from exc


def parse_decimal(value, field: str, *, allow_none: bool = True, minimum=None):
    """Parse a decimal value for money/quantity fields."""
    if value in (None, ""):
        if allow_none:
            return None
        raise ValidationError(f"{field} is required", details={field: "required"})
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"{field} must be a number", details={field: "invalid"}) from exc
    if not number.is_finite():
        raise ValidationError(f"{field} must be a number", details={field: "invalid"})
    if minimum is not None and number < Decimal(str(minimum)):
        raise ValidationError(f"{field} must be at least {minimum}", details={field: "out_of_range"})
    return number


def as_utc(value):
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_coordinates(lat, lng, *, context: str = ""):
    """Validate an optional (latitude, longitude) pair.

    Location is best effort: anything missing or out of range is dropped
    with a warning and never blocks the calling step.
    """
    if lat in (None, "") or lng in (None, ""):
        return None, None
    try:
        lat_f, lng_f = float(lat), float(lng)
    except (TypeError, ValueError):
        logger.warning("Discarding unparseable coordinates %r,%r %s", lat, lng, context)
        return None, None
    if not (-90.0 <= lat_f <= 90.0 and -180.0 <= lng_f <= 180.0):
        logger.warning("Discarding out-of-range coordinates %s,%s %s", lat_f, lng_f, context)
        return None, None
    return lat_f, lng_f


def clean_str(value, field: str) -> str:
    """Stripped text for a free-text field; ``""`` when absent.

    JSON numbers, lists and objects are rejected rather than coerced.
    """
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be text", details={field: "invalid"})
    return value.strip()


def parse_bool(value, field: str, default: bool = False) -> bool:
    """Strict boolean flag: JSON true/false, or the strings "true"/"false"."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValidationError(f"{field} must be true or false", details={field: "invalid"})
