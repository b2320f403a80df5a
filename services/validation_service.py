import re
from datetime import date, datetime, time

import pytz

from backend.errors import ValidationError


def parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ["1", "true", "yes", "on"]


def parse_int(value, default=None):
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_time_str(val):
    """Parse a strict 24h HH:MM string into a time object; return None on failure."""
    if not val:
        return None
    if isinstance(val, time):
        return val
    m = re.fullmatch(r"(?P<hour>\d{2}):(?P<minute>\d{2})", str(val).strip())
    if not m:
        return None
    hour = int(m.group("hour"))
    minute = int(m.group("minute"))
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return time(hour=hour, minute=minute)


def parse_timestamp(raw):
    """Parse an ISO 8601 instant into a naive UTC datetime; return None on failure.

    Values without an offset are taken as UTC. A bare date is midnight UTC.
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        value = raw
    elif isinstance(raw, date):
        return datetime.combine(raw, time())
    else:
        text = str(raw).strip()
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except (TypeError, ValueError):
            return None
    if value.tzinfo is not None:
        value = value.astimezone(pytz.UTC).replace(tzinfo=None)
    return value


def format_timestamp(value):
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(pytz.UTC).replace(tzinfo=None)
    return value.isoformat() + "Z"


def parse_day_value(raw):
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    try:
        return datetime.strptime(str(raw), "%Y-%m-%d").date()
    except (TypeError, ValueError):
        pass
    value = parse_timestamp(raw)
    return value.date() if value else None


def require_choice(value, allowed, key, label=None):
    if value not in allowed:
        raise ValidationError(f"Invalid {label or key}: {value}", field=key)
    return value
