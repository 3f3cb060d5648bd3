import re
from datetime import datetime, date, time as dtime

from errors import ValidationError

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def now_local(tz):
    return datetime.now(tz)


def local_clock(tz):
    """Zero-arg clock returning aware 'now' in ``tz``."""
    return lambda: now_local(tz)


def parse_hhmm(value):
    m = _HHMM.match(value or "")
    if not m:
        raise ValidationError(f"{value!r} must be in HH:MM format")
    return dtime(int(m.group(1)), int(m.group(2)))


def parse_date(value, field="date"):
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be YYYY-MM-DD, got {value!r}")
