"""DateTime utilities for decoding remote timestamps.

Remote responses carry ISO-8601 strings. The remote engine is not strict
about the separator (``T`` or a space), about fractional second precision,
or about including an offset, so parsing is normalized here and made
independent of the local machine's timezone.
"""

import re
from datetime import date, datetime, timezone, tzinfo
from typing import Optional, Union

import pytz

_ISO_TIMESTAMP = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})"
    r"(?:[T ](?P<time>\d{2}:\d{2}(?::\d{2})?)(?:\.(?P<fraction>\d+))?)?"
    r"\s*(?P<offset>Z|z|UTC|[+-]\d{2}(?::?\d{2})?)?$"
)


def resolve_timezone(name: Optional[str]) -> tzinfo:
    """Return the tzinfo for a pytz zone name, defaulting to UTC."""
    if not name or name.upper() == "UTC":
        return pytz.utc
    return pytz.timezone(name)


def parse_timestamp(value: str, assume_tz: Optional[tzinfo] = None) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC ``datetime``.

    Args:
        value: Timestamp text, e.g. ``2023-01-01T00:00:00Z`` or
            ``2023-01-01 00:00:00.000``.
        assume_tz: Zone assumed when the text carries no offset. Defaults to UTC.

    Returns:
        Timezone-aware datetime normalized to UTC

    Raises:
        ValueError: If the text is not an ISO-8601 timestamp
    """
    match = _ISO_TIMESTAMP.match(value.strip())
    if not match:
        raise ValueError(f"Invalid ISO-8601 timestamp: {value!r}")

    time_part = match.group("time") or "00:00:00"
    if time_part.count(":") == 1:
        time_part += ":00"
    fraction = (match.group("fraction") or "")[:6].ljust(6, "0")
    naive = datetime.fromisoformat(f"{match.group('date')}T{time_part}.{fraction}")

    offset = match.group("offset")
    if offset and offset.upper() not in ("Z", "UTC"):
        sign = 1 if offset[0] == "+" else -1
        digits = offset[1:].replace(":", "")
        hours, minutes = int(digits[:2]), int(digits[2:4] or 0)
        tz = pytz.FixedOffset(sign * (hours * 60 + minutes))
        aware = tz.localize(naive)
    elif offset:
        aware = naive.replace(tzinfo=timezone.utc)
    else:
        tz = assume_tz or pytz.utc
        aware = tz.localize(naive) if hasattr(tz, "localize") else naive.replace(tzinfo=tz)

    return aware.astimezone(timezone.utc)


def parse_date(value: Union[str, date]) -> date:
    """Parse the date portion of an ISO-8601 date or timestamp string.

    Raises:
        TypeError: If ``value`` is neither text nor a date
        ValueError: If the text does not start with an ISO-8601 date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise TypeError(f"Expected an ISO-8601 date string, got {type(value).__name__}")
    text = value.strip()
    return date.fromisoformat(text[:10])


def format_timestamp(value: datetime) -> str:
    """Render a datetime as an ISO-8601 UTC string with a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    utc = value.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
