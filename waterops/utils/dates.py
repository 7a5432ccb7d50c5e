import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional, Tuple

from waterops.errors import DateRangeError

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt_input: datetime) -> datetime:
    """Force timezone awareness (naive values are assumed to be UTC)."""
    if dt_input.tzinfo is None:
        return dt_input.replace(tzinfo=timezone.utc)
    return dt_input.astimezone(timezone.utc)


def normalize_utc_midnight(dt_input: datetime) -> datetime:
    """
    Normalizes a timestamp to 00:00:00 UTC (Midnight).
    Used as the grouping key for anything "per calendar day".
    """
    return ensure_utc(dt_input).replace(hour=0, minute=0, second=0, microsecond=0)


def day_bounds(dt_input: datetime) -> Tuple[datetime, datetime]:
    """Returns the half-open UTC day ``[midnight, next midnight)`` containing dt_input."""
    start = normalize_utc_midnight(dt_input)
    return start, start + timedelta(days=1)


def parse_datetime(value: Any, end_of_day: bool = False) -> Optional[datetime]:
    """
    Parses an ISO-8601 string (or passes a datetime through) into an aware UTC datetime.

    Args:
        value: ISO string, ``YYYY-MM-DD`` date, datetime, or None/empty.
        end_of_day: For date-only strings, resolve to the last instant of
            that day instead of midnight, so an inclusive end date covers
            the whole day.

    Raises:
        DateRangeError: if the value cannot be parsed.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return ensure_utc(value)

    if isinstance(value, date):
        value = value.isoformat()

    if not isinstance(value, str):
        raise DateRangeError(f"Invalid date value: {value!r}")

    raw = value.strip()
    try:
        if _DATE_ONLY.match(raw):
            day = date.fromisoformat(raw)
            moment = time.max if end_of_day else time.min
            return datetime.combine(day, moment, tzinfo=timezone.utc)
        # Handle 'Z' for UTC if present
        return ensure_utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    except ValueError:
        raise DateRangeError(f"Invalid date value: {value!r}")


def check_range(start: Optional[datetime], end: Optional[datetime]) -> None:
    if start is not None and end is not None and end < start:
        raise DateRangeError(
            "endDate must not be before startDate",
            context={"startDate": start.isoformat(), "endDate": end.isoformat()},
        )
