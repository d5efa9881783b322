"""UTC-everywhere time handling. Eliminates timezone bugs at the source."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere. Services take it as
    their default clock so tests can pass a fixed one.
    """
    return datetime.now(timezone.utc)


def assume_utc(dt: datetime) -> datetime:
    """
    Convert to UTC, treating a naive datetime as already being UTC.

    Only for values read back from storage, where a missing offset means
    the column was written without one.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_local(dt: datetime, tz_name: str) -> datetime:
    """
    Convert UTC datetime to local timezone for display.

    ONLY use this at display boundaries - when rendering for humans,
    or when truncating to a calendar day (see calendar_day).
    All internal operations should remain in UTC.

    Args:
        dt: UTC datetime
        tz_name: IANA timezone name (e.g., "Europe/Zurich")

    Raises:
        ValueError: If datetime is naive or timezone name is invalid
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime. Datetime must be timezone-aware."
        )

    try:
        local_tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {tz_name}")

    return dt.astimezone(local_tz)


def calendar_day(dt: datetime, tz_name: str = "UTC") -> date:
    """
    The calendar date of a moment as seen in a single time zone.

    Due dates are compared by day, so both sides must be truncated in the
    same zone. Naive datetimes are taken as UTC.
    """
    return to_local(assume_utc(dt), tz_name).date()

