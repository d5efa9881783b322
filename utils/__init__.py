"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, assume_utc, to_local, calendar_day
