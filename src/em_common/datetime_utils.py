"""UTC datetime utilities."""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def hours_from_now(hours: int, now: datetime | None = None) -> datetime:
    return (now or utc_now()) + timedelta(hours=hours)


def minutes_from_now(minutes: int, now: datetime | None = None) -> datetime:
    return (now or utc_now()) + timedelta(minutes=minutes)


def compact_timestamp(moment: datetime) -> str:
    """Gateway wire format: 2026-10-19T08:05:09 -> '20261019080509'."""
    return moment.astimezone(timezone.utc).strftime("%Y%m%d%H%M%S")
