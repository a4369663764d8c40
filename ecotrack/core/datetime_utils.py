"""
Centralized datetime handling.

Timestamps are stored and compared as aware UTC datetimes; calendar questions
(which day, which week) are answered in an owner's IANA time zone.
"""
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ecotrack.core.errors import ValidationError


def utc_now() -> datetime:
    """Single source of truth for "now"."""
    return datetime.now(timezone.utc)


def ensure_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC (SQLite drops tzinfo) and convert aware ones."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def optional_utc(moment: Optional[datetime]) -> Optional[datetime]:
    return ensure_utc(moment) if moment is not None else None


def resolve_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown time zone: {name}")


def local_day(moment: datetime, zone: ZoneInfo) -> date:
    """Calendar day of ``moment`` as seen in ``zone``."""
    return ensure_utc(moment).astimezone(zone).date()


def format_for_api(moment: Optional[datetime]) -> Optional[str]:
    if moment is None:
        return None
    return ensure_utc(moment).isoformat()
