"""
Half-open aggregation windows built on local calendar boundaries.

A window is ``[start, end)`` in UTC, where both ends are local midnights of the
owner's time zone, so a daily window is exactly one calendar day even across
DST changes.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Literal, Union
from zoneinfo import ZoneInfo

from ecotrack.core.datetime_utils import ensure_utc, local_day, resolve_zone
from ecotrack.core.errors import ValidationError

Period = Literal["daily", "weekly", "monthly"]
PERIODS = ("daily", "weekly", "monthly")

ZoneLike = Union[str, ZoneInfo]


def as_zone(zone: ZoneLike) -> ZoneInfo:
    return zone if isinstance(zone, ZoneInfo) else resolve_zone(zone)


@dataclass(frozen=True)
class Window:
    start: datetime
    end: datetime
    zone: ZoneInfo

    def contains(self, moment: datetime) -> bool:
        return self.start <= ensure_utc(moment) < self.end

    def days(self) -> List[date]:
        """Every local calendar day the window touches, in order."""
        first = local_day(self.start, self.zone)
        last = local_day(self.end - timedelta(microseconds=1), self.zone)
        return [first + timedelta(days=i) for i in range((last - first).days + 1)]


def local_midnight(day: date, zone: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=zone).astimezone(timezone.utc)


def make_window(start: datetime, end: datetime, zone: ZoneLike = "UTC") -> Window:
    start_utc, end_utc = ensure_utc(start), ensure_utc(end)
    if start_utc >= end_utc:
        raise ValidationError("Window start must be before window end")
    return Window(start=start_utc, end=end_utc, zone=as_zone(zone))


def daily_window(day: date, zone: ZoneLike = "UTC") -> Window:
    tz = as_zone(zone)
    return Window(local_midnight(day, tz), local_midnight(day + timedelta(days=1), tz), tz)


def weekly_window(day: date, zone: ZoneLike = "UTC", week_start: int = 0) -> Window:
    """Seven local days starting on the most recent ``week_start`` weekday (monday == 0)."""
    if not 0 <= week_start <= 6:
        raise ValidationError(f"week_start must be 0-6, got {week_start}")
    tz = as_zone(zone)
    anchor = day - timedelta(days=(day.weekday() - week_start) % 7)
    return Window(local_midnight(anchor, tz), local_midnight(anchor + timedelta(days=7), tz), tz)


def monthly_window(day: date, zone: ZoneLike = "UTC") -> Window:
    tz = as_zone(zone)
    first = day.replace(day=1)
    if first.month == 12:
        following = first.replace(year=first.year + 1, month=1)
    else:
        following = first.replace(month=first.month + 1)
    return Window(local_midnight(first, tz), local_midnight(following, tz), tz)


def period_window(period: str, now: datetime, zone: ZoneLike = "UTC", week_start: int = 0) -> Window:
    """The daily/weekly/monthly window that contains ``now``."""
    tz = as_zone(zone)
    today = local_day(now, tz)
    if period == "daily":
        return daily_window(today, tz)
    if period == "weekly":
        return weekly_window(today, tz, week_start)
    if period == "monthly":
        return monthly_window(today, tz)
    raise ValidationError(f"Unknown period {period!r}; expected one of {', '.join(PERIODS)}")
