"""
CarbonProfile persistence and the pure streak state machine.

These helpers run inside an ``owner_transaction``; they never open sessions
of their own.
"""
from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ecotrack.core.config import settings
from ecotrack.core.database import carbon_profiles
from ecotrack.core.datetime_utils import ensure_utc, utc_now
from ecotrack.core.errors import NotFoundError
from ecotrack.features.aggregation.reducers import carbon_saved
from ecotrack.models.ledger import CarbonProfile


def advance_streak(
    streak_days: int, longest: int, last_active: Optional[date], day: date
) -> Tuple[int, int, Optional[date]]:
    """
    Next (streak_days, longest_streak, last_active_day) after activity on ``day``.

    Next calendar day extends the streak, the same day leaves it alone, and a
    gap restarts it at 1. Days before ``last_active`` are backfill and leave
    the streak untouched.
    """
    if last_active is None:
        streak_days = 1
        last_active = day
    elif day == last_active:
        pass
    elif day == last_active + timedelta(days=1):
        streak_days += 1
        last_active = day
    elif day > last_active:
        streak_days = 1
        last_active = day
    return streak_days, max(longest, streak_days), last_active


def row_to_profile(row) -> CarbonProfile:
    return CarbonProfile(
        owner_id=row.owner_id,
        total_impact=Decimal(row.total_impact),
        total_saved=Decimal(row.total_saved),
        activities_logged=row.activities_logged,
        streak_days=row.streak_days,
        longest_streak=row.longest_streak,
        last_active_day=row.last_active_day,
        time_zone=row.time_zone,
        weekly_goal=Decimal(row.weekly_goal),
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
    )


def load_profile(session: Session, owner_id: str) -> CarbonProfile:
    row = session.execute(
        select(carbon_profiles).where(carbon_profiles.c.owner_id == owner_id)
    ).first()
    if row is None:
        raise NotFoundError(f"Profile for {owner_id} not found")
    return row_to_profile(row)


def load_profile_or_default(session: Session, owner_id: str) -> CarbonProfile:
    """Read-path variant: owners who never wrote anything get an unsaved blank profile."""
    row = session.execute(
        select(carbon_profiles).where(carbon_profiles.c.owner_id == owner_id)
    ).first()
    if row is not None:
        return row_to_profile(row)
    now = utc_now()
    return CarbonProfile(
        owner_id=owner_id,
        total_impact=Decimal("0"),
        total_saved=Decimal("0"),
        activities_logged=0,
        streak_days=0,
        longest_streak=0,
        last_active_day=None,
        time_zone=settings.DEFAULT_TIME_ZONE,
        weekly_goal=settings.DEFAULT_WEEKLY_GOAL_KG,
        created_at=now,
        updated_at=now,
    )


def apply_entry(session: Session, profile: CarbonProfile, impact: Decimal, day: date) -> None:
    """Add one entry's contribution and move the streak."""
    streak, longest, last_active = advance_streak(
        profile.streak_days, profile.longest_streak, profile.last_active_day, day
    )
    session.execute(
        update(carbon_profiles)
        .where(carbon_profiles.c.owner_id == profile.owner_id)
        .values(
            total_impact=profile.total_impact + impact,
            total_saved=profile.total_saved + carbon_saved(impact),
            activities_logged=profile.activities_logged + 1,
            streak_days=streak,
            longest_streak=longest,
            last_active_day=last_active,
            updated_at=utc_now(),
        )
    )


def reverse_entry(session: Session, profile: CarbonProfile, impact: Decimal) -> None:
    """Remove one entry's contribution; streak state is left as it is."""
    session.execute(
        update(carbon_profiles)
        .where(carbon_profiles.c.owner_id == profile.owner_id)
        .values(
            total_impact=profile.total_impact - impact,
            total_saved=profile.total_saved - carbon_saved(impact),
            activities_logged=max(0, profile.activities_logged - 1),
            updated_at=utc_now(),
        )
    )
