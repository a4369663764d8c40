from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class LedgerEntry:
    """One recorded user action with its carbon impact frozen at write time."""

    id: str
    owner_id: str
    activity_id: str
    category_id: str
    quantity: Decimal
    carbon_impact: Decimal
    occurred_at: datetime
    created_at: datetime
    note: Optional[str] = None


@dataclass(frozen=True)
class LedgerFilter:
    """History query. ``start``/``end`` are inclusive."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    category_id: Optional[str] = None
    activity_id: Optional[str] = None
    limit: Optional[int] = None
    offset: int = 0


@dataclass(frozen=True)
class CarbonProfile:
    """Per-owner running totals, maintained in the same transaction as ledger writes."""

    owner_id: str
    total_impact: Decimal
    total_saved: Decimal
    activities_logged: int
    streak_days: int
    longest_streak: int
    last_active_day: Optional[date]
    time_zone: str
    weekly_goal: Decimal
    created_at: datetime
    updated_at: datetime
