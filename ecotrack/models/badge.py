from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class BadgeMetric(str, Enum):
    ACTIVITIES_LOGGED = "activities_logged"
    CARBON_SAVED = "carbon_saved"
    STREAK_DAYS = "streak_days"
    CHALLENGES_COMPLETED = "challenges_completed"


class BadgeCriteria(BaseModel):
    model_config = ConfigDict(frozen=True)

    metric: BadgeMetric
    threshold: Decimal = Field(gt=0)


class Badge(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str
    description: str
    icon: str = ""
    criteria: BadgeCriteria


@dataclass(frozen=True)
class BadgeAward:
    owner_id: str
    badge_id: str
    awarded_at: datetime


@dataclass(frozen=True)
class BadgeProgress:
    badge: Badge
    current: Decimal
    unlocked: bool
    awarded_at: datetime | None = None
