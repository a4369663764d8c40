from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import FrozenSet, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

ChallengeStatus = Literal["active", "completed", "expired"]


class TargetMetric(str, Enum):
    """What a challenge counts toward its target."""

    ACTIVITY_COUNT = "activity_count"
    CARBON_REDUCTION = "carbon_reduction"
    CATEGORY_SPECIFIC = "category_specific"
    CONSISTENCY_DAYS = "consistency_days"


class ChallengeTemplate(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    title: str
    description: str
    category_id: Optional[str] = None
    metric: TargetMetric
    target: Decimal = Field(gt=0)
    duration_days: int = Field(gt=0)
    reward: str
    icon: str = ""
    prerequisites: Tuple[str, ...] = ()


@dataclass
class ChallengeInstance:
    """
    A user's attempt at a template. Template fields are copied at join time so
    later template edits never alter an in-flight challenge.
    """

    id: str
    owner_id: str
    template_id: str
    title: str
    description: str
    category_id: Optional[str]
    metric: TargetMetric
    target: Decimal
    reward: str
    icon: str
    started_at: datetime
    ends_at: datetime
    progress: Decimal = Decimal("0")
    carbon_impact: Decimal = Decimal("0")
    status: ChallengeStatus = "active"
    completed_at: Optional[datetime] = None
    global_rank: Optional[int] = None
    shared_platforms: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class ChallengeShareData:
    instance_id: str
    title: str
    reward: str
    icon: str
    completed_at: datetime
    global_rank: Optional[int]
    total_participants: int
    carbon_impact: Decimal
    progress: Decimal
    target: Decimal
    shared_platforms: FrozenSet[str]


@dataclass(frozen=True)
class LeaderboardEntry:
    position: int
    owner_id: str
    completed_at: datetime
    progress: Decimal
