from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from ecotrack.models.badge import BadgeAward
from ecotrack.models.challenge import ChallengeInstance
from ecotrack.models.ledger import CarbonProfile, LedgerEntry


@dataclass(frozen=True)
class TodaySummary:
    """Dashboard numbers for the owner's current local day and week."""

    today_total: Decimal
    weekly_goal: Decimal
    weekly_progress_percent: int
    activities: List[LedgerEntry] = field(default_factory=list)

    @property
    def activity_count(self) -> int:
        return len(self.activities)


@dataclass(frozen=True)
class ProfileView:
    profile: CarbonProfile
    badges: List[BadgeAward]
    current_challenge: Optional[ChallengeInstance] = None
