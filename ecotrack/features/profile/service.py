from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

from sqlalchemy import update

from ecotrack.core.config import week_start_index
from ecotrack.core.database import carbon_profiles, get_db_session, owner_transaction
from ecotrack.core.datetime_utils import ensure_utc, local_day, resolve_zone, utc_now
from ecotrack.core.errors import ValidationError
from ecotrack.core.logging import log_event
from ecotrack.features.aggregation.reducers import aggregate, total_impact
from ecotrack.features.aggregation.windows import daily_window, period_window, weekly_window
from ecotrack.features.badges.service import BadgeService, badge_service
from ecotrack.features.challenges.service import ChallengeService, challenge_service
from ecotrack.features.ledger.profile import load_profile, load_profile_or_default
from ecotrack.features.ledger.service import select_window
from ecotrack.models.analytics import AggregateResult
from ecotrack.models.ledger import CarbonProfile
from ecotrack.models.profile import ProfileView, TodaySummary

ONE_DECIMAL = Decimal("0.1")
HUNDRED = Decimal("100")
MAX_WEEKLY_GOAL = Decimal("100000")


def weekly_progress_percent(week_total: Decimal, weekly_goal: Decimal) -> int:
    """Share of the weekly goal used so far, as a whole percent capped at 100."""
    if weekly_goal <= 0:
        return 0
    ratio = min(week_total / weekly_goal * HUNDRED, HUNDRED)
    return max(0, int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP)))


class ProfileService:
    """Read-side views over a profile plus the owner's editable settings."""

    def __init__(
        self,
        badges: BadgeService = badge_service,
        challenges: ChallengeService = challenge_service,
    ):
        self._badges = badges
        self._challenges = challenges

    def today_impact(self, owner_id: str, now: Optional[datetime] = None) -> TodaySummary:
        moment = ensure_utc(now) if now else utc_now()
        with get_db_session() as session:
            profile = load_profile_or_default(session, owner_id)
            zone = resolve_zone(profile.time_zone)
            today = local_day(moment, zone)
            day = daily_window(today, zone)
            week = weekly_window(today, zone, week_start_index())
            week_entries = select_window(session, owner_id, week.start, week.end)

        todays = [e for e in week_entries if day.contains(e.occurred_at)]
        todays.sort(key=lambda e: (e.occurred_at, e.id), reverse=True)
        return TodaySummary(
            today_total=total_impact(week_entries, day).quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP),
            weekly_goal=profile.weekly_goal,
            weekly_progress_percent=weekly_progress_percent(
                total_impact(week_entries, week), profile.weekly_goal
            ),
            activities=todays,
        )

    def stats(self, owner_id: str, period: str = "weekly", now: Optional[datetime] = None) -> AggregateResult:
        """Aggregate over the daily/weekly/monthly window containing ``now``."""
        moment = ensure_utc(now) if now else utc_now()
        with get_db_session() as session:
            profile = load_profile_or_default(session, owner_id)
            window = period_window(period, moment, profile.time_zone, week_start_index())
            entries = select_window(session, owner_id, window.start, window.end)
        return aggregate(entries, window.start, window.end, window.zone)

    def get_profile(self, owner_id: str, now: Optional[datetime] = None) -> ProfileView:
        with get_db_session() as session:
            profile = load_profile_or_default(session, owner_id)
        return ProfileView(
            profile=profile,
            badges=self._badges.list_awards(owner_id),
            current_challenge=self._challenges.current_challenge(owner_id, now=now),
        )

    def update_settings(
        self,
        *,
        owner_id: str,
        time_zone: Optional[str] = None,
        weekly_goal: Optional[Union[int, float, str, Decimal]] = None,
    ) -> CarbonProfile:
        values = {}
        if time_zone is not None:
            resolve_zone(time_zone)
            values["time_zone"] = time_zone
        if weekly_goal is not None:
            values["weekly_goal"] = _parse_goal(weekly_goal)

        with owner_transaction(owner_id) as session:
            if values:
                values["updated_at"] = utc_now()
                session.execute(
                    update(carbon_profiles)
                    .where(carbon_profiles.c.owner_id == owner_id)
                    .values(**values)
                )
            profile = load_profile(session, owner_id)

        log_event(
            "info",
            "profile.settings_updated",
            owner_id=owner_id,
            event_type="profile.settings_updated",
            extra={"fields": sorted(k for k in values if k != "updated_at")},
        )
        return profile


def _parse_goal(raw: Union[int, float, str, Decimal]) -> Decimal:
    if isinstance(raw, bool):
        raise ValidationError("weekly_goal must be a number")
    try:
        goal = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"weekly_goal {raw!r} is not a number")
    if not goal.is_finite() or goal <= 0 or goal > MAX_WEEKLY_GOAL:
        raise ValidationError("weekly_goal must be greater than 0 and at most 100000")
    return goal.quantize(Decimal("0.001"))


# Singleton service used by routes
profile_service = ProfileService()
