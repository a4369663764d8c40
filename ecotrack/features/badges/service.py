from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from sqlalchemy import func, insert, select
from sqlalchemy.orm import Session

from ecotrack.core.database import (
    badge_awards,
    challenge_instances,
    get_db_session,
    owner_transaction,
)
from ecotrack.core.datetime_utils import ensure_utc, utc_now
from ecotrack.core.logging import log_event
from ecotrack.features.catalog.service import Catalog, get_catalog
from ecotrack.features.ledger.profile import load_profile, load_profile_or_default
from ecotrack.models.badge import Badge, BadgeAward, BadgeMetric, BadgeProgress
from ecotrack.models.ledger import CarbonProfile


def count_completed_challenges(session: Session, owner_id: str) -> int:
    return session.execute(
        select(func.count())
        .select_from(challenge_instances)
        .where(challenge_instances.c.owner_id == owner_id)
        .where(challenge_instances.c.status == "completed")
    ).scalar_one()


def metric_value(metric: BadgeMetric, profile: CarbonProfile, challenges_completed: int) -> Decimal:
    if metric == BadgeMetric.ACTIVITIES_LOGGED:
        return Decimal(profile.activities_logged)
    if metric == BadgeMetric.CARBON_SAVED:
        return profile.total_saved
    if metric == BadgeMetric.STREAK_DAYS:
        return Decimal(profile.streak_days)
    return Decimal(challenges_completed)


class BadgeService:
    """Unlock-once badge evaluation against an owner's profile and challenge history."""

    def __init__(self, catalog_provider: Callable[[], Catalog] = get_catalog):
        self._catalog = catalog_provider

    def evaluate_badges(self, owner_id: str, now: Optional[datetime] = None) -> List[Badge]:
        """Award every badge whose criteria are met and that the owner lacks (idempotent)."""
        with owner_transaction(owner_id) as session:
            return self.evaluate_in_session(session, owner_id, now=now)

    def evaluate_in_session(
        self, session: Session, owner_id: str, now: Optional[datetime] = None
    ) -> List[Badge]:
        """
        Evaluate inside a caller's owner transaction.

        The owner lock makes check-then-insert atomic; the unique constraint on
        (owner_id, badge_id) rejects anything that slips past it.
        """
        awarded_at = ensure_utc(now) if now else utc_now()
        profile = load_profile(session, owner_id)
        completed = count_completed_challenges(session, owner_id)
        already = set(
            session.execute(
                select(badge_awards.c.badge_id).where(badge_awards.c.owner_id == owner_id)
            ).scalars()
        )

        newly_awarded: List[Badge] = []
        for badge in self._catalog().list_badges():
            if badge.id in already:
                continue
            if metric_value(badge.criteria.metric, profile, completed) < badge.criteria.threshold:
                continue
            session.execute(
                insert(badge_awards).values(owner_id=owner_id, badge_id=badge.id, awarded_at=awarded_at)
            )
            newly_awarded.append(badge)
            log_event(
                "info",
                "badge.awarded",
                owner_id=owner_id,
                event_type="badge.awarded",
                extra={"badge_id": badge.id},
            )
        return newly_awarded

    def list_awards(self, owner_id: str) -> List[BadgeAward]:
        with get_db_session() as session:
            rows = session.execute(
                select(badge_awards)
                .where(badge_awards.c.owner_id == owner_id)
                .order_by(badge_awards.c.awarded_at, badge_awards.c.id)
            ).all()
        return [
            BadgeAward(owner_id=row.owner_id, badge_id=row.badge_id, awarded_at=ensure_utc(row.awarded_at))
            for row in rows
        ]

    def badge_progress(self, owner_id: str) -> List[BadgeProgress]:
        with get_db_session() as session:
            profile = load_profile_or_default(session, owner_id)
            completed = count_completed_challenges(session, owner_id)
        awards: Dict[str, BadgeAward] = {a.badge_id: a for a in self.list_awards(owner_id)}

        progress: List[BadgeProgress] = []
        for badge in self._catalog().list_badges():
            award = awards.get(badge.id)
            current = metric_value(badge.criteria.metric, profile, completed)
            progress.append(
                BadgeProgress(
                    badge=badge,
                    current=min(current, badge.criteria.threshold),
                    unlocked=award is not None,
                    awarded_at=award.awarded_at if award else None,
                )
            )
        return progress


# Singleton service used by routes
badge_service = BadgeService()
