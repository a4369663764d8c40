from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Set
from uuid import uuid4

from sqlalchemy import func, insert, select, update
from sqlalchemy.orm import Session

from ecotrack.core.database import (
    challenge_instances,
    challenge_shares,
    get_db_session,
    owner_transaction,
)
from ecotrack.core.datetime_utils import ensure_utc, optional_utc, utc_now
from ecotrack.core.errors import AlreadyJoinedError, NotFoundError, ValidationError
from ecotrack.core.logging import log_event
from ecotrack.features.aggregation.reducers import compute_metric, window_impact
from ecotrack.features.aggregation.windows import make_window
from ecotrack.features.badges.service import BadgeService, badge_service
from ecotrack.features.catalog.service import Catalog, get_catalog
from ecotrack.features.ledger.profile import load_profile
from ecotrack.features.ledger.service import select_window
from ecotrack.models.challenge import (
    ChallengeInstance,
    ChallengeShareData,
    LeaderboardEntry,
    TargetMetric,
)

ZERO = Decimal("0")
MAX_LEADERBOARD = 100
MAX_PLATFORM_LENGTH = 50


def _row_to_instance(row, platforms: Iterable[str] = ()) -> ChallengeInstance:
    return ChallengeInstance(
        id=row.id,
        owner_id=row.owner_id,
        template_id=row.template_id,
        title=row.title,
        description=row.description,
        category_id=row.category_id,
        metric=TargetMetric(row.metric),
        target=Decimal(row.target),
        reward=row.reward,
        icon=row.icon,
        started_at=ensure_utc(row.started_at),
        ends_at=ensure_utc(row.ends_at),
        progress=Decimal(row.progress),
        carbon_impact=Decimal(row.carbon_impact),
        status=row.status,
        completed_at=optional_utc(row.completed_at),
        global_rank=row.global_rank,
        shared_platforms=frozenset(platforms),
    )


def _platforms_for(session: Session, instance_ids: List[str]) -> Dict[str, Set[str]]:
    found: Dict[str, Set[str]] = defaultdict(set)
    if not instance_ids:
        return found
    rows = session.execute(
        select(challenge_shares.c.instance_id, challenge_shares.c.platform)
        .where(challenge_shares.c.instance_id.in_(instance_ids))
    ).all()
    for row in rows:
        found[row.instance_id].add(row.platform)
    return found


def _hydrate(session: Session, rows) -> List[ChallengeInstance]:
    platforms = _platforms_for(session, [row.id for row in rows])
    return [_row_to_instance(row, platforms.get(row.id, ())) for row in rows]


class ChallengeService:
    """
    Challenge lifecycle: active -> completed | expired.

    Progress is always recomputed from the ledger, never incremented, so every
    call is idempotent. Status changes happen inside the owner's transaction and
    are guarded on ``status == 'active'``, so completion is stamped once.
    """

    def __init__(
        self,
        catalog_provider: Callable[[], Catalog] = get_catalog,
        badges: BadgeService = badge_service,
    ):
        self._catalog = catalog_provider
        self._badges = badges

    def join_challenge(
        self, *, owner_id: str, template_id: str, now: Optional[datetime] = None
    ) -> ChallengeInstance:
        """Start an attempt; fails AlreadyJoined while an active or completed one exists."""
        template = self._catalog().get_template(template_id)
        started_at = ensure_utc(now) if now else utc_now()

        with owner_transaction(owner_id) as session:
            existing = session.execute(
                select(challenge_instances.c.id, challenge_instances.c.status)
                .where(challenge_instances.c.owner_id == owner_id)
                .where(challenge_instances.c.template_id == template_id)
                .where(challenge_instances.c.status.in_(("active", "completed")))
            ).first()
            if existing is not None:
                raise AlreadyJoinedError(
                    f"Already joined challenge {template_id} (instance {existing.id} is {existing.status})"
                )

            instance = ChallengeInstance(
                id=uuid4().hex,
                owner_id=owner_id,
                template_id=template.id,
                title=template.title,
                description=template.description,
                category_id=template.category_id,
                metric=template.metric,
                target=template.target,
                reward=template.reward,
                icon=template.icon,
                started_at=started_at,
                ends_at=started_at + timedelta(days=template.duration_days),
            )
            session.execute(
                insert(challenge_instances).values(
                    id=instance.id,
                    owner_id=instance.owner_id,
                    template_id=instance.template_id,
                    title=instance.title,
                    description=instance.description,
                    category_id=instance.category_id,
                    metric=instance.metric.value,
                    target=instance.target,
                    reward=instance.reward,
                    icon=instance.icon,
                    started_at=instance.started_at,
                    ends_at=instance.ends_at,
                    progress=ZERO,
                    carbon_impact=ZERO,
                    status="active",
                )
            )

        log_event(
            "info",
            "challenge.joined",
            owner_id=owner_id,
            event_type="challenge.joined",
            extra={"instance_id": instance.id, "template_id": template_id},
        )
        return instance

    def update_progress(
        self, *, owner_id: str, instance_id: str, now: Optional[datetime] = None
    ) -> ChallengeInstance:
        """Recompute progress from the ledger and complete the challenge once its target is met."""
        moment = ensure_utc(now) if now else utc_now()
        with owner_transaction(owner_id) as session:
            instance = self._load_owned(session, owner_id, instance_id)
            if instance.status != "active":
                return instance
            refreshed = self._refresh(session, instance, moment)
            if refreshed.status == "completed":
                self._badges.evaluate_in_session(session, owner_id, now=moment)
        return refreshed

    def expire_stale_challenges(self, now: Optional[datetime] = None) -> int:
        """
        Sweep active instances whose end has passed.

        Progress is refreshed one last time over the full window; instances that
        reached their target complete, the rest expire. Returns the number expired.
        """
        moment = ensure_utc(now) if now else utc_now()
        with get_db_session() as session:
            candidates = session.execute(
                select(challenge_instances.c.id, challenge_instances.c.owner_id)
                .where(challenge_instances.c.status == "active")
                .where(challenge_instances.c.ends_at <= moment)
                .order_by(challenge_instances.c.owner_id, challenge_instances.c.id)
            ).all()

        expired = 0
        for candidate in candidates:
            with owner_transaction(candidate.owner_id) as session:
                instance = self._load_owned(session, candidate.owner_id, candidate.id)
                if instance.status != "active":
                    continue
                refreshed = self._refresh(session, instance, moment)
                if refreshed.status == "completed":
                    self._badges.evaluate_in_session(session, candidate.owner_id, now=moment)
                    continue
                result = session.execute(
                    update(challenge_instances)
                    .where(challenge_instances.c.id == instance.id)
                    .where(challenge_instances.c.status == "active")
                    .values(status="expired")
                )
                if result.rowcount:
                    expired += 1
                    log_event(
                        "info",
                        "challenge.expired",
                        owner_id=candidate.owner_id,
                        event_type="challenge.expired",
                        extra={"instance_id": instance.id, "progress": refreshed.progress},
                    )
        return expired

    def mark_shared(
        self, *, owner_id: str, instance_id: str, platform: str, now: Optional[datetime] = None
    ) -> None:
        """Record that a completed challenge was shared to ``platform`` (idempotent)."""
        tag = (platform or "").strip().lower()
        if not tag or len(tag) > MAX_PLATFORM_LENGTH:
            raise ValidationError("platform must be a non-empty tag of at most 50 characters")

        with owner_transaction(owner_id) as session:
            instance = self._load_owned(session, owner_id, instance_id)
            if instance.status != "completed":
                raise ValidationError("Can only share completed challenges")
            if tag in instance.shared_platforms:
                return
            session.execute(
                insert(challenge_shares).values(
                    instance_id=instance_id,
                    platform=tag,
                    shared_at=ensure_utc(now) if now else utc_now(),
                )
            )

    def get_instance(self, *, owner_id: str, instance_id: str) -> ChallengeInstance:
        with get_db_session() as session:
            return self._load_owned(session, owner_id, instance_id)

    def list_user_challenges(
        self, owner_id: str, now: Optional[datetime] = None
    ) -> Dict[str, List[ChallengeInstance]]:
        """Running challenges (not yet past their end) and completed ones, latest first."""
        moment = ensure_utc(now) if now else utc_now()
        with get_db_session() as session:
            active_rows = session.execute(
                select(challenge_instances)
                .where(challenge_instances.c.owner_id == owner_id)
                .where(challenge_instances.c.status == "active")
                .where(challenge_instances.c.ends_at > moment)
                .order_by(challenge_instances.c.started_at.desc(), challenge_instances.c.id)
            ).all()
            completed_rows = session.execute(
                select(challenge_instances)
                .where(challenge_instances.c.owner_id == owner_id)
                .where(challenge_instances.c.status == "completed")
                .order_by(challenge_instances.c.completed_at.desc(), challenge_instances.c.id)
            ).all()
            return {
                "active": _hydrate(session, active_rows),
                "completed": _hydrate(session, completed_rows),
            }

    def current_challenge(self, owner_id: str, now: Optional[datetime] = None) -> Optional[ChallengeInstance]:
        active = self.list_user_challenges(owner_id, now=now)["active"]
        return active[0] if active else None

    def challenge_share_data(self, *, owner_id: str, instance_id: str) -> ChallengeShareData:
        with get_db_session() as session:
            instance = self._load_owned(session, owner_id, instance_id)
            if instance.status != "completed":
                raise ValidationError("Challenge not completed yet")
            participants = session.execute(
                select(func.count())
                .select_from(challenge_instances)
                .where(challenge_instances.c.template_id == instance.template_id)
            ).scalar_one()
        return ChallengeShareData(
            instance_id=instance.id,
            title=instance.title,
            reward=instance.reward,
            icon=instance.icon,
            completed_at=instance.completed_at,
            global_rank=instance.global_rank,
            total_participants=participants,
            carbon_impact=instance.carbon_impact,
            progress=instance.progress,
            target=instance.target,
            shared_platforms=instance.shared_platforms,
        )

    def challenge_leaderboard(self, template_id: str, limit: int = 50) -> List[LeaderboardEntry]:
        """Earliest finishers first."""
        self._catalog().get_template(template_id)
        if not 1 <= limit <= MAX_LEADERBOARD:
            raise ValidationError(f"limit must be between 1 and {MAX_LEADERBOARD}")
        with get_db_session() as session:
            rows = session.execute(
                select(challenge_instances)
                .where(challenge_instances.c.template_id == template_id)
                .where(challenge_instances.c.status == "completed")
                .order_by(challenge_instances.c.completed_at, challenge_instances.c.id)
                .limit(limit)
            ).all()
        return [
            LeaderboardEntry(
                position=position,
                owner_id=row.owner_id,
                completed_at=ensure_utc(row.completed_at),
                progress=Decimal(row.progress),
            )
            for position, row in enumerate(rows, start=1)
        ]

    # Internal helpers -------------------------------------------------
    @staticmethod
    def _load_owned(session: Session, owner_id: str, instance_id: str) -> ChallengeInstance:
        row = session.execute(
            select(challenge_instances)
            .where(challenge_instances.c.id == instance_id)
            .where(challenge_instances.c.owner_id == owner_id)
        ).first()
        if row is None:
            raise NotFoundError(f"Challenge instance {instance_id} not found")
        return _hydrate(session, [row])[0]

    def _refresh(self, session: Session, instance: ChallengeInstance, now: datetime) -> ChallengeInstance:
        """Recompute an active instance over [started_at, min(now, ends_at)) and persist it."""
        window_end = min(now, instance.ends_at)
        recomputed = ZERO
        impact = ZERO
        if window_end > instance.started_at:
            profile = load_profile(session, instance.owner_id)
            window = make_window(instance.started_at, window_end, profile.time_zone)
            entries = select_window(session, instance.owner_id, window.start, window.end)
            recomputed = compute_metric(instance.metric, entries, window, instance.category_id)
            impact = window_impact(instance.metric, entries, window, instance.category_id)

        instance.progress = min(max(recomputed, ZERO), instance.target)
        instance.carbon_impact = impact
        values = {"progress": instance.progress, "carbon_impact": impact}

        completing = recomputed >= instance.target
        if completing:
            finished_before = session.execute(
                select(func.count())
                .select_from(challenge_instances)
                .where(challenge_instances.c.template_id == instance.template_id)
                .where(challenge_instances.c.status == "completed")
            ).scalar_one()
            values.update(status="completed", completed_at=now, global_rank=finished_before + 1)

        result = session.execute(
            update(challenge_instances)
            .where(challenge_instances.c.id == instance.id)
            .where(challenge_instances.c.status == "active")
            .values(**values)
        )
        if completing and result.rowcount:
            instance.status = "completed"
            instance.completed_at = now
            instance.global_rank = values["global_rank"]
            log_event(
                "info",
                "challenge.completed",
                owner_id=instance.owner_id,
                event_type="challenge.completed",
                extra={"instance_id": instance.id, "template_id": instance.template_id},
            )
        return instance


# Singleton service used by routes
challenge_service = ChallengeService()
