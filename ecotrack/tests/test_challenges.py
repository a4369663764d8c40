import logging
import threading
from datetime import timedelta
from decimal import Decimal

import pytest

from ecotrack.core.errors import AlreadyJoinedError, NotFoundError, ValidationError
from ecotrack.features.badges.service import badge_service
from ecotrack.features.challenges.service import ChallengeService
from ecotrack.features.ledger.service import LedgerService
from ecotrack.models.challenge import TargetMetric


@pytest.fixture
def challenges():
    return ChallengeService()


@pytest.fixture
def ledger():
    return LedgerService()


def _log(ledger, owner_id, start, count, activity_id="bus", offset_hours=1):
    for i in range(count):
        ledger.record_entry(
            owner_id=owner_id,
            activity_id=activity_id,
            quantity=1,
            timestamp=start + timedelta(hours=offset_hours + i),
        )


def test_join_copies_template(challenges, fixed_now):
    instance = challenges.join_challenge(owner_id="u1", template_id="eco-logger", now=fixed_now)

    assert instance.status == "active"
    assert instance.progress == Decimal("0")
    assert instance.metric == TargetMetric.ACTIVITY_COUNT
    assert instance.target == Decimal("10")
    assert instance.ends_at == fixed_now + timedelta(days=7)


def test_join_twice_is_rejected(challenges, fixed_now):
    challenges.join_challenge(owner_id="u1", template_id="eco-logger", now=fixed_now)

    with pytest.raises(AlreadyJoinedError):
        challenges.join_challenge(owner_id="u1", template_id="eco-logger", now=fixed_now)

    assert len(challenges.list_user_challenges("u1", now=fixed_now)["active"]) == 1


def test_join_unknown_template(challenges, fixed_now):
    with pytest.raises(NotFoundError):
        challenges.join_challenge(owner_id="u1", template_id="moon-walk", now=fixed_now)


def test_completes_on_update_after_tenth_entry(challenges, ledger, fixed_now):
    instance = challenges.join_challenge(owner_id="u1", template_id="eco-logger", now=fixed_now)

    _log(ledger, "u1", fixed_now, 9)
    partial = challenges.update_progress(owner_id="u1", instance_id=instance.id, now=fixed_now + timedelta(hours=12))
    assert partial.status == "active"
    assert partial.progress == Decimal("9")

    ledger.record_entry(owner_id="u1", activity_id="bus", quantity=1, timestamp=fixed_now + timedelta(hours=10))
    done_at = fixed_now + timedelta(hours=13)
    done = challenges.update_progress(owner_id="u1", instance_id=instance.id, now=done_at)
    assert done.status == "completed"
    assert done.progress == Decimal("10")
    assert done.completed_at == done_at
    assert done.global_rank == 1

    # The 11th entry never re-triggers completion.
    ledger.record_entry(owner_id="u1", activity_id="bus", quantity=1, timestamp=fixed_now + timedelta(hours=14))
    again = challenges.update_progress(owner_id="u1", instance_id=instance.id, now=fixed_now + timedelta(days=1))
    assert again.status == "completed"
    assert again.completed_at == done_at
    assert again.progress == Decimal("10")


def test_progress_is_clamped_to_target(challenges, ledger, fixed_now):
    instance = challenges.join_challenge(owner_id="u1", template_id="bike-week", now=fixed_now)
    _log(ledger, "u1", fixed_now, 5, activity_id="cycling")

    result = challenges.update_progress(owner_id="u1", instance_id=instance.id, now=fixed_now + timedelta(days=1))

    assert result.status == "completed"
    assert result.progress == result.target == Decimal("3")


def test_entries_before_join_do_not_count(challenges, ledger, fixed_now):
    _log(ledger, "u1", fixed_now - timedelta(days=1), 5)
    instance = challenges.join_challenge(owner_id="u1", template_id="eco-logger", now=fixed_now)

    result = challenges.update_progress(owner_id="u1", instance_id=instance.id, now=fixed_now + timedelta(days=1))

    assert result.progress == Decimal("0")


def test_category_specific_ignores_other_categories(challenges, ledger, fixed_now):
    instance = challenges.join_challenge(owner_id="u1", template_id="public-transport", now=fixed_now)
    _log(ledger, "u1", fixed_now, 4, activity_id="beef-meal")
    _log(ledger, "u1", fixed_now, 2, activity_id="train")

    result = challenges.update_progress(owner_id="u1", instance_id=instance.id, now=fixed_now + timedelta(days=1))

    assert result.progress == Decimal("2")
    assert result.carbon_impact == Decimal("0.082")


def test_update_progress_requires_ownership(challenges, fixed_now):
    instance = challenges.join_challenge(owner_id="u1", template_id="eco-logger", now=fixed_now)

    with pytest.raises(NotFoundError):
        challenges.update_progress(owner_id="u2", instance_id=instance.id, now=fixed_now)


def test_completion_awards_challenger_badge(challenges, ledger, fixed_now):
    instance = challenges.join_challenge(owner_id="u1", template_id="bike-week", now=fixed_now)
    _log(ledger, "u1", fixed_now, 3, activity_id="cycling")

    challenges.update_progress(owner_id="u1", instance_id=instance.id, now=fixed_now + timedelta(days=1))

    awarded = {a.badge_id for a in badge_service.list_awards("u1")}
    assert "challenger" in awarded


class TestExpiry:
    def test_sweep_expires_unfinished_instances(self, challenges, ledger, fixed_now):
        instance = challenges.join_challenge(owner_id="u1", template_id="eco-logger", now=fixed_now)
        _log(ledger, "u1", fixed_now, 2)

        assert challenges.expire_stale_challenges(now=fixed_now + timedelta(days=6)) == 0
        assert challenges.expire_stale_challenges(now=fixed_now + timedelta(days=8)) == 1

        expired = challenges.get_instance(owner_id="u1", instance_id=instance.id)
        assert expired.status == "expired"
        assert expired.progress == Decimal("2")
        assert expired.completed_at is None

    def test_sweep_is_idempotent(self, challenges, fixed_now):
        challenges.join_challenge(owner_id="u1", template_id="eco-logger", now=fixed_now)

        assert challenges.expire_stale_challenges(now=fixed_now + timedelta(days=8)) == 1
        assert challenges.expire_stale_challenges(now=fixed_now + timedelta(days=9)) == 0

    def test_sweep_completes_instances_that_met_target(self, challenges, ledger, fixed_now):
        instance = challenges.join_challenge(owner_id="u1", template_id="eco-logger", now=fixed_now)
        _log(ledger, "u1", fixed_now, 10)

        assert challenges.expire_stale_challenges(now=fixed_now + timedelta(days=8)) == 0
        assert challenges.get_instance(owner_id="u1", instance_id=instance.id).status == "completed"

    def test_expired_instance_is_terminal(self, challenges, ledger, fixed_now):
        instance = challenges.join_challenge(owner_id="u1", template_id="eco-logger", now=fixed_now)
        challenges.expire_stale_challenges(now=fixed_now + timedelta(days=8))
        _log(ledger, "u1", fixed_now, 10)

        result = challenges.update_progress(owner_id="u1", instance_id=instance.id, now=fixed_now + timedelta(days=9))

        assert result.status == "expired"

    def test_expired_challenge_can_be_rejoined(self, challenges, fixed_now):
        challenges.join_challenge(owner_id="u1", template_id="eco-logger", now=fixed_now)
        challenges.expire_stale_challenges(now=fixed_now + timedelta(days=8))

        again = challenges.join_challenge(owner_id="u1", template_id="eco-logger", now=fixed_now + timedelta(days=8))

        assert again.status == "active"


class TestSharing:
    @pytest.fixture
    def completed(self, challenges, ledger, fixed_now):
        instance = challenges.join_challenge(owner_id="u1", template_id="bike-week", now=fixed_now)
        _log(ledger, "u1", fixed_now, 3, activity_id="cycling")
        return challenges.update_progress(owner_id="u1", instance_id=instance.id, now=fixed_now + timedelta(days=1))

    def test_mark_shared_is_idempotent(self, challenges, completed):
        challenges.mark_shared(owner_id="u1", instance_id=completed.id, platform="Twitter")
        challenges.mark_shared(owner_id="u1", instance_id=completed.id, platform="twitter")
        challenges.mark_shared(owner_id="u1", instance_id=completed.id, platform="facebook")

        shared = challenges.get_instance(owner_id="u1", instance_id=completed.id).shared_platforms
        assert shared == frozenset({"twitter", "facebook"})

    def test_only_completed_challenges_can_be_shared(self, challenges, fixed_now):
        active = challenges.join_challenge(owner_id="u1", template_id="eco-logger", now=fixed_now)

        with pytest.raises(ValidationError):
            challenges.mark_shared(owner_id="u1", instance_id=active.id, platform="twitter")
        with pytest.raises(NotFoundError):
            challenges.mark_shared(owner_id="u2", instance_id=active.id, platform="twitter")

    def test_share_data(self, challenges, completed, fixed_now):
        challenges.join_challenge(owner_id="u2", template_id="bike-week", now=fixed_now)

        data = challenges.challenge_share_data(owner_id="u1", instance_id=completed.id)

        assert data.title == completed.title
        assert data.global_rank == 1
        assert data.total_participants == 2
        assert data.carbon_impact == Decimal("-0.63")
        assert data.progress == data.target == Decimal("3")


class TestListingAndLeaderboard:
    def test_list_user_challenges_groups_by_status(self, challenges, ledger, fixed_now):
        done = challenges.join_challenge(owner_id="u1", template_id="bike-week", now=fixed_now)
        challenges.join_challenge(owner_id="u1", template_id="eco-logger", now=fixed_now)
        _log(ledger, "u1", fixed_now, 3, activity_id="cycling")
        challenges.update_progress(owner_id="u1", instance_id=done.id, now=fixed_now + timedelta(hours=5))

        grouped = challenges.list_user_challenges("u1", now=fixed_now + timedelta(hours=6))

        assert [i.template_id for i in grouped["active"]] == ["eco-logger"]
        assert [i.template_id for i in grouped["completed"]] == ["bike-week"]
        current = challenges.current_challenge("u1", now=fixed_now + timedelta(hours=6))
        assert current.template_id == "eco-logger"

    def test_past_end_instances_are_not_listed_as_active(self, challenges, fixed_now):
        challenges.join_challenge(owner_id="u1", template_id="eco-logger", now=fixed_now)

        grouped = challenges.list_user_challenges("u1", now=fixed_now + timedelta(days=8))

        assert grouped["active"] == []

    def test_leaderboard_orders_by_completion(self, challenges, ledger, fixed_now):
        for position, owner in enumerate(["late", "early"]):
            instance = challenges.join_challenge(owner_id=owner, template_id="bike-week", now=fixed_now)
            _log(ledger, owner, fixed_now, 3, activity_id="cycling")
            challenges.update_progress(
                owner_id=owner, instance_id=instance.id, now=fixed_now + timedelta(hours=10 - position * 5)
            )

        board = challenges.challenge_leaderboard("bike-week")

        assert [(e.position, e.owner_id) for e in board] == [(1, "early"), (2, "late")]

    def test_leaderboard_validates_input(self, challenges):
        with pytest.raises(NotFoundError):
            challenges.challenge_leaderboard("nope")
        with pytest.raises(ValidationError):
            challenges.challenge_leaderboard("bike-week", limit=0)


def test_concurrent_updates_complete_once(file_db, challenges, ledger, fixed_now, caplog):
    instance = challenges.join_challenge(owner_id="u1", template_id="eco-logger", now=fixed_now)
    _log(ledger, "u1", fixed_now, 10)
    done_at = fixed_now + timedelta(hours=20)
    results, errors = [], []

    def worker():
        try:
            results.append(challenges.update_progress(owner_id="u1", instance_id=instance.id, now=done_at))
        except Exception as exc:  # pragma: no cover - surfaced by the assertion below
            errors.append(exc)

    with caplog.at_level(logging.INFO, logger="ecotrack"):
        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

    assert errors == []
    assert {r.status for r in results} == {"completed"}
    assert {r.completed_at for r in results} == {done_at}
    assert {r.global_rank for r in results} == {1}
    assert sum(1 for r in caplog.records if r.getMessage() == "challenge.completed") == 1
    assert len(challenges.challenge_leaderboard("eco-logger")) == 1


def test_concurrent_joins_create_one_instance(file_db, challenges, fixed_now):
    joined, rejected, errors = [], [], []

    def worker():
        try:
            joined.append(challenges.join_challenge(owner_id="u1", template_id="eco-logger", now=fixed_now))
        except AlreadyJoinedError as exc:
            rejected.append(exc)
        except Exception as exc:  # pragma: no cover
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(joined) == 1
    assert len(rejected) == 7
    assert [i.id for i in challenges.list_user_challenges("u1", now=fixed_now)["active"]] == [joined[0].id]
