"""JSON shapes for domain objects. Decimals go out as floats, datetimes as UTC ISO strings."""

from decimal import Decimal
from typing import Dict, Optional

from ecotrack.core.datetime_utils import format_for_api
from ecotrack.models.analytics import AggregateResult
from ecotrack.models.badge import Badge, BadgeAward, BadgeProgress
from ecotrack.models.catalog import Activity, Category
from ecotrack.models.challenge import (
    ChallengeInstance,
    ChallengeShareData,
    ChallengeTemplate,
    LeaderboardEntry,
)
from ecotrack.models.ledger import CarbonProfile, LedgerEntry


def _num(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def _totals(values: Dict[str, Decimal]) -> Dict[str, float]:
    return {key: float(amount) for key, amount in values.items()}


def category_out(category: Category) -> dict:
    return {"id": category.id, "name": category.name, "icon": category.icon}


def activity_out(activity: Activity) -> dict:
    return {
        "id": activity.id,
        "category_id": activity.category_id,
        "name": activity.name,
        "carbon_per_unit": float(activity.carbon_per_unit),
        "unit": activity.unit,
        "description": activity.description,
    }


def template_out(template: ChallengeTemplate) -> dict:
    return {
        "id": template.id,
        "title": template.title,
        "description": template.description,
        "category_id": template.category_id,
        "metric": template.metric.value,
        "target": float(template.target),
        "duration_days": template.duration_days,
        "reward": template.reward,
        "icon": template.icon,
        "prerequisites": list(template.prerequisites),
    }


def badge_out(badge: Badge) -> dict:
    return {
        "id": badge.id,
        "name": badge.name,
        "description": badge.description,
        "icon": badge.icon,
        "criteria": {"metric": badge.criteria.metric.value, "threshold": float(badge.criteria.threshold)},
    }


def entry_out(entry: LedgerEntry) -> dict:
    return {
        "id": entry.id,
        "owner_id": entry.owner_id,
        "activity_id": entry.activity_id,
        "category_id": entry.category_id,
        "quantity": float(entry.quantity),
        "carbon_impact": float(entry.carbon_impact),
        "occurred_at": format_for_api(entry.occurred_at),
        "created_at": format_for_api(entry.created_at),
        "note": entry.note,
    }


def profile_out(profile: CarbonProfile) -> dict:
    return {
        "owner_id": profile.owner_id,
        "total_impact": float(profile.total_impact),
        "total_saved": float(profile.total_saved),
        "activities_logged": profile.activities_logged,
        "streak_days": profile.streak_days,
        "longest_streak": profile.longest_streak,
        "last_active_day": profile.last_active_day.isoformat() if profile.last_active_day else None,
        "time_zone": profile.time_zone,
        "weekly_goal": float(profile.weekly_goal),
    }


def instance_out(instance: ChallengeInstance) -> dict:
    return {
        "id": instance.id,
        "template_id": instance.template_id,
        "title": instance.title,
        "description": instance.description,
        "category_id": instance.category_id,
        "metric": instance.metric.value,
        "target": float(instance.target),
        "progress": float(instance.progress),
        "carbon_impact": float(instance.carbon_impact),
        "reward": instance.reward,
        "icon": instance.icon,
        "status": instance.status,
        "started_at": format_for_api(instance.started_at),
        "ends_at": format_for_api(instance.ends_at),
        "completed_at": format_for_api(instance.completed_at),
        "global_rank": instance.global_rank,
        "shared_platforms": sorted(instance.shared_platforms),
    }


def share_data_out(data: ChallengeShareData) -> dict:
    return {
        "instance_id": data.instance_id,
        "title": data.title,
        "reward": data.reward,
        "icon": data.icon,
        "completed_at": format_for_api(data.completed_at),
        "global_rank": data.global_rank,
        "total_participants": data.total_participants,
        "carbon_impact": float(data.carbon_impact),
        "progress": float(data.progress),
        "target": float(data.target),
        "shared_platforms": sorted(data.shared_platforms),
    }


def leaderboard_out(entry: LeaderboardEntry) -> dict:
    return {
        "position": entry.position,
        "owner_id": entry.owner_id,
        "completed_at": format_for_api(entry.completed_at),
        "progress": float(entry.progress),
    }


def award_out(award: BadgeAward) -> dict:
    return {"badge_id": award.badge_id, "awarded_at": format_for_api(award.awarded_at)}


def badge_progress_out(item: BadgeProgress) -> dict:
    return {
        "badge": badge_out(item.badge),
        "current": _num(item.current),
        "threshold": float(item.badge.criteria.threshold),
        "unlocked": item.unlocked,
        "awarded_at": format_for_api(item.awarded_at),
    }


def aggregate_out(result: AggregateResult) -> dict:
    return {
        "window_start": format_for_api(result.window_start),
        "window_end": format_for_api(result.window_end),
        "total_impact": float(result.total_impact),
        "entry_count": result.entry_count,
        "per_category_totals": _totals(result.per_category_totals),
        "per_day_totals": _totals(result.per_day_totals),
    }
