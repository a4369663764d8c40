from fastapi import APIRouter, Depends, Query

from ecotrack.api.deps import get_owner_id
from ecotrack.api.serializers import aggregate_out, entry_out
from ecotrack.features.profile.service import profile_service

router = APIRouter(prefix="/v1/stats", tags=["stats"])


@router.get("/today")
def today_impact(owner_id: str = Depends(get_owner_id)):
    """Today's total plus progress against the weekly goal."""
    summary = profile_service.today_impact(owner_id)
    return {
        "today_total": float(summary.today_total),
        "weekly_goal": float(summary.weekly_goal),
        "weekly_progress_percent": summary.weekly_progress_percent,
        "activities": [entry_out(e) for e in summary.activities],
        "activity_count": summary.activity_count,
    }


@router.get("")
def period_stats(
    owner_id: str = Depends(get_owner_id),
    period: str = Query("weekly"),
):
    result = profile_service.stats(owner_id, period=period)
    return {"period": period, "data": aggregate_out(result)}
