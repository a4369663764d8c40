from __future__ import annotations

from decimal import Decimal
from typing import Optional, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ecotrack.api.deps import get_owner_id
from ecotrack.api.serializers import award_out, badge_progress_out, instance_out, profile_out
from ecotrack.features.badges.service import badge_service
from ecotrack.features.profile.service import profile_service

router = APIRouter(prefix="/v1/profile", tags=["profile"])


class SettingsRequest(BaseModel):
    owner_id: str = Field(..., min_length=1, max_length=100)
    time_zone: Optional[str] = Field(None, min_length=1)
    weekly_goal: Optional[Union[Decimal, float, str]] = None


@router.get("")
def get_profile(owner_id: str = Depends(get_owner_id)):
    """Running totals, unlocked badges and the most recent running challenge."""
    view = profile_service.get_profile(owner_id)
    return {
        "data": {
            **profile_out(view.profile),
            "badges": [award_out(a) for a in view.badges],
            "current_challenge": instance_out(view.current_challenge) if view.current_challenge else None,
        }
    }


@router.put("/settings")
def update_settings(req: SettingsRequest):
    profile = profile_service.update_settings(
        owner_id=req.owner_id, time_zone=req.time_zone, weekly_goal=req.weekly_goal
    )
    return {"data": profile_out(profile)}


@router.get("/badges")
def badge_progress(owner_id: str = Depends(get_owner_id)):
    progress = badge_service.badge_progress(owner_id)
    return {
        "data": [badge_progress_out(p) for p in progress],
        "unlocked": sum(1 for p in progress if p.unlocked),
        "total": len(progress),
    }
