from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Query, Response
from pydantic import BaseModel, Field

from ecotrack.api.deps import get_owner_id
from ecotrack.api.serializers import instance_out, leaderboard_out, share_data_out
from ecotrack.features.challenges.service import challenge_service

router = APIRouter(prefix="/v1/challenges", tags=["challenges"])


class JoinRequest(BaseModel):
    owner_id: str = Field(..., min_length=1, max_length=100)
    template_id: str = Field(..., min_length=1)


class ProgressRequest(BaseModel):
    owner_id: str = Field(..., min_length=1, max_length=100)


class ShareRequest(BaseModel):
    owner_id: str = Field(..., min_length=1, max_length=100)
    platform: str = Field(..., min_length=1)


@router.get("")
def list_challenges(owner_id: str = Depends(get_owner_id)):
    """Running and completed challenges for an owner."""
    grouped = challenge_service.list_user_challenges(owner_id)
    return {
        "active": [instance_out(i) for i in grouped["active"]],
        "completed": [instance_out(i) for i in grouped["completed"]],
    }


@router.post("/join", status_code=201)
def join_challenge(req: JoinRequest):
    instance = challenge_service.join_challenge(owner_id=req.owner_id, template_id=req.template_id)
    return {"data": instance_out(instance)}


@router.post("/expire")
def expire_challenges():
    """Maintenance sweep: close every active challenge whose end has passed."""
    return {"expired": challenge_service.expire_stale_challenges()}


@router.get("/leaderboard/{template_id}")
def challenge_leaderboard(
    template_id: str = Path(..., min_length=1),
    limit: int = Query(50, ge=1, le=100),
):
    entries = challenge_service.challenge_leaderboard(template_id, limit=limit)
    return {"template_id": template_id, "data": [leaderboard_out(e) for e in entries]}


@router.post("/{instance_id}/progress")
def update_progress(req: ProgressRequest, instance_id: str = Path(..., min_length=1)):
    """Recompute progress from the ledger; completes the challenge when the target is met."""
    instance = challenge_service.update_progress(owner_id=req.owner_id, instance_id=instance_id)
    return {"data": instance_out(instance)}


@router.post("/{instance_id}/share", status_code=204)
def mark_shared(req: ShareRequest, instance_id: str = Path(..., min_length=1)):
    challenge_service.mark_shared(owner_id=req.owner_id, instance_id=instance_id, platform=req.platform)
    return Response(status_code=204)


@router.get("/{instance_id}/share")
def share_data(instance_id: str = Path(..., min_length=1), owner_id: str = Depends(get_owner_id)):
    data = challenge_service.challenge_share_data(owner_id=owner_id, instance_id=instance_id)
    return {"data": share_data_out(data)}
