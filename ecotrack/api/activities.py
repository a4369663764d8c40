from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from fastapi import APIRouter, Depends, Path, Query, Response
from pydantic import BaseModel, Field

from ecotrack.api.deps import get_owner_id
from ecotrack.api.serializers import entry_out
from ecotrack.core.config import settings
from ecotrack.features.ledger.service import ledger_service
from ecotrack.models.ledger import LedgerFilter

router = APIRouter(prefix="/v1/activities", tags=["activities"])


class LogActivityRequest(BaseModel):
    owner_id: str = Field(..., min_length=1, max_length=100)
    activity_id: str = Field(..., min_length=1)
    # Range checks live in the ledger so they surface as invalid_quantity.
    quantity: Union[Decimal, float, str]
    timestamp: Optional[datetime] = None
    note: Optional[str] = None


@router.post("/log", status_code=201)
def log_activity(req: LogActivityRequest):
    """Record one activity and return the stored ledger entry."""
    entry = ledger_service.record_entry(
        owner_id=req.owner_id,
        activity_id=req.activity_id,
        quantity=req.quantity,
        timestamp=req.timestamp,
        note=req.note,
    )
    return {"data": entry_out(entry)}


@router.delete("/log/{entry_id}", status_code=204)
def delete_activity(
    entry_id: str = Path(..., min_length=1),
    owner_id: str = Depends(get_owner_id),
):
    ledger_service.delete_entry(owner_id=owner_id, entry_id=entry_id)
    return Response(status_code=204)


@router.get("/history")
def activity_history(
    owner_id: str = Depends(get_owner_id),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    category_id: Optional[str] = Query(None),
    activity_id: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
):
    """
    Paged history, newest first.

    ``limit`` defaults to and is capped at HISTORY_PAGE_LIMIT; ``total`` counts
    every matching entry so clients can page.
    """
    page_size = min(limit or settings.HISTORY_PAGE_LIMIT, settings.HISTORY_PAGE_LIMIT)
    filters = LedgerFilter(
        start=start,
        end=end,
        category_id=category_id,
        activity_id=activity_id,
        limit=page_size,
        offset=offset,
    )
    entries = ledger_service.list_entries(owner_id, filters)
    total = ledger_service.count_entries(
        owner_id,
        LedgerFilter(start=start, end=end, category_id=category_id, activity_id=activity_id),
    )
    return {
        "data": [entry_out(e) for e in entries],
        "count": len(entries),
        "total": total,
        "limit": page_size,
        "offset": offset,
    }
