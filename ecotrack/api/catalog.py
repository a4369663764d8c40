from fastapi import APIRouter, Path, Query
from typing import Optional

from ecotrack.api.serializers import activity_out, badge_out, category_out, template_out
from ecotrack.features.catalog.service import get_catalog

router = APIRouter(prefix="/v1/catalog", tags=["catalog"])


@router.get("/categories")
def list_categories_endpoint():
    categories = get_catalog().list_categories()
    return {"data": [category_out(c) for c in categories], "count": len(categories)}


@router.get("/categories/{category_id}/activities")
def list_category_activities_endpoint(category_id: str = Path(..., min_length=1)):
    """Activities of one category (404 for an unknown category)."""
    activities = get_catalog().list_activities(category_id=category_id)
    return {"data": [activity_out(a) for a in activities], "count": len(activities)}


@router.get("/activities")
def list_activities_endpoint(category_id: Optional[str] = Query(None)):
    activities = get_catalog().list_activities(category_id=category_id)
    return {"data": [activity_out(a) for a in activities], "count": len(activities)}


@router.get("/activities/{activity_id}")
def get_activity_endpoint(activity_id: str = Path(..., min_length=1)):
    return {"data": activity_out(get_catalog().get_activity(activity_id))}


@router.get("/challenges")
def list_challenge_templates_endpoint():
    templates = get_catalog().list_templates()
    return {"data": [template_out(t) for t in templates], "count": len(templates)}


@router.get("/badges")
def list_badges_endpoint():
    badges = get_catalog().list_badges()
    return {"data": [badge_out(b) for b in badges], "count": len(badges)}
