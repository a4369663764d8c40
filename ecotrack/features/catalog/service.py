"""
Activity catalog: read-only reference data loaded once at startup.

Holds categories and activities (with their carbon factors) plus the static
challenge templates and badge definitions. Lookups of unknown ids raise
NotFoundError; nothing here is mutated after construction.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, TypeVar

from ecotrack.core.config import settings
from ecotrack.core.errors import NotFoundError
from ecotrack.features.catalog import data as default_data
from ecotrack.models.badge import Badge
from ecotrack.models.catalog import Activity, Category
from ecotrack.models.challenge import ChallengeTemplate, TargetMetric

logger = logging.getLogger("ecotrack")

T = TypeVar("T")


def _index(items: Iterable[T], kind: str) -> Dict[str, T]:
    indexed: Dict[str, T] = {}
    for item in items:
        if item.id in indexed:
            raise ValueError(f"Duplicate {kind} id: {item.id}")
        indexed[item.id] = item
    return indexed


class Catalog:
    """Immutable lookup tables keyed by id, preserving declaration order."""

    def __init__(
        self,
        categories: Sequence[Category],
        activities: Sequence[Activity],
        templates: Sequence[ChallengeTemplate] = (),
        badges: Sequence[Badge] = (),
    ):
        self._categories = _index(categories, "category")
        self._activities = _index(activities, "activity")
        self._templates = _index(templates, "challenge template")
        self._badges = _index(badges, "badge")

        for activity in self._activities.values():
            if activity.category_id not in self._categories:
                raise ValueError(
                    f"Activity {activity.id} references unknown category {activity.category_id}"
                )
        for template in self._templates.values():
            if template.category_id is not None and template.category_id not in self._categories:
                raise ValueError(
                    f"Challenge {template.id} references unknown category {template.category_id}"
                )
            if template.metric == TargetMetric.CATEGORY_SPECIFIC and template.category_id is None:
                raise ValueError(f"Challenge {template.id} counts a category but names none")

    @classmethod
    def from_dict(cls, raw: dict) -> "Catalog":
        """Build from plain data; missing sections fall back to the bundled defaults."""
        return cls(
            categories=[Category(**c) for c in raw.get("categories", default_data.CATEGORIES)],
            activities=[Activity(**a) for a in raw.get("activities", default_data.ACTIVITIES)],
            templates=[ChallengeTemplate(**t) for t in raw.get("challenges", default_data.CHALLENGES)],
            badges=[Badge(**b) for b in raw.get("badges", default_data.BADGES)],
        )

    # Categories -------------------------------------------------------
    def get_category(self, category_id: str) -> Category:
        category = self._categories.get(category_id)
        if category is None:
            raise NotFoundError(f"Category {category_id} not found")
        return category

    def list_categories(self) -> List[Category]:
        return list(self._categories.values())

    # Activities -------------------------------------------------------
    def get_activity(self, activity_id: str) -> Activity:
        activity = self._activities.get(activity_id)
        if activity is None:
            raise NotFoundError(f"Activity {activity_id} not found")
        return activity

    def list_activities(self, category_id: Optional[str] = None) -> List[Activity]:
        if category_id is None:
            return list(self._activities.values())
        self.get_category(category_id)
        return [a for a in self._activities.values() if a.category_id == category_id]

    # Challenge templates ----------------------------------------------
    def get_template(self, template_id: str) -> ChallengeTemplate:
        template = self._templates.get(template_id)
        if template is None:
            raise NotFoundError(f"Challenge {template_id} not found")
        return template

    def list_templates(self) -> List[ChallengeTemplate]:
        return list(self._templates.values())

    # Badges -----------------------------------------------------------
    def get_badge(self, badge_id: str) -> Badge:
        badge = self._badges.get(badge_id)
        if badge is None:
            raise NotFoundError(f"Badge {badge_id} not found")
        return badge

    def list_badges(self) -> List[Badge]:
        return list(self._badges.values())


def load_catalog(path: Optional[str] = None) -> Catalog:
    """Load the catalog from a JSON file, or the bundled data when no path is given."""
    if not path:
        return Catalog.from_dict({})
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    catalog = Catalog.from_dict(raw)
    logger.info(
        "catalog.loaded",
        extra={"path": path, "categories": len(catalog.list_categories()), "activities": len(catalog.list_activities())},
    )
    return catalog


_catalog: Optional[Catalog] = None


def get_catalog() -> Catalog:
    global _catalog
    if _catalog is None:
        _catalog = load_catalog(settings.CATALOG_PATH)
    return _catalog


def set_catalog(catalog: Optional[Catalog]) -> None:
    """Replace the process-wide catalog (startup wiring and tests)."""
    global _catalog
    _catalog = catalog
