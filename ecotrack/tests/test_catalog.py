import json
from decimal import Decimal

import pytest

from ecotrack.core.errors import NotFoundError
from ecotrack.features.catalog.service import Catalog, get_catalog, load_catalog, set_catalog
from ecotrack.models.catalog import Activity, Category
from ecotrack.models.challenge import TargetMetric


def test_bundled_catalog_has_reference_factors():
    catalog = get_catalog()

    drive = catalog.get_activity("car-petrol")
    assert drive.carbon_per_unit == Decimal("0.21")
    assert drive.unit == "km"
    assert catalog.get_activity("cycling").carbon_per_unit < 0
    assert [c.id for c in catalog.list_categories()] == ["transport", "food", "energy", "consumption", "waste"]


def test_list_activities_by_category():
    catalog = get_catalog()

    food = catalog.list_activities(category_id="food")
    assert food
    assert all(a.category_id == "food" for a in food)
    assert len(catalog.list_activities()) > len(food)


def test_unknown_ids_raise_not_found():
    catalog = get_catalog()

    with pytest.raises(NotFoundError):
        catalog.get_activity("teleport")
    with pytest.raises(NotFoundError):
        catalog.list_activities(category_id="space")
    with pytest.raises(NotFoundError):
        catalog.get_template("nope")
    with pytest.raises(NotFoundError):
        catalog.get_badge("nope")


def test_duplicate_ids_rejected():
    category = Category(id="transport", name="Transport")
    activity = Activity(id="bus", category_id="transport", name="Bus", carbon_per_unit=Decimal("0.1"), unit="km")

    with pytest.raises(ValueError):
        Catalog(categories=[category], activities=[activity, activity])


def test_activity_must_reference_known_category():
    activity = Activity(id="bus", category_id="transport", name="Bus", carbon_per_unit=Decimal("0.1"), unit="km")

    with pytest.raises(ValueError):
        Catalog(categories=[], activities=[activity])


def test_templates_reference_categories():
    catalog = get_catalog()

    for template in catalog.list_templates():
        if template.metric == TargetMetric.CATEGORY_SPECIFIC:
            assert catalog.get_category(template.category_id)


def test_load_catalog_from_file(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(
        json.dumps(
            {
                "categories": [{"id": "transport", "name": "Transport"}],
                "activities": [
                    {"id": "scooter", "category_id": "transport", "name": "E-scooter",
                     "carbon_per_unit": "0.035", "unit": "km"}
                ],
                "challenges": [],
                "badges": [],
            }
        ),
        encoding="utf-8",
    )

    catalog = load_catalog(str(path))
    set_catalog(catalog)

    assert get_catalog() is catalog
    assert [a.id for a in catalog.list_activities()] == ["scooter"]
    assert catalog.list_templates() == []
