# ecotrack/conftest.py
from datetime import datetime, timezone

import pytest

from ecotrack.core.database import init_engine, reset_database
from ecotrack.features.catalog.service import set_catalog


@pytest.fixture(autouse=True)
def fresh_db():
    """
    Bind an in-memory SQLite engine and rebuild every table for each test.

    Tests that need real concurrent connections rebind to a file database
    with the ``file_db`` fixture.
    """
    init_engine("sqlite://")
    reset_database()
    set_catalog(None)
    yield
    set_catalog(None)


@pytest.fixture
def file_db(tmp_path):
    init_engine(f"sqlite:///{tmp_path / 'ecotrack-test.db'}")
    reset_database()
    yield
    init_engine("sqlite://")


@pytest.fixture
def fixed_now():
    """Fixed timestamp for deterministic testing (a Monday)."""
    return datetime(2024, 1, 8, 9, 0, 0, tzinfo=timezone.utc)
