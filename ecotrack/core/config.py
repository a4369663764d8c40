import logging
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import ConfigDict
from pydantic_settings import BaseSettings

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    CONFIG_STRICT: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./ecotrack.db"
    TEST_DATABASE_URL: Optional[str] = None

    # Calendar policy
    DEFAULT_TIME_ZONE: str = "UTC"
    WEEK_START_DAY: str = "sunday"

    # Goals
    DEFAULT_WEEKLY_GOAL_KG: Decimal = Decimal("50")

    # Reference data (bundled catalog is used when unset)
    CATALOG_PATH: Optional[str] = None

    # Listing
    HISTORY_PAGE_LIMIT: int = 100

    # CORS (comma-separated)
    CORS_ORIGINS: str = "http://localhost:3000"

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()


def week_start_index(name: Optional[str] = None) -> int:
    """Map a weekday name to its ``date.weekday()`` index (monday == 0)."""
    value = (name or settings.WEEK_START_DAY).strip().lower()
    if value not in WEEKDAYS:
        raise ValueError(f"Unknown weekday: {value}")
    return WEEKDAYS.index(value)


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate calendar and goal configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("ecotrack")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    problems = []
    try:
        ZoneInfo(cfg.DEFAULT_TIME_ZONE)
    except (ZoneInfoNotFoundError, ValueError):
        problems.append(f"DEFAULT_TIME_ZONE={cfg.DEFAULT_TIME_ZONE!r} is not a known time zone")

    if cfg.WEEK_START_DAY.strip().lower() not in WEEKDAYS:
        problems.append(f"WEEK_START_DAY={cfg.WEEK_START_DAY!r} is not a weekday name")

    if cfg.DEFAULT_WEEKLY_GOAL_KG <= 0:
        problems.append("DEFAULT_WEEKLY_GOAL_KG must be positive")

    if cfg.HISTORY_PAGE_LIMIT < 1:
        problems.append("HISTORY_PAGE_LIMIT must be at least 1")

    if problems:
        message = "Invalid configuration: " + "; ".join(problems)
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
