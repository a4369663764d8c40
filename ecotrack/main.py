import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

# Load .env before settings are read; tests configure the environment themselves.
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv()

from ecotrack.core.config import settings, validate_config  # noqa: E402
from ecotrack.core.database import create_all_tables  # noqa: E402
from ecotrack.core.errors import (  # noqa: E402
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
    validation_error_handler,
)
from ecotrack.core.logging import configure_logging  # noqa: E402
from ecotrack.core.middleware.request_id import RequestIdMiddleware  # noqa: E402
from ecotrack.api import activities, catalog, challenges, health, profile, stats  # noqa: E402
from ecotrack.features.catalog.service import get_catalog  # noqa: E402

configure_logging(settings.ENV, settings.LOG_LEVEL)
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("ecotrack")
    logger.info("Starting EcoTrack backend...")
    create_all_tables()
    # Fail fast on a broken CATALOG_PATH rather than on the first request.
    get_catalog()
    try:
        yield
    finally:
        logger.info("Stopping EcoTrack backend...")


def create_app() -> FastAPI:
    app = FastAPI(title="EcoTrack - Carbon Ledger", lifespan=lifespan)

    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(activities.router)
    app.include_router(catalog.router)
    app.include_router(stats.router)
    app.include_router(challenges.router)
    app.include_router(profile.router)
    app.include_router(health.root_router)
    return app


app = create_app()
