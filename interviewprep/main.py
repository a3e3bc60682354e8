import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv()

from interviewprep.core.config import settings, validate_config
from interviewprep.core.logging import configure_logging
from interviewprep.core.middleware.request_id import RequestIdMiddleware
from interviewprep.core.database import create_all_tables
from interviewprep.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from interviewprep.api import admin, health, interviews, plans, usage, users
from interviewprep.features.plans.service import seed_plans

configure_logging(settings.ENV, settings.LOG_LEVEL)
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("interviewprep")
    logger.info("Starting interview prep backend...")
    try:
        create_all_tables()
        seed_plans()
    except Exception as e:
        # Serve anyway: readyz reports the database state and quota checks fail open
        logger.error(f"Database bootstrap failed: {e}")
    try:
        yield
    finally:
        logger.info("Stopping interview prep backend...")


app = FastAPI(title="Interview Prep - Backend", lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# CORS (adjust origins in production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(plans.router)
app.include_router(users.router)
app.include_router(usage.router)
app.include_router(interviews.router)
app.include_router(admin.router)
