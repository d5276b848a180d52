"""
Leave Workflow Backend - Main Application Entry Point
"""
import logging
from contextlib import asynccontextmanager
from urllib.parse import urlparse, urlunparse

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from app.api.router import api_router
from app.core.config import settings
from app.core.constants import SERVICE_NAME
from app.core.errors import (
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from app.core.exceptions import AppException
from app.core.logging import setup_logging
from app.db.init_db import bootstrap_initial_admin
from app.db.session import SessionLocal, create_tables

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)


def _mask_database_url(url: str) -> str:
    """Mask password in DATABASE_URL for safe logging; show full path for sqlite."""
    try:
        parsed = urlparse(url)
        if parsed.scheme.startswith("sqlite"):
            return url
        if parsed.password:
            netloc = f"{parsed.username}:****@{parsed.hostname or ''}"
            if parsed.port:
                netloc += f":{parsed.port}"
            return urlunparse(parsed._replace(netloc=netloc))
    except ValueError:
        return "***"
    return url


def startup_log_config() -> None:
    """Validate production settings and log DATABASE_URL so it can be checked against Alembic."""
    settings.validate_production()
    logger.info("DATABASE_URL (app): %s", _mask_database_url(settings.DATABASE_URL))


def startup_bootstrap() -> None:
    """
    Create tables for local SQLite databases and make sure an admin exists.
    Other databases are migrated with Alembic.
    """
    if settings.DATABASE_URL.startswith("sqlite"):
        create_tables()
    db = SessionLocal()
    try:
        bootstrap_initial_admin(db)
    except OperationalError as e:
        db.rollback()
        if "no such table" in str(e).lower():
            logger.warning("Database tables not ready yet, run alembic upgrade head")
        else:
            logger.error("Database error during admin bootstrap: %s", e)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    startup_log_config()
    startup_bootstrap()
    yield
    logger.info("Shutting down %s", SERVICE_NAME)


app = FastAPI(
    title="Leave Workflow Backend",
    description="Leave requests, multi-level approvals, leave balances and carry forward",
    version=settings.VERSION or "1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include all API routes under /api/v1
app.include_router(api_router, prefix="/api/v1")
