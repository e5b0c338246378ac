"""
Orgflow Backend - Main Application Entry Point
"""
import logging
from urllib.parse import urlparse, urlunparse

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from orgflow.api.router import api_router
from orgflow.core.config import settings
from orgflow.core.errors import (
    workflow_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from orgflow.core.exceptions import WorkflowError
from orgflow.core.logging import setup_logging
from orgflow.db.session import SessionLocal, init_sqlite_schema
from orgflow.models.user import User, Role
from orgflow.services.audit_service import log_audit

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)


def _mask_database_url(url: str) -> str:
    """Mask password in DATABASE_URL for safe logging; show full path for sqlite."""
    parsed = urlparse(url)
    if parsed.scheme.startswith("sqlite"):
        return url
    if parsed.password:
        netloc = f"{parsed.username}:****@{parsed.hostname or ''}"
        if parsed.port:
            netloc += f":{parsed.port}"
        return urlunparse(parsed._replace(netloc=netloc))
    return url


# Create FastAPI app
app = FastAPI(
    title="Orgflow Backend",
    description="Hierarchical leave approval and disciplinary ticket workflows",
    version=settings.VERSION or "1.0.0"
)

# Configure CORS - must be before other middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
app.add_exception_handler(WorkflowError, workflow_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(SQLAlchemyError, generic_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include all API routes under /api/v1
app.include_router(api_router, prefix="/api/v1")


@app.on_event("startup")
def startup_log_config() -> None:
    """Validate production settings and log DATABASE_URL so it can be checked against Alembic."""
    settings.validate_production()
    logger.info("DATABASE_URL (app): %s", _mask_database_url(settings.DATABASE_URL))
    init_sqlite_schema()


@app.on_event("startup")
def bootstrap_initial_ceo() -> None:
    """
    Create the initial top-executive if no CEO exists.
    Every approval chain ends at an executive, so the system needs at least one.
    """
    db = SessionLocal()
    try:
        if db.query(User).filter(User.role == Role.CEO.value).first():
            logger.info("CEO already exists, skipping initial bootstrap")
            return

        existing = db.query(User).filter(User.email == settings.INITIAL_CEO_EMAIL).first()
        if existing:
            logger.warning(
                "User with email %s exists but is not CEO; skipping initial bootstrap",
                settings.INITIAL_CEO_EMAIL,
            )
            return

        ceo = User(
            name=settings.INITIAL_CEO_NAME,
            email=settings.INITIAL_CEO_EMAIL,
            role=Role.CEO.value,
            permissions=[],
            leave_balance=settings.DEFAULT_LEAVE_BALANCE,
            conduct_score=settings.DEFAULT_CONDUCT_SCORE,
            active=True,
        )
        db.add(ceo)
        db.flush()
        log_audit(db=db, actor_id=None, action="CEO_BOOTSTRAP", entity_type="users", entity_id=ceo.id)
        db.commit()
        logger.info("Initial CEO created: user_id=%s email=%s", ceo.id, settings.INITIAL_CEO_EMAIL)
    except OperationalError as e:
        # Tables might not exist yet
        db.rollback()
        if "no such table" in str(e).lower():
            logger.warning("Database tables not ready yet, skipping initial bootstrap")
        else:
            logger.error("Database error during CEO bootstrap: %s", e)
    finally:
        db.close()
