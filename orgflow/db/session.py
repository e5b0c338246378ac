"""
Database session management
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from orgflow.core.config import settings
from orgflow.db.base import Base

_engine_kwargs = {"pool_pre_ping": True, "echo": False}
if settings.DATABASE_URL.startswith("sqlite"):
    # FastAPI runs sync endpoints in a threadpool
    _engine_kwargs["connect_args"] = {"check_same_thread": False}

engine = create_engine(settings.DATABASE_URL, **_engine_kwargs)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_sqlite_schema() -> None:
    """Create all tables for SQLite databases (other backends use Alembic)"""
    if "sqlite" in settings.DATABASE_URL:
        import orgflow.models  # noqa: F401  register mappers
        Base.metadata.create_all(bind=engine)
