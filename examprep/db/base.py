"""
Database session and base configuration.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from examprep.core.config import settings


def _engine_options(url: str) -> dict:
    """Pick pooling options for the configured database."""
    if url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        # In-memory databases live on a single connection
        if url in ("sqlite://", "sqlite:///:memory:"):
            options["poolclass"] = StaticPool
        return options
    if settings.ENV == "production":
        # No connection pooling for serverless
        return {
            "poolclass": NullPool,
            "pool_pre_ping": True,
            "connect_args": {"options": "-c statement_timeout=30000"},
        }
    return {
        "pool_size": 5,
        "max_overflow": 0,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


engine = create_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
