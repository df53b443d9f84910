"""
Territory Risk Registry Database Connection
Connection management using SQLAlchemy.
"""

import logging
from contextlib import contextmanager
from typing import Optional
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from config.settings import get_settings
from database.models import Base

logger = logging.getLogger(__name__)

engine = None
SessionLocal = None


def _normalize_url(database_url: str) -> str:
    # Hosted Postgres providers hand out postgres:// but SQLAlchemy needs postgresql://
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql://", 1)
    return database_url


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str):
    """Create an engine with pooling suited to the backend."""
    database_url = _normalize_url(database_url)

    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        db_engine = create_engine(database_url, echo=False, **kwargs)
        event.listen(db_engine, "connect", _enable_sqlite_foreign_keys)
        return db_engine

    settings = get_settings()
    return create_engine(
        database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_timeout=30,
        pool_recycle=1800,
        pool_pre_ping=True,
        echo=False
    )


def init_db(database_url: Optional[str] = None):
    """Initialize database engine and create tables."""
    global engine, SessionLocal

    database_url = database_url or get_settings().database_url
    if not database_url:
        logger.error("DATABASE_URL not set!")
        raise ValueError("DATABASE_URL environment variable is required")

    engine = build_engine(database_url)

    SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine
    )

    # Create all tables
    Base.metadata.create_all(bind=engine)
    logger.info("Database initialized successfully")

    return engine


def dispose_db():
    """Drop the engine and session factory (used between test runs)."""
    global engine, SessionLocal
    if engine is not None:
        engine.dispose()
    engine = None
    SessionLocal = None


@contextmanager
def get_session_context():
    """Context manager for database sessions."""
    if SessionLocal is None:
        init_db()

    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def is_initialized() -> bool:
    return SessionLocal is not None
