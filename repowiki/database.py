"""Engine, session factory and declarative base.

The URL comes from ``settings.database_url`` and is read once at import,
so tests set ``DATABASE_URL`` before importing the package.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .core.config import settings

DATABASE_URL = settings.database_url


def is_postgresql() -> bool:
    return DATABASE_URL.startswith("postgresql")


def _build_engine(url: str) -> Engine:
    if not url.startswith("sqlite"):
        # Long-running jobs hold a session for minutes; pre-ping drops
        # connections the server closed in the meantime.
        return create_engine(url, pool_size=5, max_overflow=10, pool_recycle=1800, pool_pre_ping=True)

    # The worker thread and request threads share the SQLite file.
    sqlite_engine = create_engine(url, connect_args={"check_same_thread": False})

    @event.listens_for(sqlite_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return sqlite_engine


engine = _build_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db() -> None:
    """Create missing tables for every model."""
    from . import models  # noqa: F401  (import registers the models on Base.metadata)

    Base.metadata.create_all(bind=engine)


def get_db():
    """FastAPI dependency yielding one session per request.

    The session is rolled back if the request raises, then closed.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
