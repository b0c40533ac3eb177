"""Engine and session factory for the Certificate Issuer database.

SQLite (the default under the data directory) shares one connection
across threads; any other URL is treated as PostgreSQL and pooled.
"""

import logging
from pathlib import Path
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from certissuer.config import DATABASE_URL

log = logging.getLogger(__name__)

_IS_SQLITE = DATABASE_URL.startswith("sqlite")


def _engine_options(is_sqlite: bool) -> dict[str, Any]:
    if is_sqlite:
        return {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    return {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 1800,  # seconds
    }


def _redacted_url(url: str) -> str:
    return url.split("@")[-1] if "@" in url else url


engine = create_engine(DATABASE_URL, **_engine_options(_IS_SQLITE))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@event.listens_for(engine, "connect")
def _sqlite_pragmas(dbapi_connection, connection_record):
    # WAL: readers are not blocked by a writer
    if _IS_SQLITE:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session dependency. Services commit explicitly."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_database() -> None:
    """Create missing tables, and the SQLite file's directory if needed."""
    from certissuer.db.models import Base

    log.info(f"Initializing database at {_redacted_url(DATABASE_URL)}")

    if DATABASE_URL.startswith("sqlite:///"):
        db_path = DATABASE_URL.removeprefix("sqlite:///")
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    Base.metadata.create_all(bind=engine)
    log.info("Database ready")
