"""Database engine & session utilities.

Sync engine + classic session maker.  The generation worker runs inside
Celery's prefork pool, so there is no event loop to share a session with.
"""

import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.config import settings
from app.db.base import Base
from app import models  # noqa: F401 - registers every table on Base.metadata

# ---------------------------------------------------------------------------
# Engine & session factory
# ---------------------------------------------------------------------------

logger = logging.getLogger(__name__)
logger.info("Creating database engine for %s", settings.DATABASE_URL.split('@')[-1])
engine = create_engine(settings.DATABASE_URL, echo=settings.DB_ECHO, future=True)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def create_tables() -> None:  # pragma: no cover – rarely mocked in tests
    """Create all tables if they do not yet exist. Harmless when they do."""

    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ensured")
    except Exception as exc:  # broad except OK in one-off helper
        logger.exception("Could not create DB tables: %s", exc)

