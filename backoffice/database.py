from contextlib import contextmanager
from typing import Iterator
import logging

from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker

from backoffice.core.config import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.DATABASE_URL

if not DATABASE_URL:
    raise ValueError("[ERROR] DATABASE_URL not found!")

if settings.is_sqlite:
    # SQLite: single file, shared across the threadpool
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        echo=False,
    )
else:
    engine = create_engine(
        DATABASE_URL,
        connect_args={
            "connect_timeout": 10,
            "options": "-c statement_timeout=30000",  # 30s query timeout
        },
        echo=False,
        pool_pre_ping=True,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_recycle=settings.DATABASE_POOL_RECYCLE,
        pool_timeout=30,
    )

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def get_db():
    """Dependency for getting database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Run a unit of work atomically.

    Commits when the block finishes, rolls back and re-raises on any error,
    so a failed operation never leaves partial writes behind.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def test_connection() -> bool:
    """Test database connection - NON-BLOCKING."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        return True
    except Exception as e:
        logger.warning(f"[DB] Connection failed (continuing): {e}")
        return False


def init_db(bind=None) -> bool:
    """Create all tables registered on Base."""
    from backoffice.db.base import Base
    import backoffice.models  # noqa: F401  registers every model

    try:
        Base.metadata.create_all(bind=bind or engine)
        logger.info("[DB] Tables initialized")
        return True
    except Exception as e:
        logger.warning(f"[DB] Init warning: {e}")
        return False


def close_db_connection() -> None:
    """Close database connections."""
    engine.dispose()
    logger.info("[DB] Connections closed")
