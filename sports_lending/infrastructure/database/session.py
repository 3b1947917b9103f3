"""Database session management and the transaction primitive"""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from sports_lending.config import settings
from sports_lending.domain.exceptions import ConcurrencyConflictError, StoreFailureError

logger = logging.getLogger(__name__)


def build_engine(database_url: str):
    """Create an engine; pooled server databases recycle connections after an hour"""
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})

    return create_engine(
        database_url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=10,
        max_overflow=10,
        pool_recycle=3600,
    )


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Iterator[Session]:
    """Dependency injection for database sessions"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Atomic unit of work: commit when the block completes, roll back on any error.

    Unique-constraint violations at commit mean a concurrent writer got there
    first and surface as ConcurrencyConflictError. Other database errors surface
    as StoreFailureError with the original chained. Domain errors propagate as-is.
    """
    try:
        yield db
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Transaction conflict: {e.orig}")
        raise ConcurrencyConflictError("Concurrent update detected, retry the operation") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Store failure: {e}")
        raise StoreFailureError(str(e)) from e
    except Exception:
        db.rollback()
        raise
