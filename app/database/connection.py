"""
Database engine, session factory and the store-call guard.

Every pricing store function runs its queries inside ``store_call`` so that
driver or connection failures surface as ``StoreUnavailable`` instead of raw
SQLAlchemy errors.
"""
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.core.config import settings
from app.core.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)


def _connect_args(url: str, timeout: float) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": timeout}
    if url.startswith("postgresql"):
        return {"options": f"-c statement_timeout={int(timeout * 1000)}"}
    return {}


engine = create_engine(
    settings.DATABASE_URL,
    connect_args=_connect_args(settings.DATABASE_URL, settings.STORE_TIMEOUT_SECONDS),
    pool_pre_ping=True,
    **({} if settings.DATABASE_URL.startswith("sqlite") else {"pool_timeout": settings.STORE_TIMEOUT_SECONDS}),
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def store_call(db: Session, operation: str):
    """Run store queries, translating driver failures into StoreUnavailable."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.exception("Pricing store call failed: %s", operation)
        try:
            db.rollback()
        except SQLAlchemyError:
            logger.warning("Rollback failed after %s", operation)
        raise StoreUnavailable(operation) from e
