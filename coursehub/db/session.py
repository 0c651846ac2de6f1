"""Database engine and session factory."""

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from coursehub.core.config import get_settings


SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False)


@lru_cache
def get_engine() -> Engine:
    settings = get_settings()
    return create_engine(settings.database_url, pool_pre_ping=True, echo=settings.debug)


def get_session() -> Session:
    """Open a new session bound to the configured database."""
    return SessionLocal(bind=get_engine())
