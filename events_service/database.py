"""Database engine (bounded connection pool) and declarative base."""
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from events_service.config import settings

Base = declarative_base()


def create_db_engine(url: str) -> Engine:
    """Build an engine whose pool hands out at most pool_size + max_overflow connections."""
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
    )


@lru_cache
def get_engine() -> Engine:
    return create_db_engine(settings.DATABASE_URL)
