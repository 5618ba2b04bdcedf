"""Database configuration and utilities."""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from config import Settings


def build_engine(settings: Settings) -> Engine:
    """Create the engine for ``settings.database_url``.

    SQLite connections are shared across worker threads; an in-memory
    database keeps a single connection so every session sees the same data.
    Server databases get a bounded connection pool.
    """
    url = settings.database_url
    if url.startswith("sqlite"):
        if url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


@contextmanager
def get_session(engine: Engine) -> Iterator[Session]:
    """Get a database session context manager."""
    with Session(engine, expire_on_commit=False) as session:
        yield session


def init_db(engine: Engine) -> None:
    """Initialize database tables."""
    import models  # noqa: F401

    SQLModel.metadata.create_all(engine)
