"""Database engine and session management"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from merchant_gateway.config import settings
from merchant_gateway.infrastructure.database.models import Base


def build_engine(database_url: str) -> Engine:
    """Create an engine; pooled for server databases, default pooling for SQLite"""
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})

    # Pool shared by request handlers and rate limit worker threads
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=10,
        pool_recycle=3600,
        connect_args={"connect_timeout": 5},
    )


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def get_db() -> Session:
    """Dependency injection for database sessions"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create missing tables (rate_limit, merchant)"""
    Base.metadata.create_all(bind=engine)
