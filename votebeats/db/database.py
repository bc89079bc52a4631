"""
Database connection and session management
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from votebeats.config import settings


def build_engine(database_url: str):
    """Create an engine; SQLite needs cross-thread access for the recompute worker"""
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False}
        )
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20
    )


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db(bind=None):
    """Create all tables"""
    # models must be imported so their tables register on Base.metadata
    from votebeats.db import models  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)

