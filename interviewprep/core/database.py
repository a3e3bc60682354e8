"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults
- Test database support (SQLite in memory)
- Table definitions for users, plans, daily usage and interviews

Timestamps are stored as naive local time: the usage day boundary is local
midnight, so every comparison against `user_usage.date` stays in one clock.
"""
from typing import Optional
from contextlib import contextmanager
from sqlalchemy import create_engine, MetaData, Table, Column, Integer, String, DateTime, Boolean, JSON, Text, Index, ForeignKey
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql import func, false
import os

from interviewprep.core.config import settings


# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour

# Global engine and session factory
_engine = None
_SessionLocal = None


def get_database_url() -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL")
    if test_url:
        return test_url

    return settings.DATABASE_URL


def build_engine(url: str):
    """Create an engine for `url` with pooling suited to the backend."""
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )
    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        pool_timeout=POOL_TIMEOUT,
        pool_recycle=POOL_RECYCLE,
        pool_pre_ping=True,
        echo=False,  # Set to True for SQL query logging
    )


def init_engine(database_url: Optional[str] = None):
    """
    Initialize the SQLAlchemy engine.

    Args:
        database_url: Optional override for DATABASE_URL
    """
    global _engine, _SessionLocal

    url = database_url or get_database_url()

    if not url:
        raise ValueError(
            "DATABASE_URL is not configured. "
            "Set DATABASE_URL in environment or .env file."
        )

    if _engine is not None:
        _engine.dispose()

    _engine = build_engine(url)

    # Create session factory
    _SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=_engine
    )

    return _engine


def get_engine():
    """Get the current SQLAlchemy engine."""
    global _engine
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    """Get the session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.

    Usage:
        with get_db_session() as session:
            session.execute(...)
    """
    SessionLocal = get_session_factory()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables():
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    engine = get_engine()
    metadata.create_all(bind=engine)


def drop_all_tables():
    """
    Drop all tables defined in metadata.

    WARNING: This is destructive! Only use in tests or development.
    """
    engine = get_engine()
    metadata.drop_all(bind=engine)


# Users table
users = Table(
    'users',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('email', String(255), nullable=False, unique=True),
    Column('name', String(255), nullable=True),
    Column('subscription_plan', String(50), nullable=True, server_default='free'),
    Column('subscription_status', String(50), nullable=True, server_default='active'),
    Column('created_at', DateTime, server_default=func.now(), nullable=False),
)

# Subscription plans (reference data, seeded once)
subscription_plans = Table(
    'subscription_plans',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('name', String(50), nullable=False, unique=True),
    Column('price', Integer, nullable=False),
    Column('currency', String(3), nullable=False, server_default='USD'),
    Column('interval', String(20), nullable=False, server_default='month'),
    Column('description', Text, nullable=True),
    # {"interviewsPerDay": int, "resultsPerDay": int, "retakesPerDay": int}, -1 = unlimited
    Column('features', JSON, nullable=True),
    Column('created_at', DateTime, server_default=func.now(), nullable=False),
    Column('updated_at', DateTime, nullable=True),
)

# Daily usage counters, one current row per (user, day)
user_usage = Table(
    'user_usage',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', Integer, ForeignKey('users.id'), nullable=False),
    Column('date', DateTime, nullable=False),
    Column('interviews_used', Integer, nullable=False, server_default='0'),
    Column('results_viewed', Integer, nullable=False, server_default='0'),
    Column('retakes_done', Integer, nullable=False, server_default='0'),
    Column('created_at', DateTime, server_default=func.now(), nullable=False),
    Column('updated_at', DateTime, nullable=True),
    # "most recent record for user on/after midnight"
    Index('idx_user_usage_user_date', 'user_id', 'date'),
)

# Mock interviews
interviews = Table(
    'interviews',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', Integer, ForeignKey('users.id'), nullable=False, index=True),
    Column('title', Text, nullable=True),
    Column('role', Text, nullable=False),
    Column('type', String(50), nullable=False),
    Column('level', String(50), nullable=False),
    Column('technologies', JSON, nullable=False),
    Column('questions', JSON, nullable=False),
    Column('completed', Boolean, nullable=False, server_default=false()),
    Column('created_at', DateTime, server_default=func.now(), nullable=False),
    Column('completed_at', DateTime, nullable=True),
    Index('idx_interviews_user_created', 'user_id', 'created_at'),
)
