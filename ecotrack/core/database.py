"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults (StaticPool for in-memory SQLite)
- Per-owner transactions that serialize one owner's read-modify-write cycles
- Table definitions for the ledger, profiles, challenges and badge awards
"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Generator, Iterator, Optional

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    insert,
    select,
    text,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from ecotrack.core.config import settings
from ecotrack.core.datetime_utils import utc_now

logger = logging.getLogger("ecotrack")

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

# One lock per owner in use; different owners never wait on each other.
_owner_locks: Dict[str, "_OwnerLock"] = {}
_owner_locks_guard = threading.Lock()


def get_database_url() -> str:
    """
    Get the database URL from settings.

    For testing, use TEST_DATABASE_URL if available.
    """
    return settings.TEST_DATABASE_URL or settings.DATABASE_URL


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

    if url.startswith("sqlite"):
        if ":memory:" in url or url.rstrip("/") == "sqlite:":
            _engine = create_engine(
                url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        else:
            _engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})
    else:
        _engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            pool_recycle=POOL_RECYCLE,
            echo=False,  # Set to True for SQL query logging
        )

    _SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=_engine,
    )

    return _engine


def get_engine():
    """Get the current SQLAlchemy engine."""
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    """Get the session factory."""
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


@contextmanager
def get_db_session() -> Iterator[Session]:
    """
    Context manager for database sessions.

    Commits on success, rolls back on any exception.

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


def get_db() -> Generator[Session, None, None]:
    """FastAPI-friendly DB dependency that yields a Session and closes it."""
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


class _OwnerLock:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


@contextmanager
def _owner_lock(owner_id: str) -> Iterator[None]:
    """Hold the owner's lock; the entry is dropped once nobody holds or awaits it."""
    with _owner_locks_guard:
        slot = _owner_locks.get(owner_id)
        if slot is None:
            slot = _owner_locks[owner_id] = _OwnerLock()
        slot.users += 1
    try:
        with slot.lock:
            yield
    finally:
        with _owner_locks_guard:
            slot.users -= 1
            if slot.users == 0:
                del _owner_locks[owner_id]


def ensure_profile_row(session: Session, owner_id: str) -> None:
    """Create the owner's profile row with configured defaults if it is missing."""
    exists = session.execute(
        select(carbon_profiles.c.owner_id).where(carbon_profiles.c.owner_id == owner_id)
    ).first()
    if exists:
        return
    now = utc_now()
    try:
        session.execute(
            insert(carbon_profiles).values(
                owner_id=owner_id,
                time_zone=settings.DEFAULT_TIME_ZONE,
                weekly_goal=settings.DEFAULT_WEEKLY_GOAL_KG,
                created_at=now,
                updated_at=now,
            )
        )
        session.flush()
    except IntegrityError:
        # Created by another process between the check and the insert; this is
        # the first statement of the transaction so nothing else is lost.
        session.rollback()


@contextmanager
def owner_transaction(owner_id: str) -> Iterator[Session]:
    """
    Atomic read-modify-write scope for one owner's records.

    Holds the in-process owner lock and locks the owner's profile row
    (SELECT ... FOR UPDATE where the backend supports it) for the duration of
    a single database transaction. Any exception rolls everything back.
    """
    with _owner_lock(owner_id):
        with get_db_session() as session:
            # Must stay the first statement of the transaction (see ensure_profile_row).
            ensure_profile_row(session, owner_id)
            session.execute(
                select(carbon_profiles.c.owner_id)
                .where(carbon_profiles.c.owner_id == owner_id)
                .with_for_update()
            )
            yield session


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


def reset_database():
    """
    Reset the database by dropping and recreating all tables.

    WARNING: This is destructive! Only use in tests.
    """
    drop_all_tables()
    create_all_tables()


def check_connection() -> bool:
    """
    Check if database connection is available.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.warning("db.connection_failed", exc_info=True)
        return False


# Per-owner running totals, streak state and preferences
carbon_profiles = Table(
    'carbon_profiles',
    metadata,
    Column('owner_id', String(100), primary_key=True),
    Column('total_impact', Numeric(18, 6), nullable=False, default=0),
    Column('total_saved', Numeric(18, 6), nullable=False, default=0),
    Column('activities_logged', Integer, nullable=False, default=0),
    Column('streak_days', Integer, nullable=False, default=0),
    Column('longest_streak', Integer, nullable=False, default=0),
    Column('last_active_day', Date, nullable=True),
    Column('time_zone', String(64), nullable=False),
    Column('weekly_goal', Numeric(12, 3), nullable=False),
    Column('created_at', DateTime(timezone=True), nullable=False),
    Column('updated_at', DateTime(timezone=True), nullable=False),
)

# Activity log: one row per user action, valued at write time
ledger_entries = Table(
    'ledger_entries',
    metadata,
    Column('id', String(32), primary_key=True),
    Column('owner_id', String(100), ForeignKey('carbon_profiles.owner_id'), nullable=False),
    Column('activity_id', String(100), nullable=False),
    Column('category_id', String(100), nullable=False),
    Column('quantity', Numeric(18, 6), nullable=False),
    Column('carbon_impact', Numeric(18, 6), nullable=False),
    Column('occurred_at', DateTime(timezone=True), nullable=False),
    Column('note', Text, nullable=True),
    Column('created_at', DateTime(timezone=True), nullable=False),
    # Composite index for history and window scans: (owner_id, occurred_at)
    Index('idx_ledger_entries_owner_occurred', 'owner_id', 'occurred_at'),
    Index('idx_ledger_entries_owner_category', 'owner_id', 'category_id'),
)

# A user's time-bounded attempt at a challenge template
challenge_instances = Table(
    'challenge_instances',
    metadata,
    Column('id', String(32), primary_key=True),
    Column('owner_id', String(100), ForeignKey('carbon_profiles.owner_id'), nullable=False),
    Column('template_id', String(100), nullable=False),
    Column('title', Text, nullable=False),
    Column('description', Text, nullable=False),
    Column('category_id', String(100), nullable=True),
    Column('metric', String(32), nullable=False),
    Column('target', Numeric(18, 6), nullable=False),
    Column('reward', Text, nullable=False),
    Column('icon', String(50), nullable=False),
    Column('started_at', DateTime(timezone=True), nullable=False),
    Column('ends_at', DateTime(timezone=True), nullable=False),
    Column('progress', Numeric(18, 6), nullable=False, default=0),
    Column('carbon_impact', Numeric(18, 6), nullable=False, default=0),
    Column('status', String(16), nullable=False),
    Column('completed_at', DateTime(timezone=True), nullable=True),
    Column('global_rank', Integer, nullable=True),
    Index('idx_challenge_instances_owner_template', 'owner_id', 'template_id', 'status'),
    Index('idx_challenge_instances_template_completed', 'template_id', 'status', 'completed_at'),
    Index('idx_challenge_instances_status_ends', 'status', 'ends_at'),
)

# Platforms a completed challenge has been shared to
challenge_shares = Table(
    'challenge_shares',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('instance_id', String(32), ForeignKey('challenge_instances.id'), nullable=False),
    Column('platform', String(50), nullable=False),
    Column('shared_at', DateTime(timezone=True), nullable=False),
    UniqueConstraint('instance_id', 'platform', name='uq_challenge_shares_instance_platform'),
)

# Badge unlock records; the pair (owner_id, badge_id) exists at most once
badge_awards = Table(
    'badge_awards',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('owner_id', String(100), ForeignKey('carbon_profiles.owner_id'), nullable=False),
    Column('badge_id', String(100), nullable=False),
    Column('awarded_at', DateTime(timezone=True), nullable=False),
    UniqueConstraint('owner_id', 'badge_id', name='uq_badge_awards_owner_badge'),
    Index('idx_badge_awards_owner', 'owner_id'),
)
