from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from typing import Generator, Set
import logging
import uuid
import redis
from .config import settings

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    # PostgreSQL connection pool settings
    return {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 30,
        "pool_recycle": 1800,  # Recycle connections after 30 minutes
        "pool_pre_ping": True,
    }


engine = create_engine(settings.get_database_url, **_engine_options(settings.get_database_url))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def new_uuid() -> str:
    """Primary key factory for every table except users."""
    return str(uuid.uuid4())

# Connections are opened lazily, on the first command
redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)

# Columns every notifications table must carry, old deployments included
NOTIFICATION_COLUMNS = {
    "id", "recipient_id", "recipient_role", "type", "title", "message",
    "metadata", "created_at", "is_read", "read_at",
}

# Database dependency
def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# Redis dependency
def get_redis():
    """Get Redis client."""
    return redis_client

# Schema helpers
def table_exists(table_name: str) -> bool:
    """Check whether a table is present in the live database."""
    return inspect(engine).has_table(str(table_name).lower())

def get_columns(table_name: str) -> Set[str]:
    """Return the column names of a live table, or an empty set if it is missing."""
    if not table_exists(table_name):
        return set()
    return {column["name"] for column in inspect(engine).get_columns(str(table_name).lower())}

def ensure_notifications_table() -> None:
    """Make sure the notifications table exists and carries the expected columns."""
    from ..models.notification import Notification

    Notification.__table__.create(bind=engine, checkfirst=True)

    missing = NOTIFICATION_COLUMNS - get_columns("notifications")
    if missing:
        logger.warning(
            f"notifications table is missing columns: {', '.join(sorted(missing))}"
        )

# Database initialization
def init_db():
    """Initialize database tables."""
    from .. import models  # noqa: F401  (registers every model on Base.metadata)

    Base.metadata.create_all(bind=engine)
    ensure_notifications_table()
