"""Database connection and session management for tidyWeek.

Tasks live in one relational store selected by `DATABASE_URL`:
- SQLite file (default for dev) or `sqlite:///:memory:` for throwaway runs
- PostgreSQL, including `postgres://` URLs as handed out by hosting providers
"""

import logging
import os
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.pool import StaticPool
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def normalize_database_url(database_url: str) -> str:
    """Rewrite the legacy `postgres://` scheme, which SQLAlchemy no longer accepts."""
    if database_url.startswith("postgres://"):
        return "postgresql://" + database_url[len("postgres://"):]
    return database_url


DATABASE_URL = normalize_database_url(os.getenv("DATABASE_URL", "sqlite:///./tidyweek.db"))


def _is_sqlite_url(database_url: str) -> bool:
    return "sqlite" in (database_url or "")


def _is_in_memory_sqlite(database_url: str) -> bool:
    return _is_sqlite_url(database_url) and (":memory:" in database_url or database_url.rstrip("/").endswith("sqlite:"))


def get_engine_kwargs(database_url: str) -> dict:
    """Return create_engine kwargs for a DB URL without connecting.

    SQLite engines are shared by FastAPI's worker threads, so same-thread
    checks are off; an in-memory database additionally needs a single shared
    connection or every thread would see its own empty schema. Other
    databases get a small pool sized by DB_POOL_SIZE, DB_MAX_OVERFLOW and
    DB_POOL_TIMEOUT_SEC.
    """
    engine_kwargs: dict = {
        "echo": os.getenv("DEBUG", "False").lower() == "true",
        "pool_pre_ping": True,
    }

    if _is_sqlite_url(database_url):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if _is_in_memory_sqlite(database_url):
            engine_kwargs["poolclass"] = StaticPool
        return engine_kwargs

    engine_kwargs["pool_size"] = int(os.getenv("DB_POOL_SIZE", "5"))
    engine_kwargs["max_overflow"] = int(os.getenv("DB_MAX_OVERFLOW", "5"))
    engine_kwargs["pool_timeout"] = int(os.getenv("DB_POOL_TIMEOUT_SEC", "30"))
    return engine_kwargs


def _set_sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    try:
        # Purging a user must cascade to their tasks
        cursor.execute("PRAGMA foreign_keys=ON")
        # Readers keep working while a lifecycle pass writes its batches
        cursor.execute("PRAGMA journal_mode=WAL")
    finally:
        cursor.close()


def build_engine(database_url: str) -> Engine:
    """Create an engine; SQLite engines get their connection pragmas attached."""
    database_url = normalize_database_url(database_url)
    built = create_engine(database_url, **get_engine_kwargs(database_url))
    if _is_sqlite_url(database_url):
        event.listen(built, "connect", _set_sqlite_pragmas)
    return built


# Create engine (module-level singleton)
engine = build_engine(DATABASE_URL)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for declarative models
Base = declarative_base()


def get_db() -> Session:
    """Get database session (dependency for FastAPI)."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Initialize the users/tasks schema.

    - SQLite: `create_all()` on startup.
    - PostgreSQL: `create_all()` as well, unless `RUN_MIGRATIONS=true`, in
      which case Alembic upgrades the database to head.
    """
    # Register ORM models on Base.metadata
    from tidyweek.database import models  # noqa: F401

    run_migrations = os.getenv("RUN_MIGRATIONS", "False").lower() == "true"
    if run_migrations and not _is_sqlite_url(DATABASE_URL):
        from alembic import command
        from alembic.config import Config

        logger.info("Upgrading database schema with Alembic")
        alembic_cfg = Config(os.getenv("ALEMBIC_INI", "alembic.ini"))
        alembic_cfg.set_main_option("sqlalchemy.url", DATABASE_URL)
        command.upgrade(alembic_cfg, "head")
        return

    logger.info(f"Creating database schema on {engine.url.get_backend_name()}")
    Base.metadata.create_all(bind=engine)
