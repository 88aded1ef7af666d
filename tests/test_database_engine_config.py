
def test_get_engine_kwargs_sqlite_has_check_same_thread(monkeypatch):
    # Import lazily so monkeypatch can affect env usage deterministically.
    from tidyweek.database import database as db

    kwargs = db.get_engine_kwargs("sqlite:///./tidyweek.db")
    assert "connect_args" in kwargs
    assert kwargs["connect_args"]["check_same_thread"] is False
    # SQLite should not require pool sizing knobs.
    assert "pool_size" not in kwargs
    assert "max_overflow" not in kwargs
    assert kwargs["pool_pre_ping"] is True


def test_get_engine_kwargs_postgres_has_conservative_pooling(monkeypatch):
    from tidyweek.database import database as db

    monkeypatch.setenv("DB_POOL_SIZE", "7")
    monkeypatch.setenv("DB_MAX_OVERFLOW", "3")
    monkeypatch.setenv("DB_POOL_TIMEOUT_SEC", "15")

    kwargs = db.get_engine_kwargs("postgresql+psycopg://u:p@localhost:5432/db")
    assert "connect_args" not in kwargs
    assert kwargs["pool_pre_ping"] is True
    assert kwargs["pool_size"] == 7
    assert kwargs["max_overflow"] == 3
    assert kwargs["pool_timeout"] == 15


def test_debug_flag_enables_echo(monkeypatch):
    from tidyweek.database import database as db

    monkeypatch.setenv("DEBUG", "true")
    assert db.get_engine_kwargs("sqlite:///./tidyweek.db")["echo"] is True

    monkeypatch.setenv("DEBUG", "false")
    assert db.get_engine_kwargs("sqlite:///./tidyweek.db")["echo"] is False


def test_sqlite_url_detection():
    # build_engine only attaches SQLite pragmas to SQLite engines.
    from tidyweek.database import database as db

    assert db._is_sqlite_url("sqlite:///./tidyweek.db") is True
    assert db._is_sqlite_url("postgresql+psycopg://u:p@localhost/db") is False


def test_create_all_builds_task_schema(tmp_path):
    """A fresh SQLite file gets the tasks table with lifecycle columns."""
    from sqlalchemy import create_engine, inspect
    from tidyweek.database.database import Base
    from tidyweek.database import models  # noqa: F401

    engine = create_engine(f"sqlite:///{tmp_path / 'fresh.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)

    columns = {column["name"] for column in inspect(engine).get_columns("tasks")}
    assert {"category", "completed", "completed_at", "removed", "removed_at", "created_at"} <= columns
    assert "ix_tasks_user_removed" in {index["name"] for index in inspect(engine).get_indexes("tasks")}
    engine.dispose()


def test_in_memory_sqlite_shares_one_connection():
    from sqlalchemy.pool import StaticPool
    from tidyweek.database import database as db

    assert db.get_engine_kwargs("sqlite:///:memory:")["poolclass"] is StaticPool
    assert "poolclass" not in db.get_engine_kwargs("sqlite:///./tidyweek.db")


def test_legacy_postgres_scheme_is_normalized():
    from tidyweek.database import database as db

    assert db.normalize_database_url("postgres://u:p@host/db") == "postgresql://u:p@host/db"
    assert db.normalize_database_url("postgresql+psycopg://u:p@host/db") == "postgresql+psycopg://u:p@host/db"
    assert db.normalize_database_url("sqlite:///./tidyweek.db") == "sqlite:///./tidyweek.db"


def test_built_sqlite_engine_enforces_foreign_keys(tmp_path):
    from sqlalchemy import text
    from tidyweek.database import database as db

    engine = db.build_engine(f"sqlite:///{tmp_path / 'pragmas.db'}")
    with engine.connect() as conn:
        assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1
        assert conn.execute(text("PRAGMA journal_mode")).scalar() == "wal"
    engine.dispose()
