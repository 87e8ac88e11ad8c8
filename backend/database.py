from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from pathlib import Path

Base = declarative_base()


def create_db_engine(database_url: str) -> Engine:
    """Create an engine for the registry database (SQLite with WAL journaling)"""
    if database_url.startswith("sqlite:///") and database_url != "sqlite:///:memory:":
        Path(database_url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(
        database_url,
        connect_args={'check_same_thread': False},
        echo=False,
        pool_pre_ping=True,  # Verify connections are alive before using
    )

    # WAL keeps the last committed registry intact if we crash mid-write
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=FULL")
        cursor.execute("PRAGMA busy_timeout=5000")  # Wait up to 5s for locks instead of failing immediately
        cursor.close()

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)
