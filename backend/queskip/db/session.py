"""Database session management."""

import os
from collections.abc import Generator
from typing import Annotated

from fastapi import Depends
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from queskip.core.config import settings


# Execution options for a transaction that will write. On SQLite it begins
# with BEGIN IMMEDIATE and takes the write lock up front, so writers serialize
# the same way SELECT ... FOR UPDATE serializes them on PostgreSQL. Other
# dialects ignore it.
WRITE_TRANSACTION = {"sqlite_begin_mode": "IMMEDIATE"}


def create_db_engine(database_url: str, **engine_kwargs) -> Engine:
    """Create an engine for ``database_url``.

    SQLite transactions begin deferred (plain ``BEGIN``) unless the
    connection carries the ``WRITE_TRANSACTION`` options, so reads never
    queue behind the database write lock.
    """
    connect_args = {}
    pool_config = {}

    if database_url.startswith("sqlite"):
        # Ensure data directory exists for file-backed databases
        if ":///" in database_url:
            db_path = database_url.split(":///", 1)[1]
            if db_path and not db_path.startswith(":memory:"):
                db_dir = os.path.dirname(db_path)
                if db_dir:
                    os.makedirs(db_dir, exist_ok=True)

        connect_args = {
            "check_same_thread": False,
            "timeout": settings.sqlite_busy_timeout_seconds,
        }
    else:
        # PostgreSQL connection pooling configuration
        pool_config = {
            "pool_size": 20,          # Number of connections to keep open
            "max_overflow": 40,       # Additional connections allowed beyond pool_size
            "pool_pre_ping": True,    # Test connections before using them
            "pool_recycle": 3600,     # Recycle connections after 1 hour
        }

    pool_config.update(engine_kwargs)
    engine = create_engine(
        database_url,
        connect_args=connect_args,
        echo=settings.debug and settings.log_level == "DEBUG",
        **pool_config,
    )

    if database_url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            # Let SQLAlchemy emit BEGIN itself instead of pysqlite's implicit one
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def do_begin(conn):
            mode = conn.get_execution_options().get("sqlite_begin_mode")
            conn.exec_driver_sql(f"BEGIN {mode}" if mode else "BEGIN")

    return engine


def begin_write(db: Session) -> None:
    """Finish whatever ``db`` has open and start a write transaction.

    A deferred SQLite transaction that has read cannot upgrade to a writer
    while another connection holds the write lock, so callers about to write
    start over with the lock taken at BEGIN.
    """
    if db.in_transaction():
        db.commit()
    db.connection(execution_options=WRITE_TRANSACTION)


engine = create_db_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Get database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Type alias for dependency injection
DbSession = Annotated[Session, Depends(get_db)]
