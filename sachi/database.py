"""Database engine setup, table creation and users-schema detection."""

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sqlalchemy import Engine, create_engine, event, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base

logger = logging.getLogger(__name__)

Base: Any = declarative_base()

# Applied to every new pool connection; failures are logged, never raised.
SQLITE_PRAGMAS = (
    "PRAGMA journal_mode = WAL",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA foreign_keys = ON",
)

MODERN_NAME_COLUMN = "name"
LEGACY_NAME_COLUMN = "username"


class StoreInitError(Exception):
    """Raised when the database cannot be opened, pinged or created."""


@dataclass(frozen=True)
class UserSchema:
    """Layout of the users table, detected once when the store opens."""

    name_column: str = MODERN_NAME_COLUMN
    has_company: bool = True

    @property
    def is_legacy(self) -> bool:
        return self.name_column != MODERN_NAME_COLUMN or not self.has_company


def _apply_pragmas(dbapi_connection: sqlite3.Connection, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    try:
        for pragma in SQLITE_PRAGMAS:
            try:
                cursor.execute(pragma)
            except sqlite3.Error as e:
                logger.warning(f"Failed to apply '{pragma}': {e}")
    finally:
        cursor.close()


def create_sqlite_engine(db_path: Path) -> Engine:
    """Create an engine for the SQLite file at db_path, creating its directory."""
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
        pool_pre_ping=True,
    )
    event.listen(engine, "connect", _apply_pragmas)
    return engine


def init_db(engine: Engine) -> None:
    """Create all tables and indexes that don't exist yet."""
    # Import all models here so they are registered with Base.metadata
    from sachi import models  # noqa: F401

    with engine.begin() as conn:
        Base.metadata.create_all(bind=conn)
        # create_all skips indexes on tables that already existed
        for table in Base.metadata.sorted_tables:
            for index in table.indexes:
                index.create(bind=conn, checkfirst=True)


def detect_user_schema(engine: Engine) -> UserSchema:
    """Inspect the users table and work out which column layout it uses.

    Prefers the modern ``name`` column and falls back to the legacy
    ``username`` column. ``company`` is optional in older databases.
    """
    columns = {column["name"] for column in inspect(engine).get_columns("users")}

    if MODERN_NAME_COLUMN in columns:
        name_column = MODERN_NAME_COLUMN
    elif LEGACY_NAME_COLUMN in columns:
        name_column = LEGACY_NAME_COLUMN
    else:
        raise StoreInitError(
            f"users table has neither '{MODERN_NAME_COLUMN}' nor '{LEGACY_NAME_COLUMN}' column"
        )

    schema = UserSchema(name_column=name_column, has_company="company" in columns)
    logger.info(
        f"users schema detected: name_column={schema.name_column}, "
        f"has_company={schema.has_company}"
    )
    return schema


def open_database(db_path: Path) -> tuple[Engine, UserSchema]:
    """Open the database, make sure the tables exist and detect the users layout."""
    try:
        engine = create_sqlite_engine(db_path)
    except (OSError, SQLAlchemyError) as e:
        raise StoreInitError(f"Failed to open database: {e}") from e

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        engine.dispose()
        raise StoreInitError(f"Failed to ping database: {e}") from e

    try:
        init_db(engine)
        schema = detect_user_schema(engine)
    except SQLAlchemyError as e:
        engine.dispose()
        raise StoreInitError(f"Failed to create tables: {e}") from e
    except StoreInitError:
        engine.dispose()
        raise

    logger.info(f"Database initialized successfully at {db_path}")
    return engine, schema
