"""Database utilities for SQLAlchemy 2.x.

Provides engine/session factories, a convenient session scope context manager,
and schema setup including the FTS5 annotation index.
SQLite-only: the full-text index and its sync triggers are FTS5 specific.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from booktalk.exceptions import ConfigError, StoreError
from booktalk.feed.ordering import SQL_FUNCTION_NAME, shuffle_key

from . import models

logger = logging.getLogger(__name__)

FTS_TABLE = "annotations_fts"

# Index covers caption and transcription only; keyed by the annotations rowid.
_FTS_DDL = (
    f"""
    CREATE VIRTUAL TABLE IF NOT EXISTS {FTS_TABLE} USING fts5(
        caption,
        transcription,
        content='annotations',
        content_rowid='rowid'
    )
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS annotations_ai AFTER INSERT ON annotations BEGIN
        INSERT INTO {FTS_TABLE}(rowid, caption, transcription)
        VALUES (NEW.rowid, NEW.caption, NEW.transcription);
    END
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS annotations_ad AFTER DELETE ON annotations BEGIN
        INSERT INTO {FTS_TABLE}({FTS_TABLE}, rowid, caption, transcription)
        VALUES ('delete', OLD.rowid, OLD.caption, OLD.transcription);
    END
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS annotations_au AFTER UPDATE ON annotations BEGIN
        INSERT INTO {FTS_TABLE}({FTS_TABLE}, rowid, caption, transcription)
        VALUES ('delete', OLD.rowid, OLD.caption, OLD.transcription);
        INSERT INTO {FTS_TABLE}(rowid, caption, transcription)
        VALUES (NEW.rowid, NEW.caption, NEW.transcription);
    END
    """,
)


def normalize_url(url: str) -> str:
    """Return a SQLite SQLAlchemy URL for `url`.

    Accepts ``sqlite://`` URLs as-is and turns a bare filesystem path into
    ``sqlite:///<path>``. Any other scheme is rejected.
    """
    if url.startswith("sqlite:"):
        return url
    if "://" in url:
        raise ConfigError(f"Unsupported database URL {url!r}. Expected 'sqlite:///path'.")
    return f"sqlite:///{Path(url).expanduser()}"


def _on_connect(dbapi_connection: sqlite3.Connection, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()
    dbapi_connection.create_function(SQL_FUNCTION_NAME, 2, shuffle_key, deterministic=True)


def get_engine(url: str, *, echo: bool = False) -> Engine:
    """Create a SQLAlchemy engine for an embedded SQLite database.

    Parameters
    ----------
    url:
        SQLAlchemy URL such as "sqlite:///booktalk.sqlite", or a bare path.
    echo:
        If True, SQL statements are logged (useful for debugging).
    """
    engine = create_engine(normalize_url(url), echo=echo)
    # Foreign keys (cascade deletes) and the feed ordering function are
    # per-connection in SQLite.
    event.listen(engine, "connect", _on_connect)
    return engine


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create a sessionmaker bound to the provided engine."""
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations.

    Commits on success, rolls back on error, and always closes the session.
    Database failures surface as `StoreError` with the original chained.
    """
    session = factory()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise StoreError(str(exc)) from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine) -> None:
    """Create tables, the FTS5 index and its sync triggers if they do not exist."""
    try:
        models.Base.metadata.create_all(bind=engine)
        with engine.begin() as conn:
            for ddl in _FTS_DDL:
                conn.exec_driver_sql(ddl)
    except SQLAlchemyError as exc:
        raise StoreError(f"Failed to initialise schema: {exc}") from exc
    logger.info("Database schema ready at %s", engine.url)


def rebuild_search_index(engine: Engine) -> None:
    """Rebuild the full-text index from the annotations table.

    The index is keyed on the implicit rowid of `annotations`, whose primary
    key is TEXT. `VACUUM` may renumber those rowids, so run this after every
    `VACUUM` or searches can return the wrong rows.
    """
    try:
        with engine.begin() as conn:
            conn.exec_driver_sql(f"INSERT INTO {FTS_TABLE}({FTS_TABLE}) VALUES ('rebuild')")
    except SQLAlchemyError as exc:
        raise StoreError(f"Failed to rebuild search index: {exc}") from exc
    logger.info("Rebuilt %s", FTS_TABLE)
