"""
Database connection management for the Doctrine Index.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional, Union

from .paths import SCHEMA_DIR, resolve_db_path
from .util import info, warn

SCHEMA_FILE = SCHEMA_DIR / "systematic.sql"


@contextmanager
def get_conn(
    db_path: Optional[Union[str, Path]] = None,
    readonly: bool = False,
) -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database connections.

    Args:
        db_path: Optional explicit database path (see paths.resolve_db_path)
        readonly: If True, open in read-only mode

    Yields:
        sqlite3.Connection with row_factory set to Row and foreign keys on
    """
    path = resolve_db_path(db_path)
    uri = f"file:{path}?mode=ro" if readonly else str(path)
    conn = sqlite3.connect(uri, uri=readonly)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    try:
        yield conn
    finally:
        conn.close()


def ping(db_path: Optional[Union[str, Path]] = None) -> bool:
    """
    Check if the database is reachable.

    Returns:
        True if database exists and can be connected to
    """
    if not resolve_db_path(db_path).exists():
        return False

    try:
        with get_conn(db_path, readonly=True) as conn:
            conn.execute("SELECT 1")
        return True
    except sqlite3.Error:
        return False


def apply_schema(db_path: Optional[Union[str, Path]] = None, quiet: bool = False) -> None:
    """
    Apply the systematic theology schema SQL to the database (idempotent).
    """
    if not SCHEMA_FILE.exists():
        warn(f"Schema file not found: {SCHEMA_FILE}")
        return
    sql = SCHEMA_FILE.read_text(encoding="utf-8")
    if not quiet:
        info(f"Applying schema from: {SCHEMA_FILE}")
    with get_conn(db_path) as conn:
        conn.executescript(sql)
        conn.commit()
