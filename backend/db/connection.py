"""SQLite connection factory for the story store.

The API process keeps one connection for its lifetime while CLI commands open
a short-lived one per invocation, so both may write to the same file at once.
WAL mode plus a busy timeout lets the CLI wait for the server's write lock
instead of failing with ``database is locked``.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional, Union

from backend.config import settings
from backend.observability import get_logger

log = get_logger(__name__)

MEMORY = ":memory:"
BUSY_TIMEOUT_MS = 5000


def get_connection(db_path: Optional[Union[str, Path]] = None) -> sqlite3.Connection:
    """Open a connection with foreign keys enforced.

    Deleting a story cascades to its pages, choices and parties; deleting a
    page cascades to its own choices and turns incoming choices back into
    unwritten ones.  None of that happens unless ``foreign_keys`` is on, which
    SQLite requires per connection.

    Args:
        db_path: Database file, or ``":memory:"``.  Defaults to
            ``settings.db_path``.
    """
    path = str(db_path or settings.db_path)
    in_memory = path == MEMORY
    if not in_memory:
        settings.ensure_workspace()

    conn = sqlite3.connect(path, check_same_thread=False, timeout=BUSY_TIMEOUT_MS / 1000)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    if not in_memory:
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute(f"PRAGMA busy_timeout = {BUSY_TIMEOUT_MS}")

    log.debug("db_connected", path=path)
    return conn
