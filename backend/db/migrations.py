"""Schema setup and versioned migrations.

``schema.sql`` holds the base tables and is replayed on every start (all
statements are ``IF NOT EXISTS``).  Changes made after a database may already
exist in the wild go into ``MIGRATIONS`` instead, one statement per version,
and are recorded in ``schema_version`` once applied.
"""

from __future__ import annotations

import sqlite3

from backend.config import settings
from backend.observability import get_logger

log = get_logger(__name__)

MIGRATIONS: list[tuple[int, str]] = [
    # Reader lookups and progress queries filter parties by story.
    (1, "CREATE INDEX IF NOT EXISTS idx_parties_story ON parties(story_id)"),
    # Editing a page counts as editing its story (drives "recently updated").
    (
        2,
        """
        CREATE TRIGGER IF NOT EXISTS pages_touch_story
        AFTER UPDATE ON pages
        BEGIN
            UPDATE stories SET updated_at = NEW.updated_at WHERE id = NEW.story_id;
        END
        """,
    ),
]


def init_db(conn: sqlite3.Connection) -> None:
    """Create the base schema, then apply pending migrations.  Idempotent."""
    # executescript() commits any open transaction first; the script is DDL only.
    conn.executescript(settings.schema_path.read_text(encoding="utf-8"))
    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_version (
                version    INTEGER PRIMARY KEY,
                applied_at INTEGER DEFAULT (CAST(strftime('%s', 'now') AS INTEGER))
            )
            """
        )
    migrate(conn)


def current_version(conn: sqlite3.Connection) -> int:
    """Highest applied migration version (0 on a database without any)."""
    row = conn.execute("SELECT COALESCE(MAX(version), 0) FROM schema_version").fetchone()
    return row[0]


def migrate(conn: sqlite3.Connection) -> list[int]:
    """Apply migrations newer than :func:`current_version`, in order.

    Returns:
        The versions applied by this call.
    """
    applied: list[int] = []
    start = current_version(conn)
    for version, sql in sorted(MIGRATIONS):
        if version <= start:
            continue
        with conn:
            conn.execute(sql)
            conn.execute("INSERT INTO schema_version(version) VALUES (?)", (version,))
        applied.append(version)
    if applied:
        log.info("db_migrated", versions=applied)
    return applied
