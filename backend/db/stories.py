"""CRUD operations for the ``stories`` table."""

from __future__ import annotations

import sqlite3
import uuid
from time import time
from typing import Any, Optional

from backend.db.models import STORY_STATUSES, Story


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_story(row: sqlite3.Row) -> Story:
    return Story(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        author_id=row["author_id"],
        status=row["status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _check_status(status: str) -> None:
    if status not in STORY_STATUSES:
        raise ValueError(f"Invalid story status: {status!r}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def create_story(
    conn: sqlite3.Connection,
    title: str,
    author_id: str,
    description: Optional[str] = None,
    status: str = "draft",
    story_id: Optional[str] = None,
) -> Story:
    """Insert a new story and return it.

    Raises:
        ValueError: If *title* is blank or *status* is not a known status.
    """
    if not title or not title.strip():
        raise ValueError("Story title is required")
    _check_status(status)

    sid = story_id or str(uuid.uuid4())
    now = int(time())
    with conn:
        conn.execute(
            """
            INSERT INTO stories (id, title, description, author_id, status, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (sid, title, description, author_id, status, now, now),
        )
    return get_story(conn, sid)  # type: ignore[return-value]


def get_story(conn: sqlite3.Connection, story_id: str) -> Optional[Story]:
    """Fetch a single story.  Returns ``None`` if not found."""
    row = conn.execute("SELECT * FROM stories WHERE id = ?", (story_id,)).fetchone()
    return _row_to_story(row) if row else None


def list_stories(
    conn: sqlite3.Connection,
    status: Optional[str] = None,
    author_id: Optional[str] = None,
) -> list[Story]:
    """Return stories, newest first, optionally filtered by status and author."""
    clauses: list[str] = []
    params: list[Any] = []
    if status:
        _check_status(status)
        clauses.append("status = ?")
        params.append(status)
    if author_id:
        clauses.append("author_id = ?")
        params.append(author_id)

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    rows = conn.execute(
        f"SELECT * FROM stories {where} ORDER BY created_at DESC, rowid DESC",  # noqa: S608
        params,
    ).fetchall()
    return [_row_to_story(r) for r in rows]


def update_story(conn: sqlite3.Connection, story_id: str, **kwargs: Any) -> Story:
    """Update one or more fields on a story.

    Allowed keyword arguments: ``title``, ``description``, ``status``.
    ``updated_at`` is always refreshed automatically.

    Raises:
        ValueError: If ``story_id`` does not exist or no valid fields are given.
    """
    if get_story(conn, story_id) is None:
        raise ValueError(f"Story not found: {story_id!r}")

    allowed = {"title", "description", "status"}
    updates: dict[str, Any] = {}
    for key, value in kwargs.items():
        if key not in allowed:
            raise ValueError(f"Cannot update field {key!r}")
        if key == "status":
            _check_status(value)
        updates[key] = value

    if not updates:
        raise ValueError("No valid fields provided to update_story()")

    updates["updated_at"] = int(time())
    set_clause = ", ".join(f"{col} = ?" for col in updates)
    values = list(updates.values()) + [story_id]

    with conn:
        conn.execute(
            f"UPDATE stories SET {set_clause} WHERE id = ?", values  # noqa: S608
        )

    return get_story(conn, story_id)  # type: ignore[return-value]


def delete_story(conn: sqlite3.Connection, story_id: str) -> None:
    """Delete a story; its pages, choices and parties go with it (CASCADE).

    This is a no-op if the story does not exist.
    """
    with conn:
        conn.execute("DELETE FROM stories WHERE id = ?", (story_id,))
