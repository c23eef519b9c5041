"""CRUD operations for the ``pages`` table.

Pages are always listed in creation order: that order is the "input order"
the graph engine uses for root tie-breaks and orphan placement.
"""

from __future__ import annotations

import sqlite3
import uuid
from time import time
from typing import Any, Optional

from backend.db.models import Page


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_page(row: sqlite3.Row) -> Page:
    return Page(
        id=row["id"],
        story_id=row["story_id"],
        content=row["content"],
        is_ending=bool(row["is_ending"]),
        ending_label=row["ending_label"],
        illustration=row["illustration"],
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def create_page(
    conn: sqlite3.Connection,
    story_id: str,
    content: str = "",
    is_ending: bool = False,
    ending_label: Optional[str] = None,
    illustration: Optional[str] = None,
    page_id: Optional[str] = None,
) -> Page:
    """Insert a new page (empty content allowed) and return it.

    Raises:
        ValueError: If the story does not exist.
    """
    if conn.execute("SELECT 1 FROM stories WHERE id = ?", (story_id,)).fetchone() is None:
        raise ValueError(f"Story not found: {story_id!r}")

    pid = page_id or str(uuid.uuid4())
    now = int(time())
    with conn:
        conn.execute(
            """
            INSERT INTO pages (id, story_id, content, is_ending, ending_label, illustration,
                               created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (pid, story_id, content or "", int(is_ending), ending_label, illustration, now, now),
        )
    return get_page(conn, pid)  # type: ignore[return-value]


def get_page(conn: sqlite3.Connection, page_id: str) -> Optional[Page]:
    """Fetch a single page.  Returns ``None`` if not found."""
    row = conn.execute("SELECT * FROM pages WHERE id = ?", (page_id,)).fetchone()
    return _row_to_page(row) if row else None


def list_pages(conn: sqlite3.Connection, story_id: str) -> list[Page]:
    """Return every page of a story in creation order."""
    rows = conn.execute(
        "SELECT * FROM pages WHERE story_id = ? ORDER BY created_at, rowid",
        (story_id,),
    ).fetchall()
    return [_row_to_page(r) for r in rows]


def count_pages(conn: sqlite3.Connection, story_id: str) -> int:
    row = conn.execute("SELECT COUNT(*) FROM pages WHERE story_id = ?", (story_id,)).fetchone()
    return row[0]


def update_page(conn: sqlite3.Connection, page_id: str, **kwargs: Any) -> Page:
    """Update one or more fields on a page.

    Allowed keyword arguments: ``content``, ``is_ending``, ``ending_label``,
    ``illustration``.

    Raises:
        ValueError: If ``page_id`` does not exist or no valid fields are given.
    """
    if get_page(conn, page_id) is None:
        raise ValueError(f"Page not found: {page_id!r}")

    allowed = {"content", "is_ending", "ending_label", "illustration"}
    updates: dict[str, Any] = {}
    for key, value in kwargs.items():
        if key not in allowed:
            raise ValueError(f"Cannot update field {key!r}")
        if key == "is_ending":
            updates[key] = int(bool(value))
        elif key == "content":
            updates[key] = value or ""
        else:
            updates[key] = value

    if not updates:
        raise ValueError("No valid fields provided to update_page()")

    updates["updated_at"] = int(time())
    set_clause = ", ".join(f"{col} = ?" for col in updates)
    values = list(updates.values()) + [page_id]

    with conn:
        conn.execute(
            f"UPDATE pages SET {set_clause} WHERE id = ?", values  # noqa: S608
        )

    return get_page(conn, page_id)  # type: ignore[return-value]


def delete_page(conn: sqlite3.Connection, page_id: str) -> None:
    """Delete a page.

    Outgoing choices cascade; incoming choices become undeveloped
    (``target_page_id`` set to NULL).  No-op if the page does not exist.
    """
    with conn:
        conn.execute("DELETE FROM pages WHERE id = ?", (page_id,))
