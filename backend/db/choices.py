"""CRUD operations for the ``choices`` table.

Duplicate ``(page_id, target_page_id)`` pairs are stored as-is; the graph
engine deduplicates them at read time.
"""

from __future__ import annotations

import sqlite3
import uuid
from time import time
from typing import Any, Optional

from backend.db.models import Choice


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_choice(row: sqlite3.Row) -> Choice:
    return Choice(
        id=row["id"],
        page_id=row["page_id"],
        text=row["text"],
        target_page_id=row["target_page_id"],
        condition=row["condition"],
    )


def _check_text(text: Optional[str]) -> None:
    if not text or not text.strip():
        raise ValueError("Choice text must not be empty")


def _check_page(conn: sqlite3.Connection, page_id: str, role: str) -> None:
    if conn.execute("SELECT 1 FROM pages WHERE id = ?", (page_id,)).fetchone() is None:
        raise ValueError(f"{role} page not found: {page_id!r}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def create_choice(
    conn: sqlite3.Connection,
    page_id: str,
    text: str,
    target_page_id: Optional[str] = None,
    condition: Optional[str] = None,
    choice_id: Optional[str] = None,
) -> Choice:
    """Insert a new choice.  ``target_page_id`` may be omitted (undeveloped).

    Raises:
        ValueError: If the text is empty or either page does not exist.
    """
    _check_text(text)
    _check_page(conn, page_id, "Source")
    if target_page_id:
        _check_page(conn, target_page_id, "Target")

    cid = choice_id or str(uuid.uuid4())
    now = int(time())
    with conn:
        conn.execute(
            """
            INSERT INTO choices (id, page_id, text, target_page_id, condition, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (cid, page_id, text, target_page_id or None, condition, now),
        )
    return get_choice(conn, cid)  # type: ignore[return-value]


def get_choice(conn: sqlite3.Connection, choice_id: str) -> Optional[Choice]:
    """Fetch a single choice.  Returns ``None`` if not found."""
    row = conn.execute("SELECT * FROM choices WHERE id = ?", (choice_id,)).fetchone()
    return _row_to_choice(row) if row else None


def list_choices_for_page(conn: sqlite3.Connection, page_id: str) -> list[Choice]:
    """Return the outgoing choices of a page in creation order."""
    rows = conn.execute(
        "SELECT * FROM choices WHERE page_id = ? ORDER BY created_at, rowid",
        (page_id,),
    ).fetchall()
    return [_row_to_choice(r) for r in rows]


def list_choices_for_story(conn: sqlite3.Connection, story_id: str) -> list[Choice]:
    """Return every choice of a story, grouped by source page creation order."""
    rows = conn.execute(
        """
        SELECT c.*
        FROM   choices c
        JOIN   pages p ON p.id = c.page_id
        WHERE  p.story_id = ?
        ORDER  BY p.created_at, p.rowid, c.created_at, c.rowid
        """,
        (story_id,),
    ).fetchall()
    return [_row_to_choice(r) for r in rows]


def update_choice(conn: sqlite3.Connection, choice_id: str, **kwargs: Any) -> Choice:
    """Update one or more fields on a choice.

    Allowed keyword arguments: ``text``, ``target_page_id`` (``None`` unlinks),
    ``condition``.

    Raises:
        ValueError: If the choice or the new target does not exist, the new
            text is empty, or no valid fields are given.
    """
    if get_choice(conn, choice_id) is None:
        raise ValueError(f"Choice not found: {choice_id!r}")

    allowed = {"text", "target_page_id", "condition"}
    updates: dict[str, Any] = {}
    for key, value in kwargs.items():
        if key not in allowed:
            raise ValueError(f"Cannot update field {key!r}")
        if key == "text":
            _check_text(value)
        if key == "target_page_id":
            value = value or None
            if value:
                _check_page(conn, value, "Target")
        updates[key] = value

    if not updates:
        raise ValueError("No valid fields provided to update_choice()")

    set_clause = ", ".join(f"{col} = ?" for col in updates)
    values = list(updates.values()) + [choice_id]

    with conn:
        conn.execute(
            f"UPDATE choices SET {set_clause} WHERE id = ?", values  # noqa: S608
        )

    return get_choice(conn, choice_id)  # type: ignore[return-value]


def delete_choice(conn: sqlite3.Connection, choice_id: str) -> None:
    """Delete a choice.  No-op if it does not exist."""
    with conn:
        conn.execute("DELETE FROM choices WHERE id = ?", (choice_id,))
