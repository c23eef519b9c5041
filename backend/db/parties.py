"""CRUD operations for the ``parties`` table (reader sessions).

``path`` is an append-only visit log stored as a JSON array of page ids.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from time import time
from typing import Any, Optional

from backend.db.models import Party


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_party(row: sqlite3.Row) -> Party:
    return Party(
        id=row["id"],
        user_id=row["user_id"],
        story_id=row["story_id"],
        start_date=row["start_date"],
        end_date=row["end_date"],
        path=json.loads(row["path"] or "[]"),
        ending_id=row["ending_id"],
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def create_party(
    conn: sqlite3.Connection,
    user_id: str,
    story_id: str,
    path: Optional[list[str]] = None,
    party_id: Optional[str] = None,
) -> Party:
    """Start a new reading session for *user_id* on *story_id*.

    Raises:
        ValueError: If the story does not exist.
    """
    if conn.execute("SELECT 1 FROM stories WHERE id = ?", (story_id,)).fetchone() is None:
        raise ValueError(f"Story not found: {story_id!r}")

    pid = party_id or str(uuid.uuid4())
    now = int(time())
    with conn:
        conn.execute(
            """
            INSERT INTO parties (id, user_id, story_id, start_date, path)
            VALUES (?, ?, ?, ?, ?)
            """,
            (pid, user_id, story_id, now, json.dumps(path or [])),
        )
    return get_party(conn, pid)  # type: ignore[return-value]


def get_party(conn: sqlite3.Connection, party_id: str) -> Optional[Party]:
    """Fetch a single party.  Returns ``None`` if not found."""
    row = conn.execute("SELECT * FROM parties WHERE id = ?", (party_id,)).fetchone()
    return _row_to_party(row) if row else None


def list_parties(
    conn: sqlite3.Connection,
    user_id: Optional[str] = None,
    story_id: Optional[str] = None,
) -> list[Party]:
    """Return parties, newest first, optionally filtered by user and story."""
    clauses: list[str] = []
    params: list[Any] = []
    if user_id:
        clauses.append("user_id = ?")
        params.append(user_id)
    if story_id:
        clauses.append("story_id = ?")
        params.append(story_id)

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    rows = conn.execute(
        f"SELECT * FROM parties {where} ORDER BY start_date DESC, rowid DESC",  # noqa: S608
        params,
    ).fetchall()
    return [_row_to_party(r) for r in rows]


def latest_party(conn: sqlite3.Connection, user_id: str, story_id: str) -> Optional[Party]:
    """Return the most recent party of *user_id* on *story_id*, if any."""
    parties = list_parties(conn, user_id=user_id, story_id=story_id)
    return parties[0] if parties else None


def update_party(conn: sqlite3.Connection, party_id: str, **kwargs: Any) -> Party:
    """Update one or more fields on a party.

    Allowed keyword arguments: ``path`` (list of page ids), ``end_date``,
    ``ending_id``.  The path only grows: a new path must start with the
    stored one.  ``end_date`` and ``ending_id`` are written once; resending
    the stored value is accepted.

    Raises:
        ValueError: If ``party_id`` does not exist, no valid fields are given,
            or the update would rewrite history.
    """
    current = get_party(conn, party_id)
    if current is None:
        raise ValueError(f"Party not found: {party_id!r}")

    allowed = {"path", "end_date", "ending_id"}
    updates: dict[str, Any] = {}
    for key, value in kwargs.items():
        if key not in allowed:
            raise ValueError(f"Cannot update field {key!r}")
        if key == "path":
            path = list(value or [])
            if path[: len(current.path)] != current.path:
                raise ValueError("Party path is append-only; the stored path must be a prefix")
            updates["path"] = json.dumps(path)
        else:
            stored = getattr(current, key)
            if stored is not None and value != stored:
                raise ValueError(f"Party {key} is already set and cannot change")
            updates[key] = value

    if not updates:
        raise ValueError("No valid fields provided to update_party()")

    set_clause = ", ".join(f"{col} = ?" for col in updates)
    values = list(updates.values()) + [party_id]

    with conn:
        conn.execute(
            f"UPDATE parties SET {set_clause} WHERE id = ?", values  # noqa: S608
        )

    return get_party(conn, party_id)  # type: ignore[return-value]


def delete_party(conn: sqlite3.Connection, party_id: str) -> None:
    """Delete a party.  No-op if it does not exist."""
    with conn:
        conn.execute("DELETE FROM parties WHERE id = ?", (party_id,))
