"""Progress of a reader through a story.

``progress = round(100 * distinct_visited / total_pages)`` with halves rounded
up, clamped to [0, 100].  While at least one page is still unvisited the value
is capped at 99, so a reader only sees 100 once every page was seen.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

from backend.db.models import Party


def distinct_visited(path: Iterable[str], page_ids: Optional[Iterable[str]] = None) -> int:
    """Number of distinct page ids in *path*.

    When *page_ids* is given, only ids that still belong to the story count
    (pages deleted after the visit are ignored).
    """
    visited = set(path)
    if page_ids is not None:
        visited &= set(page_ids)
    return len(visited)


def compute_progress(visited: int, total_pages: int) -> int:
    if total_pages <= 0 or visited <= 0:
        return 0
    value = math.floor(100 * visited / total_pages + 0.5)
    value = max(0, min(100, value))
    if visited < total_pages:
        value = min(value, 99)
    return value


@dataclass(frozen=True)
class PartyProgress:
    party_id: str
    story_id: str
    visited_pages: int
    total_pages: int
    progress: int
    is_completed: bool

    def to_dict(self) -> dict:
        return {
            "partyId": self.party_id,
            "storyId": self.story_id,
            "visitedPages": self.visited_pages,
            "totalPages": self.total_pages,
            "progress": self.progress,
            "isCompleted": self.is_completed,
        }


def party_progress(
    party: Party,
    total_pages: int,
    page_ids: Optional[Iterable[str]] = None,
) -> PartyProgress:
    """Progress snapshot of *party* for a story of *total_pages* pages."""
    visited = distinct_visited(party.path, page_ids)
    return PartyProgress(
        party_id=party.id,
        story_id=party.story_id,
        visited_pages=visited,
        total_pages=total_pages,
        progress=compute_progress(visited, total_pages),
        is_completed=party.is_completed,
    )
