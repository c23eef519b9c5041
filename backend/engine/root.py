"""Root resolution: which page does a reader start on?

The root is chosen among *unreferenced* pages, i.e. pages that no navigable
choice points to:

- exactly one → that page;
- several → the one with the most outgoing choices, ties broken by input
  order;
- none (every page sits on a cycle) → the first page in input order, with a
  ``root_fallback`` warning.

An empty story has no root.
"""

from __future__ import annotations

from typing import Optional

from backend.db.models import Page
from backend.engine.graph import StoryGraph


def unreferenced_pages(graph: StoryGraph) -> list[Page]:
    """Pages never targeted by a navigable choice, in input order."""
    referenced = graph.referenced_ids()
    return [p for p in graph.pages if p.id not in referenced]


def resolve_root(graph: StoryGraph) -> Optional[Page]:
    """Return the canonical starting page of *graph* (``None`` if empty)."""
    if len(graph) == 0:
        return None

    candidates = unreferenced_pages(graph)

    if not candidates:
        root = graph.pages[0]
        graph.log.warning("root_fallback", page_id=root.id, reason="no unreferenced page")
        return root

    if len(candidates) == 1:
        return candidates[0]

    # max() keeps the first of equal elements, so input order breaks ties.
    root = max(candidates, key=lambda p: len(graph.choices_from(p.id)))
    graph.log.info(
        "multiple_root_candidates",
        page_id=root.id,
        candidates=[p.id for p in candidates],
    )
    return root
