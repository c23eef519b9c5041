"""Deterministic, duplicate-free presentation order of a story's pages.

Breadth-first from the root along forward edges; a page already seen is never
enqueued again, which takes care of multi-parent pages and cycles.  Pages the
BFS never reaches (orphans) follow in input order, each announced by an
``orphan_page`` warning and flagged on its entry.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Optional

from backend.db.models import Page
from backend.engine.cycles import CycleReport, detect_cycles
from backend.engine.graph import StoryGraph
from backend.engine.root import resolve_root


@dataclass(frozen=True)
class OrderEntry:
    page: Page
    depth: Optional[int]
    orphan: bool = False

    @property
    def page_id(self) -> str:
        return self.page.id


def traversal_order(
    graph: StoryGraph,
    root: Optional[Page] = None,
    cycles: Optional[CycleReport] = None,
) -> list[OrderEntry]:
    """Return one :class:`OrderEntry` per page: root first, orphans last.

    *root* and *cycles* are resolved from the graph when omitted.
    """
    if root is None:
        root = resolve_root(graph)
    if root is None:
        return []
    if cycles is None:
        cycles = detect_cycles(graph, root)

    order: list[OrderEntry] = []
    seen: set[str] = {root.id}
    queue: deque[tuple[str, int]] = deque([(root.id, 0)])

    while queue:
        page_id, depth = queue.popleft()
        order.append(OrderEntry(page=graph.page(page_id), depth=depth))
        for target, _choice in graph.targets_of(page_id):
            if target in seen or cycles.is_back_edge(page_id, target):
                continue
            seen.add(target)
            queue.append((target, depth + 1))

    for page in graph.pages:
        if page.id in seen:
            continue
        graph.log.warning("orphan_page", page_id=page.id)
        order.append(OrderEntry(page=page, depth=None, orphan=True))
        seen.add(page.id)

    return order


def ordered_pages(graph: StoryGraph) -> list[Page]:
    """Convenience wrapper returning just the pages of :func:`traversal_order`."""
    return [entry.page for entry in traversal_order(graph)]
