"""Cycle detection: classify every choice edge as forward or back.

A depth-first walk from the root keeps the set of pages currently on the
walk stack (the ancestors of the page being expanded).  An edge ``u → v`` is
a *back* edge when ``v`` is on that stack, which includes ``u`` itself, so
self-loops are back edges.  Back edges are never followed by the traversal
and layout stages.

The walk uses an explicit stack; each page is expanded at most once, so it
terminates on any graph.  Pages the root cannot reach through forward edges
are reported as orphans.  Their own edges are still classified by continuing
the walk from each orphan in input order.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional

from backend.db.models import Page
from backend.engine.graph import StoryGraph


class EdgeKind(str, enum.Enum):
    FORWARD = "forward"
    BACK = "back"


@dataclass
class CycleReport:
    """Result of :func:`detect_cycles`."""

    root_id: Optional[str]
    back_edges: set[tuple[str, str]] = field(default_factory=set)
    reachable: set[str] = field(default_factory=set)
    orphans: list[str] = field(default_factory=list)

    def is_back_edge(self, source_id: str, target_id: str) -> bool:
        return (source_id, target_id) in self.back_edges

    def kind(self, source_id: str, target_id: str) -> EdgeKind:
        if self.is_back_edge(source_id, target_id):
            return EdgeKind.BACK
        return EdgeKind.FORWARD

    def is_orphan(self, page_id: str) -> bool:
        return page_id not in self.reachable

    @property
    def has_cycles(self) -> bool:
        return bool(self.back_edges)


def _walk(
    graph: StoryGraph,
    start_id: str,
    visited: set[str],
    back_edges: set[tuple[str, str]],
) -> list[str]:
    """Iterative DFS from *start_id*; returns the pages it newly visited."""
    newly: list[str] = [start_id]
    visited.add(start_id)
    on_stack: set[str] = {start_id}
    # Each frame: (page id, its navigable targets, index of next target)
    stack: list[tuple[str, list[str], int]] = [
        (start_id, [t for t, _ in graph.targets_of(start_id)], 0)
    ]

    while stack:
        page_id, targets, index = stack[-1]
        if index >= len(targets):
            stack.pop()
            on_stack.discard(page_id)
            continue

        stack[-1] = (page_id, targets, index + 1)
        target = targets[index]

        if target in on_stack:
            if (page_id, target) not in back_edges:
                back_edges.add((page_id, target))
                graph.log.warning("back_edge", source_id=page_id, target_id=target)
            continue
        if target in visited:
            # Cross or forward edge to an already expanded page (multi-parent).
            continue

        visited.add(target)
        newly.append(target)
        on_stack.add(target)
        stack.append((target, [t for t, _ in graph.targets_of(target)], 0))

    return newly


def detect_cycles(graph: StoryGraph, root: Optional[Page]) -> CycleReport:
    """Classify the edges of *graph* relative to *root*."""
    report = CycleReport(root_id=root.id if root else None)
    visited: set[str] = set()

    if root is not None:
        report.reachable.update(_walk(graph, root.id, visited, report.back_edges))

    for page in graph.pages:
        if page.id in report.reachable:
            continue
        report.orphans.append(page.id)
        if page.id not in visited:
            _walk(graph, page.id, visited, report.back_edges)

    return report
