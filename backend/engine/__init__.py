"""Narrative graph engine: graph model, derivations, reader sessions, editing.

Typical use::

    from backend.engine import StoryGraph, resolve_root, traversal_order

    graph = StoryGraph(pages, choices)
    order = traversal_order(graph)
"""

from backend.engine.cycles import CycleReport, EdgeKind, detect_cycles
from backend.engine.editor import Draft, StoryEditor
from backend.engine.errors import (
    ChoiceNotFoundError,
    ContentIncompleteError,
    InvalidTransitionError,
    PageNotFoundError,
    PartyNotFoundError,
    PersistenceError,
    StoryEngineError,
    StoryNotFoundError,
)
from backend.engine.graph import StoryGraph, dedup_pages
from backend.engine.layout import (
    LayoutConfig,
    Position,
    StoryTree,
    TreeNode,
    build_tree,
    compute_layout,
    layout_story,
)
from backend.engine.progress import PartyProgress, compute_progress, party_progress
from backend.engine.repository import SqliteRepository, StoryRepository, load_graph
from backend.engine.root import resolve_root, unreferenced_pages
from backend.engine.session import ReaderSession, SessionState
from backend.engine.traversal import OrderEntry, ordered_pages, traversal_order

__all__ = [
    "ChoiceNotFoundError",
    "ContentIncompleteError",
    "CycleReport",
    "Draft",
    "EdgeKind",
    "InvalidTransitionError",
    "LayoutConfig",
    "OrderEntry",
    "PageNotFoundError",
    "PartyNotFoundError",
    "PartyProgress",
    "PersistenceError",
    "Position",
    "ReaderSession",
    "SessionState",
    "SqliteRepository",
    "StoryEditor",
    "StoryEngineError",
    "StoryGraph",
    "StoryNotFoundError",
    "StoryRepository",
    "StoryTree",
    "TreeNode",
    "build_tree",
    "compute_layout",
    "compute_progress",
    "dedup_pages",
    "detect_cycles",
    "layout_story",
    "load_graph",
    "ordered_pages",
    "party_progress",
    "resolve_root",
    "traversal_order",
    "unreferenced_pages",
]
