"""Tree layout for story visualisation.

Two steps:

1. :func:`build_tree` turns the graph into a forest where every page has at
   most one *display parent*: the source of the first forward edge that
   reaches it during the root-first BFS.  The chosen parent and choice are
   stored on the :class:`TreeNode`, so later renders never have to guess
   between several incoming edges.  Orphan components become secondary roots
   in input order.

2. :func:`compute_layout` assigns ``(x, y)`` coordinates on a 0..100 canvas.
   ``y`` grows with depth; ``x`` is computed post-order: a leaf sits at the
   x its parent proposed, an internal page sits at the mean of its children,
   and children are spread around the proposed x with an offset inversely
   proportional to their number (never below ``min_offset``).  Resulting
   ``x`` values are clamped into ``[x_min, x_max]``.

Both steps use explicit stacks/queues rather than recursion so that very deep
stories cannot exhaust the interpreter stack.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from backend.config import settings
from backend.engine.cycles import CycleReport, detect_cycles
from backend.engine.graph import StoryGraph
from backend.engine.root import resolve_root


@dataclass
class TreeNode:
    page_id: str
    parent_id: Optional[str] = None
    parent_choice_id: Optional[str] = None
    children: list[str] = field(default_factory=list)
    orphan: bool = False


class StoryTree:
    """Forest of :class:`TreeNode` keyed by page id.

    ``roots[0]`` is the story root (if the story has one); any further roots
    are orphan components.
    """

    def __init__(self, nodes: dict[str, TreeNode], roots: list[str]) -> None:
        self.nodes = nodes
        self.roots = roots
        self._depths: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self.nodes)

    def __getitem__(self, page_id: str) -> TreeNode:
        return self.nodes[page_id]

    @property
    def root_id(self) -> Optional[str]:
        return self.roots[0] if self.roots else None

    def parent_of(self, page_id: str) -> Optional[str]:
        return self.nodes[page_id].parent_id

    def depth(self, page_id: str) -> int:
        """Distance to the component root along display parents (memoized)."""
        if page_id in self._depths:
            return self._depths[page_id]

        chain: list[str] = []
        current: Optional[str] = page_id
        base = 0
        while current is not None:
            if current in self._depths:
                base = self._depths[current] + 1
                break
            chain.append(current)
            current = self.nodes[current].parent_id

        # chain runs from page_id up to the topmost un-memoized ancestor.
        if current is None:
            base = 0
        for offset, node_id in enumerate(reversed(chain)):
            self._depths[node_id] = base + offset
        return self._depths[page_id]

    def invalidate(self) -> None:
        """Forget memoized depths; call after the node set changed."""
        self._depths.clear()

    def max_depth(self, root_id: Optional[str] = None) -> int:
        ids = self.subtree(root_id) if root_id else list(self.nodes)
        return max((self.depth(i) for i in ids), default=0)

    def subtree(self, root_id: str) -> list[str]:
        """Page ids of the component under *root_id*, breadth-first."""
        result: list[str] = []
        queue: deque[str] = deque([root_id])
        while queue:
            node_id = queue.popleft()
            result.append(node_id)
            queue.extend(self.nodes[node_id].children)
        return result


def build_tree(
    graph: StoryGraph,
    root_id: Optional[str] = None,
    cycles: Optional[CycleReport] = None,
) -> StoryTree:
    """Derive the display tree of *graph*.

    *root_id* and *cycles* are resolved from the graph when omitted.
    """
    if root_id is None:
        root = resolve_root(graph)
        root_id = root.id if root else None
    if cycles is None:
        cycles = detect_cycles(graph, graph.get(root_id) if root_id else None)

    nodes: dict[str, TreeNode] = {}
    roots: list[str] = []

    def _grow(start_id: str, orphan: bool) -> None:
        nodes[start_id] = TreeNode(page_id=start_id, orphan=orphan)
        roots.append(start_id)
        queue: deque[str] = deque([start_id])
        while queue:
            page_id = queue.popleft()
            for target, choice in graph.targets_of(page_id):
                if target in nodes or cycles.is_back_edge(page_id, target):
                    continue
                nodes[target] = TreeNode(
                    page_id=target,
                    parent_id=page_id,
                    parent_choice_id=choice.id,
                    orphan=orphan,
                )
                nodes[page_id].children.append(target)
                queue.append(target)

    if root_id is not None:
        _grow(root_id, orphan=False)
    for page in graph.pages:
        if page.id not in nodes:
            _grow(page.id, orphan=True)

    return StoryTree(nodes, roots)


# ---------------------------------------------------------------------------
# Coordinates
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LayoutConfig:
    x_min: float = 10.0
    x_max: float = 90.0
    root_span: float = 70.0
    min_offset: float = 0.5
    y_top: float = 10.0
    height: float = 80.0
    min_spacing: float = 8.0
    max_spacing: float = 30.0

    @classmethod
    def from_settings(cls) -> LayoutConfig:
        return cls(
            x_min=settings.layout_x_min,
            x_max=settings.layout_x_max,
            root_span=settings.layout_root_span,
            min_offset=settings.layout_min_offset,
            y_top=settings.layout_y_top,
            height=settings.layout_height,
            min_spacing=settings.layout_min_spacing,
            max_spacing=settings.layout_max_spacing,
        )


@dataclass(frozen=True)
class Position:
    x: float
    y: float
    depth: int
    row: int


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def level_spacing(levels: int, config: LayoutConfig) -> float:
    """Vertical distance between rows: shrinks as the tree gets deeper."""
    if levels <= 0:
        return config.max_spacing
    return _clamp(config.height / levels, config.min_spacing, config.max_spacing)


def _place_component(
    tree: StoryTree,
    root_id: str,
    preferred_x: float,
    span: float,
    config: LayoutConfig,
) -> dict[str, float]:
    """Resolve the x coordinate of every page under *root_id*."""
    preferred: dict[str, tuple[float, float]] = {root_id: (preferred_x, span)}
    visit_order: list[str] = []
    stack: list[str] = [root_id]

    # Pre-order: hand every child a preferred x and the width it may use.
    while stack:
        node_id = stack.pop()
        visit_order.append(node_id)
        children = tree[node_id].children
        if not children:
            continue
        x, node_span = preferred[node_id]
        count = len(children)
        offset = max(config.min_offset, node_span / count)
        for i, child_id in enumerate(children):
            preferred[child_id] = (x + (i - (count - 1) / 2) * offset, offset)
        stack.extend(reversed(children))

    # Post-order: leaves keep their preferred x, parents take the centroid.
    resolved: dict[str, float] = {}
    for node_id in reversed(visit_order):
        children = tree[node_id].children
        if children:
            resolved[node_id] = sum(resolved[c] for c in children) / len(children)
        else:
            resolved[node_id] = preferred[node_id][0]
    return resolved


def compute_layout(
    tree: StoryTree,
    config: Optional[LayoutConfig] = None,
    *,
    graph: Optional[StoryGraph] = None,
) -> dict[str, Position]:
    """Return a :class:`Position` for every page of *tree*.

    The story root's component occupies the top rows.  Orphan components are
    laid out side by side in a band starting one row below the deepest page
    of the main tree.  When *graph* is given, pages that end up on identical
    coordinates are reported as ``layout_overlap`` through its logger.
    """
    config = config or LayoutConfig.from_settings()
    if not tree.roots:
        return {}

    center = (config.x_min + config.x_max) / 2
    raw_x: dict[str, float] = {}
    rows: dict[str, int] = {}

    main_root, *orphan_roots = tree.roots
    main_is_orphan = tree[main_root].orphan
    if main_is_orphan:
        # No story root: every component is an orphan band at row 0.
        orphan_roots = tree.roots
        band_row = 0
    else:
        raw_x.update(_place_component(tree, main_root, center, config.root_span, config))
        for page_id in tree.subtree(main_root):
            rows[page_id] = tree.depth(page_id)
        band_row = tree.max_depth(main_root) + 1

    if orphan_roots:
        count = len(orphan_roots)
        offset = max(config.min_offset, config.root_span / count)
        for i, orphan_root in enumerate(orphan_roots):
            x = center + (i - (count - 1) / 2) * offset
            raw_x.update(_place_component(tree, orphan_root, x, offset, config))
            for page_id in tree.subtree(orphan_root):
                rows[page_id] = band_row + tree.depth(page_id)

    levels = max(rows.values(), default=0)
    spacing = level_spacing(levels, config)

    positions: dict[str, Position] = {}
    for page_id, x in raw_x.items():
        row = rows[page_id]
        positions[page_id] = Position(
            x=round(_clamp(x, config.x_min, config.x_max), 4),
            y=round(config.y_top + row * spacing, 4),
            depth=tree.depth(page_id),
            row=row,
        )

    if graph is not None:
        _report_overlaps(positions, graph)
    return positions


def _report_overlaps(positions: dict[str, Position], graph: StoryGraph) -> None:
    seen: dict[tuple[float, float], str] = {}
    for page_id, pos in positions.items():
        key = (pos.x, pos.y)
        if key in seen:
            graph.log.warning("layout_overlap", page_id=page_id, other_id=seen[key], x=pos.x, y=pos.y)
        else:
            seen[key] = page_id


def layout_story(
    graph: StoryGraph,
    config: Optional[LayoutConfig] = None,
) -> tuple[StoryTree, dict[str, Position]]:
    """Build the display tree of *graph* and lay it out in one call."""
    tree = build_tree(graph)
    return tree, compute_layout(tree, config, graph=graph)
