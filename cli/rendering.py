"""Utilities for rendering story graphs in the CLI."""

from __future__ import annotations

from typing import Optional

from backend.db.models import Page
from backend.engine import CycleReport, OrderEntry, Position, StoryGraph, StoryTree

_TITLE_WIDTH = 40


def page_title(page: Page, width: int = _TITLE_WIDTH) -> str:
    """First line of the page content, shortened for one-line listings."""
    first_line = page.content.strip().splitlines()[0] if page.content.strip() else ""
    if not first_line:
        return "(empty page)"
    if len(first_line) > width:
        return first_line[: width - 1] + "…"
    return first_line


def _get_icon(page: Page) -> str:
    if page.is_ending:
        return "🏁"
    return "📄"


def _page_label(page: Page) -> str:
    label = f"{_get_icon(page)} {page_title(page)} ({page.id[:8]})"
    if page.is_ending:
        label += f" [{page.ending_label or 'The End'}]"
    return label


def render_tree(graph: StoryGraph, tree: StoryTree, cycles: Optional[CycleReport] = None) -> str:
    """Render the display tree of a story as ASCII art.

    Each page appears once, under its display parent.  Choices that do not
    belong to the tree are listed as references: ``↺`` for back edges (when
    *cycles* is given), ``→`` for extra links to a page shown elsewhere,
    ``…`` for undeveloped choices.
    """
    lines: list[str] = []

    for index, root_id in enumerate(tree.roots):
        if index == 1:
            lines.append("")
            lines.append("Orphans (not reachable from the start page):")

        # Frames are ("page", page_id, prefix, is_last, choice_text) or ("line", text).
        stack: list[tuple] = [("page", root_id, None, True, None)]
        while stack:
            frame = stack.pop()
            if frame[0] == "line":
                lines.append(frame[1])
                continue

            _, page_id, prefix, is_last, via = frame
            page = graph.page(page_id)
            node = tree[page_id]

            if prefix is None:
                lines.append(_page_label(page))
                child_prefix = ""
            else:
                connector = "└── " if is_last else "├── "
                lines.append(f"{prefix}{connector}{via} ➜ {_page_label(page)}")
                child_prefix = prefix + ("    " if is_last else "│   ")

            entries: list[tuple[str, Optional[str]]] = []
            for choice in graph.choices_from(page_id):
                target = choice.target_page_id
                if not target:
                    entries.append((f"… {choice.text} (not written yet)", None))
                elif target in node.children and tree[target].parent_choice_id == choice.id:
                    entries.append((choice.text, target))
                elif target not in graph:
                    entries.append((f"✗ {choice.text} (missing page {target[:8]})", None))
                elif cycles is not None and cycles.is_back_edge(page_id, target):
                    entries.append((f"↺ {choice.text} → {page_title(graph.page(target))}", None))
                else:
                    entries.append((f"→ {choice.text} → {page_title(graph.page(target))}", None))

            count = len(entries)
            frames: list[tuple] = []
            for i, (text, child_id) in enumerate(entries):
                last = i == count - 1
                if child_id is None:
                    connector = "└── " if last else "├── "
                    frames.append(("line", f"{child_prefix}{connector}{text}"))
                else:
                    frames.append(("page", child_id, child_prefix, last, text))
            stack.extend(reversed(frames))

    return "\n".join(lines)


def render_order(order: list[OrderEntry]) -> str:
    """Render the reading order as a numbered list."""
    lines: list[str] = []
    for i, entry in enumerate(order, start=1):
        depth = "-" if entry.depth is None else str(entry.depth)
        marker = "  ⚠️ orphan" if entry.orphan else ""
        lines.append(f"{i:>3}. [{depth:>2}] {_page_label(entry.page)}{marker}")
    return "\n".join(lines)


def render_layout(graph: StoryGraph, positions: dict[str, Position]) -> str:
    """Render layout coordinates, one page per line, top to bottom."""
    lines: list[str] = []
    ordered = sorted(positions.items(), key=lambda item: (item[1].row, item[1].x))
    for page_id, pos in ordered:
        lines.append(
            f"row {pos.row:>2}  x={pos.x:6.2f}  y={pos.y:6.2f}  {_page_label(graph.page(page_id))}"
        )
    return "\n".join(lines)
