"""Tests for the display tree and the layout coordinates."""

from __future__ import annotations

import random
from typing import Optional

import pytest
from structlog.testing import capture_logs

from backend.db.models import Choice, Page
from backend.engine.graph import StoryGraph
from backend.engine.layout import (
    LayoutConfig,
    build_tree,
    compute_layout,
    layout_story,
    level_spacing,
)


def _page(page_id: str, ending: bool = False) -> Page:
    return Page(id=page_id, story_id="s1", content=page_id, is_ending=ending)


def _choice(choice_id: str, source: str, target: Optional[str]) -> Choice:
    return Choice(id=choice_id, page_id=source, text=choice_id, target_page_id=target)


def _random_tree(rng: random.Random, max_depth: int, max_children: int) -> StoryGraph:
    pages = [_page("root")]
    choices: list[Choice] = []
    frontier = [("root", 0)]
    counter = 0
    while frontier:
        parent, depth = frontier.pop()
        if depth == max_depth:
            continue
        for _ in range(rng.randint(0, max_children)):
            counter += 1
            child = f"n{counter}"
            pages.append(_page(child))
            choices.append(_choice(f"c{counter}", parent, child))
            frontier.append((child, depth + 1))
    return StoryGraph(pages, choices)


# ---------------------------------------------------------------------------
# build_tree
# ---------------------------------------------------------------------------

class TestBuildTree:
    def test_display_parent_is_first_forward_edge(self) -> None:
        graph = StoryGraph(
            [_page("a"), _page("b"), _page("c"), _page("d")],
            [
                _choice("ab", "a", "b"),
                _choice("ac", "a", "c"),
                _choice("cd", "c", "d"),
                _choice("bd", "b", "d"),
            ],
        )
        tree = build_tree(graph)
        assert tree.root_id == "a"
        assert tree["d"].parent_id == "b"
        assert tree["d"].parent_choice_id == "bd"
        assert tree["a"].children == ["b", "c"]
        assert tree["c"].children == []

    def test_back_edges_ignored(self) -> None:
        graph = StoryGraph(
            [_page("A"), _page("B")],
            [_choice("c1", "A", "B"), _choice("c2", "B", "A")],
        )
        tree = build_tree(graph)
        assert tree["A"].parent_id is None
        assert tree["B"].parent_id == "A"
        assert tree["B"].children == []

    def test_orphans_become_secondary_roots(self) -> None:
        graph = StoryGraph(
            [_page("root"), _page("child"), _page("x"), _page("y")],
            [_choice("c1", "root", "child"), _choice("c2", "x", "y"), _choice("c3", "y", "x")],
        )
        tree = build_tree(graph, "root")
        assert tree.roots == ["root", "x"]
        assert tree["x"].orphan and tree["y"].orphan
        assert tree["y"].parent_id == "x"
        assert not tree["child"].orphan

    def test_empty_graph(self) -> None:
        tree = build_tree(StoryGraph([]))
        assert tree.roots == []
        assert len(tree) == 0
        assert compute_layout(tree) == {}


class TestDepth:
    def test_depth_follows_display_parent(self) -> None:
        graph = StoryGraph(
            [_page("a"), _page("b"), _page("c"), _page("d")],
            [_choice("c1", "a", "b"), _choice("c2", "b", "c"), _choice("c3", "a", "d"), _choice("c4", "d", "c")],
        )
        tree = build_tree(graph)
        assert [tree.depth(i) for i in "abcd"] == [0, 1, 2, 1]
        assert tree.max_depth() == 2

    def test_depth_is_memoized_and_invalidated(self) -> None:
        graph = StoryGraph([_page("a"), _page("b")], [_choice("c1", "a", "b")])
        tree = build_tree(graph)
        assert tree.depth("b") == 1
        assert tree._depths == {"a": 0, "b": 1}

        tree.invalidate()
        assert tree._depths == {}
        assert tree.depth("b") == 1

    def test_deep_chain(self) -> None:
        count = 3000
        ids = [f"p{i}" for i in range(count)]
        graph = StoryGraph(
            [_page(i) for i in ids],
            [_choice(f"c{i}", ids[i], ids[i + 1]) for i in range(count - 1)],
        )
        tree = build_tree(graph)
        assert tree.depth(ids[-1]) == count - 1
        positions = compute_layout(tree)
        assert positions[ids[-1]].depth == count - 1


# ---------------------------------------------------------------------------
# compute_layout
# ---------------------------------------------------------------------------

class TestComputeLayout:
    def test_simple_branching_story(self) -> None:
        graph = StoryGraph(
            [_page("P1"), _page("P2", True), _page("P3", True)],
            [_choice("c1", "P1", "P2"), _choice("c2", "P1", "P3")],
        )
        _tree, positions = layout_story(graph, LayoutConfig())
        assert positions["P1"].x == pytest.approx(50.0)
        assert positions["P2"].x == pytest.approx(32.5)
        assert positions["P3"].x == pytest.approx(67.5)
        assert positions["P1"].y == pytest.approx(10.0)
        assert positions["P2"].y == positions["P3"].y == pytest.approx(40.0)
        assert positions["P2"].depth == 1

    def test_parent_sits_at_centroid_of_children(self) -> None:
        graph = StoryGraph(
            [_page("r"), _page("a"), _page("b"), _page("a1"), _page("a2"), _page("a3")],
            [
                _choice("c1", "r", "a"),
                _choice("c2", "r", "b"),
                _choice("c3", "a", "a1"),
                _choice("c4", "a", "a2"),
                _choice("c5", "a", "a3"),
            ],
        )
        positions = compute_layout(build_tree(graph), LayoutConfig())
        children = [positions[i].x for i in ("a1", "a2", "a3")]
        assert positions["a"].x == pytest.approx(sum(children) / 3)
        assert positions["r"].x == pytest.approx((positions["a"].x + positions["b"].x) / 2)

    def test_siblings_never_share_x_in_bounded_trees(self) -> None:
        rng = random.Random(3)
        for _ in range(30):
            graph = _random_tree(rng, max_depth=5, max_children=6)
            tree = build_tree(graph)
            positions = compute_layout(tree, LayoutConfig())
            for node in tree.nodes.values():
                xs = [positions[c].x for c in node.children]
                assert len(xs) == len(set(xs))

    def test_x_is_clamped(self) -> None:
        pages = [_page("root")] + [_page(f"leaf{i}") for i in range(200)]
        choices = [_choice(f"c{i}", "root", f"leaf{i}") for i in range(200)]
        graph = StoryGraph(pages, choices)
        config = LayoutConfig()
        with capture_logs() as logs:
            _tree, positions = layout_story(graph, config)
        assert all(config.x_min <= p.x <= config.x_max for p in positions.values())
        assert any(e["event"] == "layout_overlap" for e in logs)

    def test_orphans_placed_below_main_tree(self) -> None:
        graph = StoryGraph(
            [_page("root"), _page("child"), _page("x"), _page("y")],
            [_choice("c1", "root", "child"), _choice("c2", "x", "y"), _choice("c3", "y", "x")],
        )
        tree = build_tree(graph, "root")
        positions = compute_layout(tree, LayoutConfig())
        assert positions["root"].row == 0
        assert positions["child"].row == 1
        assert positions["x"].row == 2
        assert positions["y"].row == 3
        assert positions["x"].depth == 0
        assert positions["x"].y > positions["child"].y

    def test_uses_settings_by_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("backend.config.settings.layout_y_top", 5.0)
        monkeypatch.setattr("backend.config.settings.layout_max_spacing", 20.0)
        graph = StoryGraph([_page("a"), _page("b")], [_choice("c1", "a", "b")])
        positions = compute_layout(build_tree(graph))
        assert positions["a"].y == pytest.approx(5.0)
        assert positions["b"].y == pytest.approx(25.0)


class TestLevelSpacing:
    def test_inversely_proportional_within_bounds(self) -> None:
        config = LayoutConfig()
        assert level_spacing(1, config) == config.max_spacing
        assert level_spacing(4, config) == pytest.approx(20.0)
        assert level_spacing(50, config) == config.min_spacing

    def test_single_row(self) -> None:
        assert level_spacing(0, LayoutConfig()) == LayoutConfig().max_spacing
