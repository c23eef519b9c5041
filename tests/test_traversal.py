"""Tests for the breadth-first traversal order."""

from __future__ import annotations

import random
from typing import Optional

from structlog.testing import capture_logs

from backend.db.models import Choice, Page
from backend.engine.graph import StoryGraph
from backend.engine.root import resolve_root
from backend.engine.traversal import ordered_pages, traversal_order


def _page(page_id: str, ending: bool = False) -> Page:
    return Page(id=page_id, story_id="s1", content=page_id, is_ending=ending)


def _choice(choice_id: str, source: str, target: Optional[str]) -> Choice:
    return Choice(id=choice_id, page_id=source, text=choice_id, target_page_id=target)


def _ids(graph: StoryGraph) -> list[str]:
    return [entry.page_id for entry in traversal_order(graph)]


class TestScenarios:
    def test_simple_branching_story(self) -> None:
        graph = StoryGraph(
            [_page("P1"), _page("P2", ending=True), _page("P3", ending=True)],
            [_choice("c1", "P1", "P2"), _choice("c2", "P1", "P3")],
        )
        assert resolve_root(graph).id == "P1"
        assert _ids(graph) == ["P1", "P2", "P3"]

    def test_choice_order_drives_sibling_order(self) -> None:
        graph = StoryGraph(
            [_page("P1"), _page("P2", ending=True), _page("P3", ending=True)],
            [_choice("c1", "P1", "P3"), _choice("c2", "P1", "P2")],
        )
        assert _ids(graph) == ["P1", "P3", "P2"]

    def test_pure_two_cycle(self) -> None:
        graph = StoryGraph(
            [_page("A"), _page("B")],
            [_choice("c1", "A", "B"), _choice("c2", "B", "A")],
        )
        assert _ids(graph) == ["A", "B"]


class TestGuarantees:
    def test_empty_story(self) -> None:
        assert traversal_order(StoryGraph([])) == []

    def test_root_first_in_well_formed_tree(self) -> None:
        rng = random.Random(7)
        for _ in range(25):
            ids = [f"n{i}" for i in range(rng.randint(1, 30))]
            choices = [
                _choice(f"c{i}", ids[rng.randrange(i)], ids[i]) for i in range(1, len(ids))
            ]
            shuffled = ids[:]
            rng.shuffle(shuffled)
            graph = StoryGraph([_page(i) for i in shuffled], choices)

            assert resolve_root(graph).id == "n0"
            order = _ids(graph)
            assert order[0] == "n0"
            assert sorted(order) == sorted(ids)

    def test_cycles_visit_every_page_once(self) -> None:
        rng = random.Random(11)
        for _ in range(25):
            ids = [f"n{i}" for i in range(rng.randint(1, 20))]
            choices = [
                _choice(f"c{k}", rng.choice(ids), rng.choice(ids))
                for k in range(rng.randint(1, 40))
            ]
            graph = StoryGraph([_page(i) for i in ids], choices)
            order = _ids(graph)
            assert len(order) == len(ids)
            assert set(order) == set(ids)

    def test_multi_parent_page_listed_once(self) -> None:
        graph = StoryGraph(
            [_page("a"), _page("b"), _page("c"), _page("d")],
            [
                _choice("c1", "a", "b"),
                _choice("c2", "a", "c"),
                _choice("c3", "b", "d"),
                _choice("c4", "c", "d"),
            ],
        )
        order = traversal_order(graph)
        assert [e.page_id for e in order] == ["a", "b", "c", "d"]
        assert [e.depth for e in order] == [0, 1, 1, 2]

    def test_stable_for_same_input(self) -> None:
        pages = [_page("a"), _page("b"), _page("c")]
        choices = [_choice("c1", "a", "c"), _choice("c2", "a", "b")]
        assert _ids(StoryGraph(pages, choices)) == _ids(StoryGraph(pages, choices))

    def test_duplicate_pages_counted_once(self) -> None:
        graph = StoryGraph([_page("a"), _page("b"), _page("a")], [_choice("c1", "a", "b")])
        assert _ids(graph) == ["a", "b"]


class TestOrphans:
    def test_orphans_appended_in_input_order(self) -> None:
        graph = StoryGraph(
            [_page("root"), _page("shared"), _page("child"), _page("stray")],
            [
                _choice("c1", "root", "child"),
                _choice("c2", "root", "shared"),
                _choice("c3", "stray", "shared"),
            ],
        )
        # "stray" is unreferenced too, but "root" has more choices.
        order = traversal_order(graph)
        assert [e.page_id for e in order] == ["root", "child", "shared", "stray"]
        assert order[-1].orphan is True
        assert order[-1].depth is None

    def test_orphan_marker_logged(self) -> None:
        graph = StoryGraph(
            [_page("A"), _page("B"), _page("C")],
            [_choice("c1", "A", "B"), _choice("c2", "B", "A"), _choice("c3", "C", "C")],
        )
        with capture_logs() as logs:
            order = traversal_order(graph, graph.page("A"))
        assert [e.page_id for e in order] == ["A", "B", "C"]
        orphan_events = [e for e in logs if e["event"] == "orphan_page"]
        assert [e["page_id"] for e in orphan_events] == ["C"]

    def test_ordered_pages_returns_pages(self) -> None:
        graph = StoryGraph([_page("a"), _page("b")], [_choice("c1", "a", "b")])
        assert [p.id for p in ordered_pages(graph)] == ["a", "b"]
