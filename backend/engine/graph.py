"""In-memory story graph: pages (nodes) and choices (edges) of one story.

The model holds structure only.  Root resolution, cycle classification,
ordering and layout are derived from it by the sibling modules.  A
``StoryGraph`` is an immutable snapshot; editors build a new one after every
change.

Deduplication policy:

- repeated page ids keep the first occurrence,
- repeated choice ids keep the first occurrence,
- several choices with the same ``(source, target)`` pair are all kept in
  :attr:`StoryGraph.choices` but only the first is *active* for navigation.

Each dropped duplicate, and each choice whose target is not in the graph, is
logged once as a warning through the injected logger.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, Optional

from backend.db.models import Choice, Page
from backend.engine.errors import ChoiceNotFoundError, PageNotFoundError
from backend.observability import get_logger

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger


def dedup_pages(
    pages: Iterable[Page],
    log: Optional[FilteringBoundLogger] = None,
) -> list[Page]:
    """Return *pages* with repeated ids removed, keeping the first occurrence.

    Idempotent: deduplicating an already deduplicated list returns an equal
    list.
    """
    seen: set[str] = set()
    unique: list[Page] = []
    for page in pages:
        if page.id in seen:
            if log is not None:
                log.warning("duplicate_page", page_id=page.id)
            continue
        seen.add(page.id)
        unique.append(page)
    return unique


class StoryGraph:
    """Pages and choices of a single story.

    Args:
        pages: Pages in input order (creation order for stored stories).
        choices: Choices of those pages, in input order.
        log: Logger for structural diagnostics.  Every derivation over this
            graph (root, cycles, traversal, layout) reports through it.
    """

    def __init__(
        self,
        pages: Iterable[Page],
        choices: Iterable[Choice] = (),
        *,
        log: Optional[FilteringBoundLogger] = None,
    ) -> None:
        self.log = log if log is not None else get_logger(__name__)

        self._pages: list[Page] = dedup_pages(pages, self.log)
        self._by_id: dict[str, Page] = {p.id: p for p in self._pages}

        self._choices: list[Choice] = []
        self._choice_by_id: dict[str, Choice] = {}
        self._outgoing: dict[str, list[Choice]] = {p.id: [] for p in self._pages}
        pairs: set[tuple[str, str]] = set()

        for choice in choices:
            if choice.id in self._choice_by_id:
                self.log.warning("duplicate_choice", choice_id=choice.id)
                continue
            self._choice_by_id[choice.id] = choice
            self._choices.append(choice)

            if choice.page_id not in self._by_id:
                self.log.warning(
                    "choice_without_source", choice_id=choice.id, page_id=choice.page_id
                )
                continue
            if choice.target_page_id:
                pair = (choice.page_id, choice.target_page_id)
                if pair in pairs:
                    self.log.warning(
                        "duplicate_edge",
                        choice_id=choice.id,
                        source_id=pair[0],
                        target_id=pair[1],
                    )
                    continue
                pairs.add(pair)
                if choice.target_page_id not in self._by_id:
                    self.log.warning(
                        "dangling_choice", choice_id=choice.id, target_id=choice.target_page_id
                    )
            self._outgoing[choice.page_id].append(choice)

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    @property
    def pages(self) -> list[Page]:
        """All pages in input order (after dedup)."""
        return list(self._pages)

    def __len__(self) -> int:
        return len(self._pages)

    def __contains__(self, page_id: object) -> bool:
        return page_id in self._by_id

    def __iter__(self) -> Iterator[Page]:
        return iter(self._pages)

    def page(self, page_id: str) -> Page:
        """O(1) lookup.

        Raises:
            PageNotFoundError: If the id is not part of this graph.
        """
        try:
            return self._by_id[page_id]
        except KeyError:
            raise PageNotFoundError(page_id) from None

    def get(self, page_id: str) -> Optional[Page]:
        return self._by_id.get(page_id)

    def index_of(self, page_id: str) -> int:
        """Position of the page in input order."""
        return self._pages.index(self.page(page_id))

    # ------------------------------------------------------------------
    # Choices
    # ------------------------------------------------------------------

    @property
    def choices(self) -> list[Choice]:
        """Every stored choice (ids deduplicated), in input order."""
        return list(self._choices)

    def choice(self, choice_id: str) -> Choice:
        try:
            return self._choice_by_id[choice_id]
        except KeyError:
            raise ChoiceNotFoundError(choice_id) from None

    def choices_from(self, page_id: str) -> list[Choice]:
        """Active outgoing choices of a page.

        Ending pages have none, whatever is stored.  Undeveloped choices are
        included; duplicate ``(source, target)`` edges are not.
        """
        page = self.page(page_id)
        if page.is_ending:
            return []
        return list(self._outgoing[page_id])

    def edges(self) -> Iterator[tuple[str, str, Choice]]:
        """Yield ``(source_id, target_id, choice)`` for every navigable edge.

        Undeveloped choices and choices pointing outside the graph (reported
        once, when the graph is built) are skipped.
        """
        for page in self._pages:
            for choice in self.choices_from(page.id):
                target = choice.target_page_id
                if not target:
                    continue
                if target not in self._by_id:
                    continue
                yield page.id, target, choice

    def targets_of(self, page_id: str) -> list[tuple[str, Choice]]:
        """``(target_id, choice)`` pairs of the navigable edges leaving a page."""
        result: list[tuple[str, Choice]] = []
        for choice in self.choices_from(page_id):
            target = choice.target_page_id
            if target and target in self._by_id:
                result.append((target, choice))
        return result

    def referenced_ids(self) -> set[str]:
        """Ids of every page targeted by at least one navigable edge."""
        return {target for _, target, _ in self.edges()}
