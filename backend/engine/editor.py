"""Author-side mutations of a story graph.

:class:`StoryEditor` keeps a local copy of a story's pages and choices, sends
every mutation to the repository and rebuilds the :class:`StoryGraph`
snapshot once the repository confirms.  Derived views (root, order, tree
layout) are recomputed from the latest snapshot; the display tree is cached
and its memoized depths invalidated whenever the page or choice set changes.

Text edits go through :class:`Draft` objects.  A draft carries a revision
counter that is bumped on every local edit; a save response is only applied
if no newer edit happened while the request was in flight, so a slow
response can never overwrite what the author typed since.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from backend.db.models import Choice, Page, Story
from backend.engine.errors import (
    ChoiceNotFoundError,
    ContentIncompleteError,
    PageNotFoundError,
    PersistenceError,
    StoryEngineError,
)
from backend.engine.graph import StoryGraph, dedup_pages
from backend.engine.layout import LayoutConfig, Position, StoryTree, build_tree, compute_layout
from backend.engine.repository import StoryRepository
from backend.engine.root import resolve_root
from backend.engine.traversal import OrderEntry, traversal_order
from backend.observability import get_logger

DEFAULT_ENDING_LABEL = "The End"


@dataclass
class Draft:
    """Local, possibly unsaved text of a page or choice."""

    value: str
    revision: int = 0
    dirty: bool = False

    def edit(self, value: str) -> None:
        self.value = value
        self.revision += 1
        self.dirty = True


class StoryEditor:
    """Edit one story through a :class:`StoryRepository`."""

    def __init__(self, repo: StoryRepository, story_id: str, *, log=None) -> None:
        self.repo = repo
        self.story_id = story_id
        self.log = log if log is not None else get_logger(__name__)

        self._pages: dict[str, Page] = {}
        self._choices: dict[str, Choice] = {}
        self.page_drafts: dict[str, Draft] = {}
        self.choice_drafts: dict[str, Draft] = {}
        self.graph = StoryGraph([], log=self.log)
        self._tree: Optional[StoryTree] = None

    # ------------------------------------------------------------------
    # Loading / derived views
    # ------------------------------------------------------------------

    async def load(self) -> StoryGraph:
        """(Re)fetch every page and choice of the story."""
        pages = await self.repo.list_pages(self.story_id)
        self._pages = {p.id: p for p in dedup_pages(pages, self.log)}
        self._choices = {}
        for page in self._pages.values():
            for choice in await self.repo.list_choices_for_page(page.id):
                self._choices[choice.id] = choice
        self.page_drafts.clear()
        self.choice_drafts.clear()
        return self._rebuild()

    def _rebuild(self) -> StoryGraph:
        self.graph = StoryGraph(
            list(self._pages.values()), list(self._choices.values()), log=self.log
        )
        if self._tree is not None:
            self._tree.invalidate()
        self._tree = None
        return self.graph

    def root(self) -> Optional[Page]:
        return resolve_root(self.graph)

    def order(self) -> list[OrderEntry]:
        return traversal_order(self.graph)

    @property
    def tree(self) -> StoryTree:
        if self._tree is None:
            self._tree = build_tree(self.graph)
        return self._tree

    def layout(self, config: Optional[LayoutConfig] = None) -> dict[str, Position]:
        return compute_layout(self.tree, config, graph=self.graph)

    def _page(self, page_id: str) -> Page:
        page = self._pages.get(page_id)
        if page is None:
            raise PageNotFoundError(page_id)
        return page

    def _choice(self, choice_id: str) -> Choice:
        choice = self._choices.get(choice_id)
        if choice is None:
            raise ChoiceNotFoundError(choice_id)
        return choice

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    async def add_page(self, content: str = "", is_ending: bool = False) -> Page:
        page = await self.repo.create_page(self.story_id, content=content, is_ending=is_ending)
        self._pages[page.id] = page
        self._rebuild()
        return page

    async def mark_ending(
        self, page_id: str, is_ending: bool = True, label: Optional[str] = None
    ) -> Page:
        """Toggle the ending flag of a page.

        Stored choices of an ending page are kept; they simply stop being
        navigable.
        """
        self._page(page_id)
        fields: dict = {"is_ending": is_ending}
        if is_ending:
            fields["ending_label"] = label or DEFAULT_ENDING_LABEL
        page = await self.repo.update_page(page_id, **fields)
        self._pages[page.id] = page
        self._rebuild()
        return page

    async def delete_page(self, page_id: str) -> None:
        """Delete a page, its own choices, and unlink choices that led to it."""
        self._page(page_id)
        await self.repo.delete_page(page_id)
        del self._pages[page_id]
        self.page_drafts.pop(page_id, None)
        for choice_id, choice in list(self._choices.items()):
            if choice.page_id == page_id:
                del self._choices[choice_id]
                self.choice_drafts.pop(choice_id, None)
            elif choice.target_page_id == page_id:
                self._choices[choice_id] = replace(choice, target_page_id=None)
        self._rebuild()

    def edit_page(self, page_id: str, content: str) -> Draft:
        """Record a local content edit; call :meth:`save_page` to persist it."""
        page = self._page(page_id)
        draft = self.page_drafts.setdefault(page_id, Draft(page.content))
        draft.edit(content)
        return draft

    async def save_page(self, page_id: str) -> Page:
        """Persist the content draft of a page.

        If the draft was edited again while the request was in flight, the
        response is not applied and the draft stays dirty.  A response for a
        page deleted (or reloaded) in the meantime is dropped as well.
        """
        page = self._page(page_id)
        draft = self.page_drafts.get(page_id)
        if draft is None or not draft.dirty:
            return page

        revision = draft.revision
        saved = await self.repo.update_page(page_id, content=draft.value)

        current = self._pages.get(page_id)
        if current is None or self.page_drafts.get(page_id) is not draft or draft.revision != revision:
            self.log.debug("stale_save_ignored", page_id=page_id, revision=revision)
            return current if current is not None else saved

        draft.dirty = False
        self._pages[page_id] = saved
        self._rebuild()
        return saved

    # ------------------------------------------------------------------
    # Choices
    # ------------------------------------------------------------------

    async def add_choice(
        self, page_id: str, text: str, target_page_id: Optional[str] = None
    ) -> Choice:
        """Add a choice to a page, optionally leading to an existing page.

        Raises:
            ContentIncompleteError: Empty choice text.
            PageNotFoundError: Unknown source or target page.
        """
        if not text or not text.strip():
            raise ContentIncompleteError("Choice text must not be empty")
        self._page(page_id)
        if target_page_id:
            self._page(target_page_id)
        choice = await self.repo.create_choice(page_id, text.strip(), target_page_id)
        self._choices[choice.id] = choice
        self._rebuild()
        return choice

    async def link_choice(self, choice_id: str, target_page_id: Optional[str]) -> Choice:
        """Point a choice at a page, or make it undeveloped again with ``None``."""
        self._choice(choice_id)
        if target_page_id:
            self._page(target_page_id)
        choice = await self.repo.update_choice(choice_id, target_page_id=target_page_id)
        self._choices[choice.id] = choice
        self._rebuild()
        return choice

    async def develop_choice(self, choice_id: str, content: str = "") -> Page:
        """Write the page behind an undeveloped choice.

        A new page is created first and the choice is linked to it second.
        If linking fails, the new page stays in the story (it was saved) and
        a :class:`PersistenceError` names both ids so the caller can retry
        with :meth:`link_choice`.
        """
        choice = self._choice(choice_id)
        if choice.target_page_id:
            raise StoryEngineError(
                f"Choice {choice_id!r} already leads to page {choice.target_page_id!r}"
            )

        page = await self.add_page(content=content)
        try:
            await self.link_choice(choice_id, page.id)
        except PersistenceError as exc:
            self.log.warning("develop_link_failed", choice_id=choice_id, page_id=page.id)
            raise PersistenceError(
                f"Page {page.id!r} was created but choice {choice_id!r} could not be linked to it"
            ) from exc
        return page

    def edit_choice(self, choice_id: str, text: str) -> Draft:
        choice = self._choice(choice_id)
        draft = self.choice_drafts.setdefault(choice_id, Draft(choice.text))
        draft.edit(text)
        return draft

    async def save_choice(self, choice_id: str) -> Choice:
        """Persist the text draft of a choice (empty text is refused)."""
        choice = self._choice(choice_id)
        draft = self.choice_drafts.get(choice_id)
        if draft is None or not draft.dirty:
            return choice
        if not draft.value.strip():
            raise ContentIncompleteError("Choice text must not be empty", choice_id=choice_id)

        revision = draft.revision
        saved = await self.repo.update_choice(choice_id, text=draft.value.strip())

        current = self._choices.get(choice_id)
        if current is None or self.choice_drafts.get(choice_id) is not draft or draft.revision != revision:
            self.log.debug("stale_save_ignored", choice_id=choice_id, revision=revision)
            return current if current is not None else saved

        draft.dirty = False
        self._choices[choice_id] = saved
        self._rebuild()
        return saved

    async def delete_choice(self, choice_id: str) -> None:
        self._choice(choice_id)
        await self.repo.delete_choice(choice_id)
        del self._choices[choice_id]
        self.choice_drafts.pop(choice_id, None)
        self._rebuild()

    # ------------------------------------------------------------------
    # Story
    # ------------------------------------------------------------------

    async def publish(self) -> Story:
        return await self.repo.update_story(self.story_id, status="published")

    async def unpublish(self) -> Story:
        return await self.repo.update_story(self.story_id, status="draft")

    @property
    def dirty(self) -> bool:
        """True while any page or choice has unsaved edits."""
        return any(d.dirty for d in self.page_drafts.values()) or any(
            d.dirty for d in self.choice_drafts.values()
        )
