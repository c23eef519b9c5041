"""Reader session (party) state machine.

A session is always on exactly one page and is either ``READING`` (on a
non-ending page) or ``ENDED`` (on an ending page).

Two lists are kept apart:

- ``party.path`` is the persisted, append-only visit log;
- ``history`` is the in-memory navigation stack used by :meth:`go_back`.

Every transition that changes the path is saved first and applied second: if
the repository call fails, a :class:`PersistenceError` propagates and the
session is left exactly as it was.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from time import time
from typing import Optional

from backend.db.models import Choice, Page, Party
from backend.engine.errors import (
    ContentIncompleteError,
    InvalidTransitionError,
    PageNotFoundError,
)
from backend.engine.graph import StoryGraph
from backend.engine.progress import PartyProgress, party_progress
from backend.engine.repository import StoryRepository, load_graph
from backend.engine.root import resolve_root

CompletionCallback = Callable[[Party], None]


class SessionState(str, enum.Enum):
    READING = "reading"
    ENDED = "ended"


def _now() -> int:
    return int(time())


class ReaderSession:
    """One reader playing through one story.

    Use :meth:`start` for a new play-through and :meth:`resume` to continue a
    stored party; the constructor expects an already loaded graph and party.

    Args:
        repo: Persistence collaborator.
        graph: Snapshot of the story being read.
        party: The party this session records into.
        on_complete: Called once, with the updated party, the first time the
            session reaches an ending (e.g. to prompt for a rating).
        clock: Returns the current time as epoch seconds.
    """

    def __init__(
        self,
        repo: StoryRepository,
        graph: StoryGraph,
        party: Party,
        *,
        on_complete: Optional[CompletionCallback] = None,
        clock: Callable[[], int] = _now,
    ) -> None:
        self.repo = repo
        self.graph = graph
        self.party = party
        self.on_complete = on_complete
        self.clock = clock
        self._completion_fired = False

        current = self._resume_point()
        self.history: list[str] = [current.id]

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    async def start(
        cls,
        repo: StoryRepository,
        story_id: str,
        user_id: str,
        *,
        on_complete: Optional[CompletionCallback] = None,
        clock: Callable[[], int] = _now,
    ) -> ReaderSession:
        """Create a party for *user_id* and place the reader on the root page."""
        graph = await load_graph(repo, story_id)
        root = resolve_root(graph)
        if root is None:
            raise ContentIncompleteError(f"Story {story_id!r} has no pages yet")

        party = await repo.create_party(user_id, story_id)
        session = cls(repo, graph, party, on_complete=on_complete, clock=clock)
        await session._visit(root, push=False)
        return session

    @classmethod
    async def resume(
        cls,
        repo: StoryRepository,
        party_id: str,
        *,
        on_complete: Optional[CompletionCallback] = None,
        clock: Callable[[], int] = _now,
    ) -> ReaderSession:
        """Continue a stored party on the last page of its path."""
        party = await repo.get_party(party_id)
        graph = await load_graph(repo, party.story_id)
        if len(graph) == 0:
            raise ContentIncompleteError(f"Story {party.story_id!r} has no pages yet")
        session = cls(repo, graph, party, on_complete=on_complete, clock=clock)
        if not party.path:
            await session._visit(session.current_page, push=False)
        return session

    def _resume_point(self) -> Page:
        for page_id in reversed(self.party.path):
            page = self.graph.get(page_id)
            if page is not None:
                return page
            self.graph.log.warning("resume_page_missing", party_id=self.party.id, page_id=page_id)
        root = resolve_root(self.graph)
        if root is None:
            raise ContentIncompleteError("Story has no pages yet")
        return root

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def current_page(self) -> Page:
        return self.graph.page(self.history[-1])

    @property
    def state(self) -> SessionState:
        if self.current_page.is_ending:
            return SessionState.ENDED
        return SessionState.READING

    @property
    def path(self) -> list[str]:
        return list(self.party.path)

    @property
    def can_go_back(self) -> bool:
        return len(self.history) > 1

    def available_choices(self) -> list[Choice]:
        """Choices the reader can see on the current page (none on endings)."""
        return self.graph.choices_from(self.current_page.id)

    def progress(self) -> PartyProgress:
        return party_progress(
            self.party, len(self.graph), [p.id for p in self.graph.pages]
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def select_choice(self, choice_id: str) -> Page:
        """Follow a choice of the current page.

        Raises:
            InvalidTransitionError: The session is ``ENDED`` or the choice
                does not leave the current page.
            ChoiceNotFoundError: Unknown choice id.
            ContentIncompleteError: The choice has no target page yet.
            PageNotFoundError: The target page is not part of the story.
            PersistenceError: Saving the visit failed; nothing changed.
        """
        if self.state is SessionState.ENDED:
            raise InvalidTransitionError("The story has ended; restart to read again")

        choice = self.graph.choice(choice_id)
        if choice.page_id != self.current_page.id:
            raise InvalidTransitionError(
                f"Choice {choice_id!r} does not belong to the current page"
            )
        if not choice.target_page_id:
            raise ContentIncompleteError(
                "This choice has not been written yet", choice_id=choice.id
            )
        target = self.graph.get(choice.target_page_id)
        if target is None:
            raise PageNotFoundError(choice.target_page_id)

        await self._visit(target, push=True)
        return target

    def go_back(self) -> Page:
        """Return to the previous page of the navigation history.

        The persisted path is left untouched.

        Raises:
            InvalidTransitionError: Only one page in the history.
        """
        if not self.can_go_back:
            raise InvalidTransitionError("Nothing to go back to")
        self.history.pop()
        return self.current_page

    async def restart(self) -> Page:
        """Jump back to the root page with a fresh single-entry history."""
        root = resolve_root(self.graph)
        if root is None:
            raise ContentIncompleteError("Story has no pages yet")
        await self._visit(root, push=False)
        return root

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _visit(self, page: Page, *, push: bool) -> None:
        fields: dict = {"path": [*self.party.path, page.id]}
        completing = page.is_ending and self.party.end_date is None
        if completing:
            fields["end_date"] = self.clock()
            fields["ending_id"] = page.id

        self.party = await self.repo.update_party(self.party.id, **fields)

        if push:
            self.history.append(page.id)
        else:
            self.history = [page.id]

        if page.is_ending and not self._completion_fired:
            self._completion_fired = True
            self.graph.log.info(
                "party_completed", party_id=self.party.id, ending_id=page.id
            )
            if self.on_complete is not None:
                self.on_complete(self.party)
