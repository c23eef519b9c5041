"""Persistence collaborator used by the reader session and the editor.

:class:`StoryRepository` is the async interface the engine depends on.  Two
implementations exist: :class:`SqliteRepository` below, which runs the
``backend.db`` functions on a local connection, and
:class:`backend.client.ApiClient`, which talks to the REST API.

Both translate their failures into engine errors:

- unknown ids → ``PageNotFoundError`` / ``ChoiceNotFoundError`` /
  ``StoryNotFoundError`` / ``PartyNotFoundError``,
- empty choice text → ``ContentIncompleteError``,
- anything else that goes wrong in the store → ``PersistenceError``.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Optional, Protocol, runtime_checkable

from backend.db import choices as choices_db
from backend.db import pages as pages_db
from backend.db import parties as parties_db
from backend.db import stories as stories_db
from backend.db.models import Choice, Page, Party, Story
from backend.engine.errors import (
    ChoiceNotFoundError,
    ContentIncompleteError,
    PageNotFoundError,
    PartyNotFoundError,
    PersistenceError,
    StoryNotFoundError,
)
from backend.engine.graph import StoryGraph


@runtime_checkable
class StoryRepository(Protocol):
    async def list_pages(self, story_id: str) -> list[Page]: ...

    async def create_page(
        self, story_id: str, content: str = "", is_ending: bool = False
    ) -> Page: ...

    async def update_page(self, page_id: str, **fields: Any) -> Page: ...

    async def delete_page(self, page_id: str) -> None: ...

    async def list_choices_for_page(self, page_id: str) -> list[Choice]: ...

    async def create_choice(
        self, page_id: str, text: str, target_page_id: Optional[str] = None
    ) -> Choice: ...

    async def update_choice(self, choice_id: str, **fields: Any) -> Choice: ...

    async def delete_choice(self, choice_id: str) -> None: ...

    async def get_party(self, party_id: str) -> Party: ...

    async def create_party(self, user_id: str, story_id: str) -> Party: ...

    async def update_party(self, party_id: str, **fields: Any) -> Party: ...

    async def get_story(self, story_id: str) -> Story: ...

    async def update_story(self, story_id: str, **fields: Any) -> Story: ...


class SqliteRepository:
    """:class:`StoryRepository` over a local SQLite connection.

    The db layer is synchronous; calls complete before the coroutine yields.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _call(self, func: Any, *args: Any, **kwargs: Any) -> Any:
        try:
            return func(self.conn, *args, **kwargs)
        except sqlite3.Error as exc:
            raise PersistenceError(f"{func.__name__} failed: {exc}") from exc
        except ValueError as exc:
            raise PersistenceError(str(exc)) from exc

    def _require_page(self, page_id: str) -> Page:
        page = self._call(pages_db.get_page, page_id)
        if page is None:
            raise PageNotFoundError(page_id)
        return page

    def _require_choice(self, choice_id: str) -> Choice:
        choice = self._call(choices_db.get_choice, choice_id)
        if choice is None:
            raise ChoiceNotFoundError(choice_id)
        return choice

    def _require_story(self, story_id: str) -> Story:
        story = self._call(stories_db.get_story, story_id)
        if story is None:
            raise StoryNotFoundError(story_id)
        return story

    def _require_party(self, party_id: str) -> Party:
        party = self._call(parties_db.get_party, party_id)
        if party is None:
            raise PartyNotFoundError(party_id)
        return party

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    async def list_pages(self, story_id: str) -> list[Page]:
        self._require_story(story_id)
        return self._call(pages_db.list_pages, story_id)

    async def create_page(
        self, story_id: str, content: str = "", is_ending: bool = False
    ) -> Page:
        self._require_story(story_id)
        return self._call(pages_db.create_page, story_id, content=content, is_ending=is_ending)

    async def update_page(self, page_id: str, **fields: Any) -> Page:
        self._require_page(page_id)
        return self._call(pages_db.update_page, page_id, **fields)

    async def delete_page(self, page_id: str) -> None:
        self._call(pages_db.delete_page, page_id)

    # ------------------------------------------------------------------
    # Choices
    # ------------------------------------------------------------------

    async def list_choices_for_page(self, page_id: str) -> list[Choice]:
        self._require_page(page_id)
        return self._call(choices_db.list_choices_for_page, page_id)

    async def list_choices_for_story(self, story_id: str) -> list[Choice]:
        self._require_story(story_id)
        return self._call(choices_db.list_choices_for_story, story_id)

    async def create_choice(
        self, page_id: str, text: str, target_page_id: Optional[str] = None
    ) -> Choice:
        if not text or not text.strip():
            raise ContentIncompleteError("Choice text must not be empty")
        self._require_page(page_id)
        if target_page_id:
            self._require_page(target_page_id)
        return self._call(
            choices_db.create_choice, page_id, text, target_page_id=target_page_id
        )

    async def update_choice(self, choice_id: str, **fields: Any) -> Choice:
        self._require_choice(choice_id)
        if "text" in fields and not (fields["text"] or "").strip():
            raise ContentIncompleteError("Choice text must not be empty", choice_id=choice_id)
        if fields.get("target_page_id"):
            self._require_page(fields["target_page_id"])
        return self._call(choices_db.update_choice, choice_id, **fields)

    async def delete_choice(self, choice_id: str) -> None:
        self._call(choices_db.delete_choice, choice_id)

    # ------------------------------------------------------------------
    # Parties
    # ------------------------------------------------------------------

    async def get_party(self, party_id: str) -> Party:
        return self._require_party(party_id)

    async def create_party(self, user_id: str, story_id: str) -> Party:
        self._require_story(story_id)
        return self._call(parties_db.create_party, user_id, story_id)

    async def update_party(self, party_id: str, **fields: Any) -> Party:
        self._require_party(party_id)
        return self._call(parties_db.update_party, party_id, **fields)

    async def latest_party(self, user_id: str, story_id: str) -> Optional[Party]:
        return self._call(parties_db.latest_party, user_id, story_id)

    # ------------------------------------------------------------------
    # Stories
    # ------------------------------------------------------------------

    async def get_story(self, story_id: str) -> Story:
        return self._require_story(story_id)

    async def update_story(self, story_id: str, **fields: Any) -> Story:
        self._require_story(story_id)
        return self._call(stories_db.update_story, story_id, **fields)


async def load_graph(
    repo: StoryRepository,
    story_id: str,
    log: Optional[Any] = None,
) -> StoryGraph:
    """Fetch every page and choice of a story and build its graph snapshot."""
    pages = await repo.list_pages(story_id)
    choices: list[Choice] = []
    for page in pages:
        choices.extend(await repo.list_choices_for_page(page.id))
    return StoryGraph(pages, choices, log=log)
