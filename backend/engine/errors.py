"""Exception hierarchy for the narrative graph engine.

Structural problems in a story graph (duplicate ids, orphans, cycles,
multi-parent pages) are *not* represented here: they are logged and the
engine falls back to a defined behaviour.  Everything below blocks only the
action that was attempted.
"""

from __future__ import annotations

from typing import Optional


class StoryEngineError(Exception):
    """Base class for all engine errors."""


class ContentIncompleteError(StoryEngineError):
    """The author has not finished this part of the story.

    Raised when a reader selects an undeveloped choice (no target page) or an
    author tries to save a choice with empty text.
    """

    def __init__(self, message: str, *, choice_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.choice_id = choice_id


class PageNotFoundError(StoryEngineError, LookupError):
    """A page id is absent from the loaded graph or the store."""

    def __init__(self, page_id: str) -> None:
        super().__init__(f"Page not found: {page_id!r}")
        self.page_id = page_id


class ChoiceNotFoundError(StoryEngineError, LookupError):
    """A choice id is absent from the loaded graph or the store."""

    def __init__(self, choice_id: str) -> None:
        super().__init__(f"Choice not found: {choice_id!r}")
        self.choice_id = choice_id


class InvalidTransitionError(StoryEngineError):
    """The reader session cannot perform this transition in its current state."""


class PersistenceError(StoryEngineError):
    """A call to the persistence collaborator failed.

    The original exception is chained as ``__cause__``.  In-memory state is
    left as it was after the last successful save.
    """


class StoryNotFoundError(StoryEngineError, LookupError):
    def __init__(self, story_id: str) -> None:
        super().__init__(f"Story not found: {story_id!r}")
        self.story_id = story_id


class PartyNotFoundError(StoryEngineError, LookupError):
    def __init__(self, party_id: str) -> None:
        super().__init__(f"Party not found: {party_id!r}")
        self.party_id = party_id
