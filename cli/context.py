"""Persistent state of the Storyloom CLI.

One JSON file (``<cli_config_dir>/context.json``) remembers which story the
``write``, ``map`` and ``read`` commands act on, who the local reader is, the
stories switched to recently, and free-form preferences such as ``editor``.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from functools import wraps
from pathlib import Path
from typing import Any, Callable

import typer
from backend.config import settings

DEFAULT_USER_ID = "local-reader"
MAX_RECENT = 5


@dataclass
class CliContext:
    active_story_id: str | None = None
    active_story_title: str | None = None
    user_id: str = DEFAULT_USER_ID
    recent_story_ids: list[str] = field(default_factory=list)
    user_preferences: dict[str, Any] = field(default_factory=dict)

    def activate(self, story_id: str, title: str) -> None:
        """Make *story_id* the active story and move it to the front of the recents."""
        self.active_story_id = story_id
        self.active_story_title = title
        recent = [sid for sid in self.recent_story_ids if sid != story_id]
        self.recent_story_ids = [story_id, *recent][:MAX_RECENT]

    def forget(self, story_id: str) -> None:
        """Drop every reference to a story that no longer exists."""
        if self.active_story_id == story_id:
            self.active_story_id = None
            self.active_story_title = None
        self.recent_story_ids = [sid for sid in self.recent_story_ids if sid != story_id]

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2)

    @classmethod
    def from_json(cls, data: str) -> CliContext:
        # Files from older versions or hand edits fall back to a clean context.
        try:
            return cls(**json.loads(data))
        except (json.JSONDecodeError, TypeError):
            return cls()


def _get_context_path() -> Path:
    return settings.cli_config_dir / "context.json"


def load_context() -> CliContext:
    """Read the context file; defaults when it is missing, unreadable or corrupt."""
    path = _get_context_path()
    try:
        return CliContext.from_json(path.read_text(encoding="utf-8"))
    except OSError:
        return CliContext()


def save_context(ctx: CliContext) -> None:
    settings.cli_config_dir.mkdir(parents=True, exist_ok=True)
    _get_context_path().write_text(ctx.to_json(), encoding="utf-8")


def require_context(func: Callable) -> Callable:
    """Decorator for commands that act on the active story.

    Exits with code 1 before the command runs when no story is active.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        if not load_context().active_story_id:
            typer.echo("❌ No active story selected.")
            typer.echo("Run 'story new <title>' or 'story switch <title>' first.")
            raise typer.Exit(code=1)
        return func(*args, **kwargs)

    return wrapper
