"""External editor integration for the Storyloom CLI.

``write text`` without ``--content`` hands the page text to the user's editor
through a draft file in ``<cli_config_dir>/drafts``.  The draft is removed once
its text has been read back; if the editor fails it is kept so nothing typed
is lost.
"""

from __future__ import annotations

import os
import shlex
import shutil
import subprocess
from typing import Optional

import typer

from backend.config import settings
from cli.context import load_context

_FALLBACK_EDITORS = ("nano", "vim", "vi")


def get_editor_command() -> list[str]:
    """Editor argv, from the ``editor`` preference, ``$VISUAL``, ``$EDITOR``, or a platform default."""
    preferred = (
        load_context().user_preferences.get("editor")
        or os.environ.get("VISUAL")
        or os.environ.get("EDITOR")
    )
    if preferred:
        return shlex.split(preferred, posix=os.name != "nt")

    if os.name == "nt":
        return ["code", "-w"] if shutil.which("code") else ["notepad"]
    for candidate in _FALLBACK_EDITORS:
        if shutil.which(candidate):
            return [candidate]
    return ["vi"]


def edit_text(initial: str, name: str, extension: str = ".md") -> Optional[str]:
    """Let the user edit *initial*; return the new text, or ``None`` if unchanged or the editor failed."""
    drafts_dir = settings.cli_config_dir / "drafts"
    drafts_dir.mkdir(parents=True, exist_ok=True)
    draft_file = drafts_dir / f"{name}{extension}"
    draft_file.write_text(initial, encoding="utf-8")

    try:
        ret = subprocess.call([*get_editor_command(), str(draft_file)])
    except OSError as exc:
        typer.echo(f"⚠️ Could not start the editor: {exc}")
        return None
    if ret != 0:
        typer.echo(f"⚠️ Editor exited with code {ret}; draft kept at {draft_file}")
        return None

    new_text = draft_file.read_text(encoding="utf-8")
    draft_file.unlink()
    if new_text.rstrip("\n") == initial.rstrip("\n"):
        return None
    return new_text
