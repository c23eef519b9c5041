"""Authoring commands: pages, choices, endings and page text.

Page and choice ids may be abbreviated to any unique prefix (the listings
show the first eight characters).
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

import typer

from backend.db import get_connection, init_db
from backend.engine import SqliteRepository, StoryEditor, StoryEngineError
from cli.context import load_context, require_context
from cli.editor import edit_text
from cli.rendering import page_title

write_app = typer.Typer(help="Write pages and choices of the active story.")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _run(action: Callable[[StoryEditor], Awaitable[Any]]) -> Any:
    """Load the active story into an editor, run *action*, report engine errors."""
    ctx = load_context()

    async def _main() -> Any:
        conn = get_connection()
        init_db(conn)
        try:
            editor = StoryEditor(SqliteRepository(conn), ctx.active_story_id)
            await editor.load()
            return await action(editor)
        finally:
            conn.close()

    try:
        return asyncio.run(_main())
    except StoryEngineError as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=1)


def _match(ids: list[str], prefix: str, kind: str) -> str:
    matches = [i for i in ids if i.startswith(prefix)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        typer.echo(f"❌ {kind} '{prefix}' not found in the active story.")
    else:
        typer.echo(f"❌ {kind} id '{prefix}' is ambiguous ({len(matches)} matches).")
    raise typer.Exit(code=1)


def _page_id(editor: StoryEditor, prefix: str) -> str:
    return _match([p.id for p in editor.graph.pages], prefix, "Page")


def _choice_id(editor: StoryEditor, prefix: str) -> str:
    return _match([c.id for c in editor.graph.choices], prefix, "Choice")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@write_app.command("page")
@require_context
def write_page(
    content: str = typer.Option("", "--content", "-c", help="Page text."),
    ending: bool = typer.Option(False, "--ending", help="Make this page an ending."),
) -> None:
    """Add a page to the active story."""
    async def action(editor: StoryEditor):
        page = await editor.add_page(content=content, is_ending=ending)
        if ending:
            page = await editor.mark_ending(page.id)
        return page

    page = _run(action)
    typer.echo(f"✅ Page created: {page_title(page)} ({page.id})")


@write_app.command("choice")
@require_context
def write_choice(
    page: str = typer.Argument(..., help="Source page id."),
    text: str = typer.Argument(..., help="Choice text shown to the reader."),
    to: Optional[str] = typer.Option(None, "--to", help="Target page id (omit to write it later)."),
) -> None:
    """Add a choice to a page."""
    async def action(editor: StoryEditor):
        target = _page_id(editor, to) if to else None
        return await editor.add_choice(_page_id(editor, page), text, target)

    choice = _run(action)
    if choice.target_page_id:
        typer.echo(f"✅ Choice created: {choice.text!r} → {choice.target_page_id[:8]} ({choice.id})")
    else:
        typer.echo(f"✅ Choice created: {choice.text!r} (not written yet) ({choice.id})")


@write_app.command("develop")
@require_context
def write_develop(
    choice: str = typer.Argument(..., help="Undeveloped choice id."),
    content: str = typer.Option("", "--content", "-c", help="Text of the new page."),
) -> None:
    """Create the page an undeveloped choice leads to."""
    async def action(editor: StoryEditor):
        return await editor.develop_choice(_choice_id(editor, choice), content=content)

    page = _run(action)
    typer.echo(f"✅ Page created and linked: {page_title(page)} ({page.id})")


@write_app.command("link")
@require_context
def write_link(
    choice: str = typer.Argument(..., help="Choice id."),
    target: Optional[str] = typer.Argument(None, help="Target page id."),
    unlink: bool = typer.Option(False, "--unlink", help="Make the choice undeveloped again."),
) -> None:
    """Point a choice at an existing page."""
    if not target and not unlink:
        typer.echo("❌ Give a target page id or --unlink.")
        raise typer.Exit(code=1)

    async def action(editor: StoryEditor):
        target_id = None if unlink else _page_id(editor, target)
        return await editor.link_choice(_choice_id(editor, choice), target_id)

    result = _run(action)
    if result.target_page_id:
        typer.echo(f"✅ {result.text!r} now leads to {result.target_page_id[:8]}")
    else:
        typer.echo(f"✅ {result.text!r} is not linked to any page.")


@write_app.command("end")
@require_context
def write_end(
    page: str = typer.Argument(..., help="Page id."),
    label: Optional[str] = typer.Option(None, "--label", help="Ending label, e.g. 'Happy ending'."),
    undo: bool = typer.Option(False, "--undo", help="Turn the ending back into a normal page."),
) -> None:
    """Mark a page as an ending (its choices are kept but hidden from readers)."""
    async def action(editor: StoryEditor):
        return await editor.mark_ending(_page_id(editor, page), is_ending=not undo, label=label)

    result = _run(action)
    if result.is_ending:
        typer.echo(f"🏁 {page_title(result)} is now an ending: {result.ending_label}")
    else:
        typer.echo(f"✅ {page_title(result)} is no longer an ending.")


@write_app.command("text")
@require_context
def write_text(
    page: str = typer.Argument(..., help="Page id."),
    content: Optional[str] = typer.Option(
        None, "--content", "-c", help="New text (omit to open $EDITOR)."
    ),
) -> None:
    """Replace the text of a page."""
    async def action(editor: StoryEditor):
        page_id = _page_id(editor, page)
        new_text = content
        if new_text is None:
            new_text = edit_text(editor.graph.page(page_id).content, f"page_{page_id[:8]}")
            if new_text is None:
                return None
        editor.edit_page(page_id, new_text)
        return await editor.save_page(page_id)

    result = _run(action)
    if result is None:
        typer.echo("No changes.")
        return
    typer.echo(f"✅ Saved: {page_title(result)}")


@write_app.command("delete")
@require_context
def write_delete(
    page: Optional[str] = typer.Option(None, "--page", help="Page id to delete."),
    choice: Optional[str] = typer.Option(None, "--choice", help="Choice id to delete."),
) -> None:
    """Delete a page (choices leading to it become unwritten) or a choice."""
    if bool(page) == bool(choice):
        typer.echo("❌ Give exactly one of --page or --choice.")
        raise typer.Exit(code=1)

    async def action(editor: StoryEditor):
        if page:
            await editor.delete_page(_page_id(editor, page))
        else:
            await editor.delete_choice(_choice_id(editor, choice))

    _run(action)
    typer.echo("✅ Deleted.")
