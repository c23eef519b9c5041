"""Story management commands."""

import json
from pathlib import Path

import typer

from backend.db import get_connection, init_db
from backend.db.choices import list_choices_for_story
from backend.db.pages import count_pages, list_pages
from backend.db.models import Story
from backend.db.stories import create_story, delete_story, get_story, list_stories, update_story
from backend.engine import StoryGraph, detect_cycles, resolve_root
from cli.context import CliContext, load_context, require_context, save_context

story_app = typer.Typer(help="Create, select and publish stories.")


def _active_story(conn, ctx: CliContext) -> Story:
    """The active story, or exit after clearing a context that points at a deleted one."""
    story = get_story(conn, ctx.active_story_id)
    if story is None:
        ctx.forget(ctx.active_story_id)
        save_context(ctx)
        typer.echo("❌ Active story no longer exists. Run 'story switch' to pick another.")
        raise typer.Exit(code=1)
    return story


@story_app.command("new")
def story_new(
    title: str = typer.Argument(..., help="Title of the new story."),
    description: str = typer.Option(None, "--description", "-d", help="Short blurb."),
) -> None:
    """Create a new draft story and switch to it."""
    ctx = load_context()
    conn = get_connection()
    init_db(conn)

    try:
        try:
            story = create_story(conn, title, author_id=ctx.user_id, description=description)
        except ValueError as exc:
            typer.echo(f"❌ {exc}")
            raise typer.Exit(code=1)
        typer.echo(f"✅ Story created: {story.title} ({story.id})")

        ctx.activate(story.id, story.title)
        save_context(ctx)

        typer.echo(f"📖 Switched to story: {story.title}")
    finally:
        conn.close()


@story_app.command("list")
def story_list(
    all_: bool = typer.Option(False, "--all", help="Include drafts (default: published only)."),
) -> None:
    """List stories."""
    conn = get_connection()
    init_db(conn)

    try:
        stories = list_stories(conn, status=None if all_ else "published")
        if not stories:
            typer.echo("No stories found.")
            return

        active_id = load_context().active_story_id
        typer.echo("Stories:")
        for s in stories:
            marker = "*" if s.id == active_id else " "
            typer.echo(f"{marker} {s.title} \t[{s.status}] [{s.id}]")
    finally:
        conn.close()


@story_app.command("switch")
def story_switch(
    identifier: str = typer.Argument(..., help="Story title or UUID.")
) -> None:
    """Switch the active story context."""
    conn = get_connection()
    init_db(conn)

    try:
        target = None
        for s in list_stories(conn):
            if s.id == identifier or s.title == identifier:
                target = s
                break

        if not target:
            typer.echo(f"❌ Story '{identifier}' not found.")
            raise typer.Exit(code=1)

        ctx = load_context()
        ctx.activate(target.id, target.title)
        save_context(ctx)

        typer.echo(f"📖 Switched to story: {target.title}")
    finally:
        conn.close()


@story_app.command("status")
@require_context
def story_status() -> None:
    """Show a dashboard for the current story."""
    ctx = load_context()
    conn = get_connection()
    init_db(conn)

    try:
        story = _active_story(conn, ctx)

        graph = StoryGraph(
            list_pages(conn, story.id), list_choices_for_story(conn, story.id)
        )
        root = resolve_root(graph)
        cycles = detect_cycles(graph, root)
        undeveloped = [c for c in graph.choices if not c.target_page_id]
        endings = [p for p in graph.pages if p.is_ending]

        typer.echo(f"\n📊 Story: {story.title}")
        typer.echo(f"   ID: {story.id}")
        typer.echo(f"   Status: {story.status}")
        typer.echo("-" * 40)
        typer.echo(f"   Pages: {count_pages(conn, story.id)}")
        typer.echo(f"   Choices: {len(graph.choices)}")
        typer.echo(f"   Endings: {len(endings)}")
        typer.echo(f"   Start page: {root.id if root else '(none)'}")
        typer.echo(f"   Unwritten choices: {len(undeveloped)}")
        typer.echo(f"   Loops: {len(cycles.back_edges)}")
        typer.echo(f"   Orphan pages: {len(cycles.orphans)}")
        typer.echo("")
    finally:
        conn.close()


def _set_status(status: str) -> None:
    ctx = load_context()
    conn = get_connection()
    init_db(conn)

    try:
        try:
            story = update_story(conn, ctx.active_story_id, status=status)
        except ValueError as exc:
            typer.echo(f"❌ {exc}")
            raise typer.Exit(code=1)
        typer.echo(f"✅ {story.title} is now {story.status}.")
    finally:
        conn.close()


@story_app.command("publish")
@require_context
def story_publish() -> None:
    """Make the active story visible to readers."""
    _set_status("published")


@story_app.command("unpublish")
@require_context
def story_unpublish() -> None:
    """Move the active story back to draft."""
    _set_status("draft")


@story_app.command("export")
@require_context
def story_export(
    output: Path = typer.Option(None, help="Output JSON file path. Defaults to <story_title>.json")
) -> None:
    """Export the active story (pages and choices) to a JSON file."""
    ctx = load_context()
    conn = get_connection()
    init_db(conn)

    try:
        story = _active_story(conn, ctx)

        data = {
            "story": story.to_dict(),
            "pages": [p.to_dict() for p in list_pages(conn, story.id)],
            "choices": [c.to_dict() for c in list_choices_for_story(conn, story.id)],
        }

        if not output:
            safe_name = "".join(c for c in story.title if c.isalnum() or c in (" ", "-", "_")).strip()
            safe_name = safe_name.replace(" ", "_") or "story"
            output = Path(f"{safe_name}.json")

        output.write_text(json.dumps(data, indent=2), encoding="utf-8")
        typer.echo(f"✅ Exported to {output.absolute()}")
    finally:
        conn.close()


@story_app.command("recent")
def story_recent() -> None:
    """List the stories you switched to most recently."""
    ctx = load_context()
    conn = get_connection()
    init_db(conn)

    try:
        stories = [s for s in (get_story(conn, sid) for sid in ctx.recent_story_ids) if s]
    finally:
        conn.close()

    if not stories:
        typer.echo("No recent stories.")
        return
    for s in stories:
        marker = "*" if s.id == ctx.active_story_id else " "
        typer.echo(f"{marker} {s.title} \t[{s.status}] [{s.id}]")


@story_app.command("delete")
def story_delete(
    identifier: str = typer.Argument(..., help="Story title or UUID."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Delete a story with all its pages, choices and reader parties."""
    conn = get_connection()
    init_db(conn)

    try:
        target = next(
            (s for s in list_stories(conn) if identifier in (s.id, s.title)), None
        )
        if target is None:
            typer.echo(f"❌ Story '{identifier}' not found.")
            raise typer.Exit(code=1)

        if not yes and not typer.confirm(f"Delete '{target.title}' and all its pages?", default=False):
            typer.echo("Aborted.")
            return

        delete_story(conn, target.id)
    finally:
        conn.close()

    ctx = load_context()
    ctx.forget(target.id)
    save_context(ctx)
    typer.echo(f"🗑️ Deleted story: {target.title}")
