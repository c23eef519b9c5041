"""Reading commands: play through a story and check progress."""

import asyncio

import typer

from backend.db import get_connection, init_db
from backend.db.models import Party
from backend.db.pages import list_pages
from backend.db.parties import latest_party
from backend.db.stories import get_story
from backend.engine import ReaderSession, SessionState, SqliteRepository, StoryEngineError, party_progress
from cli.context import load_context, require_context
from cli.rendering import page_title

read_app = typer.Typer(help="Read the active story.")

_HELP = "Enter a choice number, 'b' to go back, 'r' to restart, 'q' to quit."


def _show(session: ReaderSession) -> None:
    page = session.current_page
    typer.echo("")
    typer.echo("-" * 60)
    typer.echo(page.content.strip() or "(This page is still empty.)")
    typer.echo("-" * 60)

    if session.state is SessionState.ENDED:
        typer.echo(f"🏁 {page.ending_label or 'The End'}")
        return

    choices = session.available_choices()
    if not choices:
        typer.echo("(No choices yet: the author has not continued this page.)")
    for i, choice in enumerate(choices, start=1):
        suffix = "" if choice.target_page_id else "  (not written yet)"
        typer.echo(f"  {i}. {choice.text}{suffix}")


def _on_complete(party: Party) -> None:
    typer.echo("🎉 You reached an ending! Rate this story on the website to help its author.")


async def _play(story_id: str, user_id: str, new: bool) -> None:
    conn = get_connection()
    init_db(conn)
    repo = SqliteRepository(conn)

    try:
        party = None if new else latest_party(conn, user_id, story_id)
        if party is not None:
            session = await ReaderSession.resume(repo, party.id, on_complete=_on_complete)
            typer.echo(f"📖 Resuming your reading ({len(party.path)} pages visited).")
        else:
            session = await ReaderSession.start(repo, story_id, user_id, on_complete=_on_complete)

        _show(session)
        while True:
            answer = typer.prompt(">", default="q").strip().lower()
            try:
                if answer == "q":
                    break
                if answer == "b":
                    session.go_back()
                elif answer == "r":
                    await session.restart()
                elif answer.isdigit():
                    choices = session.available_choices()
                    index = int(answer) - 1
                    if not 0 <= index < len(choices):
                        typer.echo(f"⚠️ No choice {answer}. {_HELP}")
                        continue
                    await session.select_choice(choices[index].id)
                else:
                    typer.echo(_HELP)
                    continue
            except StoryEngineError as exc:
                typer.echo(f"⚠️ {exc}")
                continue
            _show(session)

        progress = session.progress()
        typer.echo(f"Progress: {progress.progress}% ({progress.visited_pages}/{progress.total_pages} pages)")
    finally:
        conn.close()


@read_app.command("play")
@require_context
def read_play(
    new: bool = typer.Option(False, "--new", help="Start over instead of resuming."),
) -> None:
    """Read the active story interactively."""
    ctx = load_context()
    try:
        asyncio.run(_play(ctx.active_story_id, ctx.user_id, new))
    except StoryEngineError as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=1)


@read_app.command("progress")
@require_context
def read_progress() -> None:
    """Show how much of the active story you have read."""
    ctx = load_context()
    conn = get_connection()
    init_db(conn)

    try:
        story = get_story(conn, ctx.active_story_id)
        party = latest_party(conn, ctx.user_id, ctx.active_story_id)
        if story is None or party is None:
            typer.echo("You have not started this story yet. Run 'read play'.")
            return

        pages_by_id = {p.id: p for p in list_pages(conn, story.id)}
        progress = party_progress(party, len(pages_by_id), pages_by_id)

        typer.echo(f"📖 {story.title}")
        typer.echo(f"   Progress: {progress.progress}% ({progress.visited_pages}/{progress.total_pages} pages)")
        if progress.is_completed:
            ending = pages_by_id.get(party.ending_id or "")
            label = ending.ending_label if ending and ending.ending_label else "The End"
            typer.echo(f"   Finished: 🏁 {label}")
        elif party.path and party.path[-1] in pages_by_id:
            typer.echo(f"   Current page: {page_title(pages_by_id[party.path[-1]])}")
    finally:
        conn.close()
