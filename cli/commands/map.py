"""Command for visualising the story graph."""

import typer

from backend.db import get_connection, init_db
from backend.db.choices import list_choices_for_story
from backend.db.pages import list_pages
from backend.engine import StoryGraph, build_tree, compute_layout, detect_cycles, resolve_root, traversal_order
from cli.context import load_context, require_context
from cli.rendering import render_layout, render_order, render_tree

map_app = typer.Typer(help="Visualise the active story.", no_args_is_help=True)

_FORMATS = ("tree", "order", "layout")


@map_app.callback()
def map_callback() -> None:
    """Visualise the active story."""


@map_app.command("show")
@require_context
def map_show(
    format: str = typer.Option("tree", "--format", help="Output format: tree | order | layout"),
) -> None:
    """Display the story as an ASCII tree, a reading order, or layout coordinates."""
    if format not in _FORMATS:
        typer.echo(f"❌ Unknown format {format!r}. Use: {' | '.join(_FORMATS)}")
        raise typer.Exit(code=1)

    ctx = load_context()
    conn = get_connection()
    init_db(conn)

    try:
        graph = StoryGraph(
            list_pages(conn, ctx.active_story_id),
            list_choices_for_story(conn, ctx.active_story_id),
        )
    finally:
        conn.close()

    if len(graph) == 0:
        typer.echo("Story has no pages yet. Run 'write page' to add one.")
        return

    root = resolve_root(graph)
    cycles = detect_cycles(graph, root)

    if format == "order":
        typer.echo(render_order(traversal_order(graph, root, cycles)))
        return

    tree = build_tree(graph, root.id, cycles)
    if format == "layout":
        typer.echo(render_layout(graph, compute_layout(tree, graph=graph)))
        return

    typer.echo(f"Story '{ctx.active_story_title}':")
    typer.echo(render_tree(graph, tree, cycles))
