"""Storyloom CLI: entry-point for authoring and reading stories.

Usage:
    python cli/main.py --help

Command groups:
    db     → database setup
    story  → create, select, publish and export stories
    write  → pages, choices and endings of the active story
    map    → tree / reading order / layout of the active story
    read   → play through the active story, check progress
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from backend.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import typer

from backend.config import settings
from backend.db import get_connection, init_db
from backend.observability import configure_logging
from cli.commands.map import map_app
from cli.commands.read import read_app
from cli.commands.story import story_app
from cli.commands.write import write_app

app = typer.Typer(
    name="storyloom",
    help="Storyloom: write and read branching stories.",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: int = typer.Option(
        0, "--verbose", "-v", count=True, help="Show diagnostics (-v info, -vv debug)."
    ),
) -> None:
    configure_logging(verbose or settings.log_verbosity)


# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    settings.ensure_workspace()
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


app.add_typer(story_app, name="story")
app.add_typer(write_app, name="write")
app.add_typer(map_app, name="map")
app.add_typer(read_app, name="read")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
