"""Tests for the 'map' CLI command group."""

import pytest
from typer.testing import CliRunner

from backend.db import get_connection, init_db
from backend.db.choices import create_choice
from backend.db.pages import create_page
from backend.db.stories import create_story
from cli.commands.map import map_app
from cli.context import CliContext, save_context
from cli.main import app

runner = CliRunner()


@pytest.fixture
def clean_db(tmp_path, monkeypatch):
    """Provide a fresh DB and context directory for each test."""
    monkeypatch.setattr("backend.config.settings.workspace_dir", tmp_path)

    cli_dir = tmp_path / ".storyloom_cli"
    cli_dir.mkdir()
    monkeypatch.setattr("cli.context.settings.cli_config_dir", cli_dir)

    return tmp_path


@pytest.fixture
def story(clean_db):
    """Crossroads → (Left → Cave → Tunnel, looping back to Cave; Right unwritten), plus an orphan."""
    conn = get_connection()
    init_db(conn)
    s = create_story(conn, "Tree Story", author_id="a")
    start = create_page(conn, s.id, "Crossroads")
    cave = create_page(conn, s.id, "A dark cave")
    tunnel = create_page(conn, s.id, "A narrow tunnel")
    create_page(conn, s.id, "Forgotten clearing")
    create_choice(conn, start.id, "Left", target_page_id=cave.id)
    create_choice(conn, start.id, "Right")
    create_choice(conn, cave.id, "Deeper", target_page_id=tunnel.id)
    create_choice(conn, tunnel.id, "Turn around", target_page_id=cave.id)
    conn.close()
    save_context(CliContext(active_story_id=s.id, active_story_title=s.title))
    return s


def test_map_show_tree(story):
    result = runner.invoke(map_app, ["show", "--format", "tree"])
    assert result.exit_code == 0
    out = result.stdout
    assert "Tree Story" in out
    assert "├── Left ➜ 📄 A dark cave" in out
    assert "└── Deeper ➜ 📄 A narrow tunnel" in out
    assert "↺ Turn around → A dark cave" in out
    assert "└── … Right (not written yet)" in out
    assert "Orphans (not reachable from the start page):" in out
    assert "Forgotten clearing" in out


def test_map_show_tree_is_default(story):
    result = runner.invoke(map_app, ["show"])
    assert result.exit_code == 0
    assert "A dark cave" in result.stdout


def test_map_show_through_main_app(story, monkeypatch):
    monkeypatch.setattr("cli.main.configure_logging", lambda verbosity: None)

    result = runner.invoke(app, ["map", "show", "--format", "order"])
    assert result.exit_code == 0
    assert "A narrow tunnel" in result.stdout


def test_map_without_subcommand_shows_help(story):
    result = runner.invoke(map_app, [])
    assert "show" in result.output
    assert "Turn around" not in result.output


def test_map_show_order(story):
    result = runner.invoke(map_app, ["show", "--format", "order"])
    assert result.exit_code == 0
    lines = result.stdout.strip().splitlines()
    assert len(lines) == 4
    assert "Crossroads" in lines[0]
    assert "A dark cave" in lines[1]
    assert "A narrow tunnel" in lines[2]
    assert "Forgotten clearing" in lines[3]
    assert "orphan" in lines[3]


def test_map_show_layout(story):
    result = runner.invoke(map_app, ["show", "--format", "layout"])
    assert result.exit_code == 0
    lines = result.stdout.strip().splitlines()
    assert len(lines) == 4
    assert lines[0].startswith("row  0")
    assert "Crossroads" in lines[0]
    assert lines[1].startswith("row  1")
    assert lines[2].startswith("row  2")
    assert lines[3].startswith("row  3")
    assert "Forgotten clearing" in lines[3]


def test_map_show_bad_format(story):
    result = runner.invoke(map_app, ["show", "--format", "list"])
    assert result.exit_code == 1
    assert "Unknown format" in result.stdout


def test_map_show_empty_story(clean_db):
    conn = get_connection()
    init_db(conn)
    s = create_story(conn, "Blank", author_id="a")
    conn.close()
    save_context(CliContext(active_story_id=s.id, active_story_title=s.title))

    result = runner.invoke(map_app, ["show"])
    assert result.exit_code == 0
    assert "no pages yet" in result.stdout
