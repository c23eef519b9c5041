"""Tests for the external editor helper."""

import os

import pytest

from cli.context import CliContext, save_context
from cli.editor import edit_text, get_editor_command


@pytest.fixture
def cli_dir(tmp_path, monkeypatch):
    monkeypatch.setattr("cli.context.settings.cli_config_dir", tmp_path)
    monkeypatch.delenv("VISUAL", raising=False)
    monkeypatch.delenv("EDITOR", raising=False)
    return tmp_path


def test_preference_beats_environment(cli_dir, monkeypatch):
    monkeypatch.setenv("EDITOR", "nano")
    save_context(CliContext(user_preferences={"editor": "code -w"}))
    assert get_editor_command() == ["code", "-w"]


def test_visual_beats_editor(cli_dir, monkeypatch):
    monkeypatch.setenv("VISUAL", "emacs -nw")
    monkeypatch.setenv("EDITOR", "nano")
    assert get_editor_command() == ["emacs", "-nw"]


@pytest.mark.skipif(os.name == "nt", reason="POSIX editor fallback")
def test_platform_fallback(cli_dir, monkeypatch):
    monkeypatch.setattr("cli.editor.shutil.which", lambda name: name == "vim")
    assert get_editor_command() == ["vim"]


def _fake_editor(new_text, code=0):
    calls = []

    def call(argv):
        calls.append(argv)
        if new_text is not None:
            with open(argv[-1], "w", encoding="utf-8") as fh:
                fh.write(new_text)
        return code

    return call, calls


def test_edit_returns_new_text_and_removes_draft(cli_dir, monkeypatch):
    monkeypatch.setenv("EDITOR", "fake-editor")
    call, calls = _fake_editor("The new opening")
    monkeypatch.setattr("cli.editor.subprocess.call", call)

    assert edit_text("Old", "page_1234") == "The new opening"
    assert calls[0][0] == "fake-editor"
    assert calls[0][-1].endswith("page_1234.md")
    assert not (cli_dir / "drafts" / "page_1234.md").exists()


def test_edit_unchanged_returns_none(cli_dir, monkeypatch):
    monkeypatch.setenv("EDITOR", "fake-editor")
    call, _ = _fake_editor("Same text\n")
    monkeypatch.setattr("cli.editor.subprocess.call", call)

    assert edit_text("Same text", "page_1234") is None


def test_editor_failure_keeps_draft(cli_dir, monkeypatch, capsys):
    monkeypatch.setenv("EDITOR", "fake-editor")
    call, _ = _fake_editor(None, code=3)
    monkeypatch.setattr("cli.editor.subprocess.call", call)

    assert edit_text("Keep me", "page_1234") is None
    assert (cli_dir / "drafts" / "page_1234.md").read_text(encoding="utf-8") == "Keep me"
    assert "exited with code 3" in capsys.readouterr().out
