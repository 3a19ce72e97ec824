"""Tests for the click CLI — sweep command and the simulator loop."""
from __future__ import annotations

import asyncio

import pytest
from click.testing import CliRunner

from jarvis.cli import main
from jarvis.core.storage import FilesystemStateStore


@pytest.fixture
def scripted_input(monkeypatch):
    """Feed the simulator a fixed list of lines, then EOF."""
    def _script(*lines: str) -> None:
        pending = list(lines)

        async def fake_input() -> str:
            if not pending:
                raise EOFError
            return pending.pop(0)

        monkeypatch.setattr("jarvis.ui.styled_input_async", fake_input)
    return _script


class TestSweepCommand:

    def test_clears_stale_entries(self, tmp_path):
        store = FilesystemStateStore(tmp_path)

        async def seed():
            await store.set("conversation:+15550001111", '{"v": 1, "turns": [], "updated_at": 0}')
            await store.set("draft:+15550001111", '{"type": "poll", "content": "", "updated_at": 0}')
        asyncio.run(seed())

        result = CliRunner().invoke(main, ["sweep", "--state-dir", str(tmp_path)])
        assert result.exit_code == 0, result.output
        assert "cleared 1 draft(s), 1 conversation state(s)" in result.output
        assert asyncio.run(store.keys()) == []

    def test_empty_dir(self, tmp_path):
        result = CliRunner().invoke(main, ["sweep", "--state-dir", str(tmp_path)])
        assert "cleared 0 draft(s), 0 conversation state(s)" in result.output


class TestChatCommand:

    def test_help(self):
        result = CliRunner().invoke(main, ["chat", "--help"])
        assert result.exit_code == 0
        assert "--offline" in result.output

    def test_announce_and_send(self, scripted_input):
        scripted_input("announce meeting tonight at 7pm", "send", "/sent", "exit")
        result = CliRunner().invoke(main, ["chat", "--admin", "--offline", "--seed", "1"])
        assert result.exit_code == 0, result.output
        assert "meeting tonight at 7pm" in result.output
        assert "12 people" in result.output
        assert "[announcement] meeting tonight at 7pm" in result.output

    def test_admin_toggle_and_draft(self, scripted_input):
        scripted_input("/admin", "/draft", "/poll")
        result = CliRunner().invoke(main, ["chat", "--offline"])
        assert result.exit_code == 0, result.output
        assert "admin mode on" in result.output
        assert "no active draft" in result.output
        assert "no active poll" in result.output

    def test_state_persisted_to_dir(self, scripted_input, tmp_path):
        scripted_input("hey")
        CliRunner().invoke(main, ["chat", "--offline", "--state-dir", str(tmp_path)])
        keys = asyncio.run(FilesystemStateStore(tmp_path).keys("conversation:"))
        assert keys == ["conversation:+15550001111"]
