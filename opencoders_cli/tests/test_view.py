"""Tests for opencoders_cli.view module."""

from __future__ import annotations

from io import StringIO

from cli_factories import make_assistant, make_mode, make_session, make_snapshot, make_text, make_tool, make_user
from rich.console import Console, RenderableType

from opencoders_cli.app.state import AppState, Model
from opencoders_cli.feed import Connected, Reconnecting
from opencoders_cli.selector import SelectableList
from opencoders_cli.view import render, render_log, render_status


def _plain(renderable: RenderableType, width: int = 80) -> str:
    console = Console(file=StringIO(), width=width, color_system=None, legacy_windows=False)
    console.print(renderable)
    return console.file.getvalue()  # type: ignore[attr-defined]


def _with_messages(model: Model, count: int) -> Model:
    model.store.load_snapshot([
        make_snapshot(make_user(f"m{i}"), make_text(f"p{i}", f"m{i}", f"message {i}")) for i in range(count)
    ])
    return model


class TestStatus:
    def test_shows_session_mode_and_feed(self, ready_model: Model) -> None:
        ready_model.modes = [make_mode("build")]
        ready_model.mode_index = 0
        ready_model.feed_state = Connected()
        ready_model.active_task_count = 2
        ready_model.notice = "Aborted"

        line = render_status(ready_model).plain
        assert "Ready" in line
        assert "Session" in line
        assert "[build]" in line
        assert "live" in line
        assert "⟳ 2" in line
        assert "Aborted" in line

    def test_reconnecting(self, ready_model: Model) -> None:
        ready_model.feed_state = Reconnecting(attempt=2, last_error="x")
        assert "reconnecting 2/3" in render_status(ready_model).plain


class TestLog:
    def test_bottom_lines_are_visible(self, ready_model: Model) -> None:
        _with_messages(ready_model, 10)
        ready_model.inline = False
        text = render_log(ready_model, 40, 4).plain
        assert "message 9" in text
        assert "message 0" not in text

    def test_scroll_offset_shows_older(self, ready_model: Model) -> None:
        _with_messages(ready_model, 10)
        ready_model.inline = False
        ready_model.scroll_offset = 1000
        text = render_log(ready_model, 40, 4).plain
        assert "message 0" in text
        assert "message 9" not in text

    def test_inline_hides_printed(self, ready_model: Model) -> None:
        _with_messages(ready_model, 2)
        ready_model.store.mark_printed(1)
        text = render_log(ready_model, 40, 20).plain
        assert "message 0" not in text
        assert "message 1" in text

    def test_tool_parts_and_streaming(self, ready_model: Model) -> None:
        ready_model.store.upsert_message(make_assistant("a1"))
        ready_model.store.upsert_part(make_text("t1", "a1", "working"))
        ready_model.store.upsert_part(make_tool("t2", "a1", "bash"))
        text = render_log(ready_model, 60, 20).plain
        assert "assistant …" in text
        assert "⚙ bash (pending)" in text

    def test_empty(self, ready_model: Model) -> None:
        assert render_log(ready_model, 40, 10).plain == ""


class TestScreen:
    def test_welcome(self, model: Model) -> None:
        assert "Enter start" in _plain(render(model, 80, 12))

    def test_connecting(self, model: Model) -> None:
        model.state = AppState.CONNECTING
        assert "Connecting to OpenCode server" in _plain(render(model, 80, 12))

    def test_connection_error(self, model: Model) -> None:
        model.state = AppState.CONNECTION_ERROR
        model.error_message = "Failed to connect to OpenCode server: refused"
        output = _plain(render(model, 80, 12))
        assert "refused" in output
        assert "r retry" in output

    def test_text_entry_shows_input(self, ready_model: Model) -> None:
        ready_model.input.insert_text("draft")
        assert "draft" in _plain(render(ready_model, 80, 12))

    def test_selector_replaces_log(self, ready_model: Model) -> None:
        _with_messages(ready_model, 1)
        sessions = [make_session("ses_1", "Alpha"), make_session("ses_2", "Beta")]
        ready_model.selector = SelectableList("Sessions", sessions)
        output = _plain(render(ready_model, 80, 20))
        assert "› Alpha" in output
        assert "Beta" in output
        assert "message 0" not in output

    def test_recent_logs(self, ready_model: Model) -> None:
        ready_model.recent_logs.append("WARNING: careful")
        assert "WARNING: careful" in _plain(render(ready_model, 80, 12))
