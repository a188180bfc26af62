"""Rendering of the model into rich renderables.

Pure functions: nothing here touches the terminal. The terminal decides
how much room there is and calls :func:`render` with it.
"""

from __future__ import annotations

from io import StringIO
from typing import Any

from opencoders_sdk.models import ToolPart
from rich.console import Console, Group, RenderableType
from rich.panel import Panel
from rich.text import Text

from opencoders_cli.app.state import STATE_LABELS, AppState, Model
from opencoders_cli.conversation import MessageContainer
from opencoders_cli.feed import Connected, Failed, Reconnecting, status_text
from opencoders_cli.selector import SelectableList

ROLE_STYLES = {"user": "bold cyan", "assistant": "bold green"}
FEED_STYLES = {Connected: "green", Reconnecting: "yellow", Failed: "red"}


def _measure_console(width: int) -> Console:
    return Console(file=StringIO(), width=width, force_terminal=True)


# =============================================================================
# Pieces
# =============================================================================


def render_status(model: Model) -> Text:
    status = Text(no_wrap=True, overflow="ellipsis")
    status.append(f" {STATE_LABELS[model.state]} ", style="reverse")

    if model.session is not None:
        status.append(f"  {model.session.render_line()}", style="bold")
    mode = model.current_mode
    if mode is not None:
        status.append(f"  [{mode.name}]", style="magenta")

    max_attempts = model.config.feed.max_reconnect_attempts
    feed_style = FEED_STYLES.get(type(model.feed_state), "dim")
    status.append(f"  ● {status_text(model.feed_state, max_attempts)}", style=feed_style)

    if model.active_task_count:
        status.append(f"  ⟳ {model.active_task_count}", style="cyan")
    if model.notice:
        status.append(f"  {model.notice}", style="yellow")
    return status


def render_message(container: MessageContainer) -> Text:
    text = Text()
    text.append("you" if container.role == "user" else "assistant", style=ROLE_STYLES.get(container.role, "bold"))
    if container.is_streaming:
        text.append(" …", style="dim")
    text.append("\n")

    body = container.text()
    if body:
        text.append(body)
    for part in container.ordered_parts():
        if isinstance(part, ToolPart):
            style = "red" if part.state.status == "error" else "dim"
            text.append(f"\n  ⚙ {part.tool} ({part.state.status})", style=style)
    return text


def _message_lines(containers: list[MessageContainer], width: int) -> list[Text]:
    console = _measure_console(width)
    lines: list[Text] = []
    for container in containers:
        lines.extend(render_message(container).wrap(console, width))
        lines.append(Text())
    return lines


def render_log(model: Model, width: int, height: int) -> Text:
    """The visible slice of the message log.

    Inline mode only shows messages that were not yet echoed to the
    scrollback. ``scroll_offset`` counts lines up from the bottom.
    """
    containers = model.store.containers_for_rendering() if model.inline else model.store.containers()
    lines = _message_lines(containers, width)
    if height <= 0 or not lines:
        return Text()

    offset = min(model.scroll_offset, max(len(lines) - height, 0))
    end = len(lines) - offset
    visible = lines[max(end - height, 0) : end]
    return Text("\n").join(visible)


def render_input(model: Model) -> Panel:
    text = model.input.text
    cursor = model.input.cursor_position
    content = Text(text[:cursor])
    content.append(text[cursor : cursor + 1] or " ", style="reverse")
    content.append(text[cursor + 1 :])

    mode = model.current_mode
    return Panel(content, title=mode.name if mode else None, title_align="left", border_style="blue")


def render_selector(selector: SelectableList[Any], height: int) -> Panel:
    rows = selector.rows()
    start = min(max(selector.index - height + 1, 0), max(len(rows) - height, 0))

    body = Text()
    for i, (row, highlighted) in enumerate(rows[start : start + height]):
        if i:
            body.append("\n")
        body.append(f"{'›' if highlighted else ' '} {row}", style="reverse" if highlighted else "")
    return Panel(body, title=selector.title, subtitle="↑↓ move · Enter open · Esc close", border_style="magenta")


def render_error(model: Model) -> Panel:
    body = Text(model.error_message or "Unknown error", style="red")
    body.append("\n\nr retry · q quit", style="dim")
    return Panel(body, title="Connection error", border_style="red")


def render_welcome() -> Panel:
    body = Text("opencoders", style="bold")
    body.append("\nA terminal client for OpenCode\n\n")
    body.append("Enter start · q quit", style="dim")
    return Panel(body, border_style="blue")


# =============================================================================
# Screen
# =============================================================================


def render(model: Model, width: int, height: int) -> RenderableType:
    """Everything below the scrollback, fitted to ``width`` x ``height``."""
    pieces: list[RenderableType] = [render_status(model)]
    logs = [Text(line, style="dim", no_wrap=True, overflow="ellipsis") for line in model.recent_logs]

    if model.state is AppState.WELCOME:
        pieces.append(render_welcome())
    elif model.state is AppState.CONNECTING:
        pieces.append(Text("Connecting to OpenCode server...", style="yellow"))
    elif model.state is AppState.INITIALIZING_SESSION:
        pieces.append(Text("Starting session...", style="yellow"))
    elif model.state is AppState.CONNECTION_ERROR:
        pieces.append(render_error(model))
    elif model.state is AppState.TEXT_ENTRY:
        input_panel = render_input(model)
        input_height = model.input.document.line_count + 2
        remaining = height - 1 - input_height - len(logs)
        if model.selector is not None:
            pieces.append(render_selector(model.selector, max(remaining - 2, 1)))
        else:
            pieces.append(render_log(model, width, remaining))
        pieces.append(input_panel)

    pieces.extend(logs)
    return Group(*pieces)
