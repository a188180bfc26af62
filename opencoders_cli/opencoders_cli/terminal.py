"""Terminal backend.

The control loop only talks to the :class:`Terminal` protocol so it can run
against a fake in tests. :class:`RichTerminal` is the real thing:
prompt_toolkit reads raw keys from stdin, rich ``Live`` draws the UI.
"""

from __future__ import annotations

import asyncio
import re
import signal
import sys
from collections import deque
from contextlib import ExitStack
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from prompt_toolkit.input import Input, create_input
from prompt_toolkit.key_binding.key_processor import KeyPress
from prompt_toolkit.keys import Keys
from rich.console import Console
from rich.live import Live

from opencoders_cli.logging import get_logger
from opencoders_cli.view import render

if TYPE_CHECKING:
    from opencoders_cli.app.state import Model

logger = get_logger(__name__)

ENABLE_MOUSE = "\x1b[?1000h\x1b[?1006h"
DISABLE_MOUSE = "\x1b[?1000l\x1b[?1006l"

_SGR_MOUSE = re.compile(r"\x1b\[<(\d+);(\d+);(\d+)([Mm])")
_WHEEL_UP = 64
_WHEEL_DOWN = 65


@dataclass
class Resize:
    width: int
    height: int


@dataclass
class MouseScroll:
    delta: int
    """Positive scrolls towards older content."""


InputEvent = KeyPress | Resize | MouseScroll


class Terminal(Protocol):
    def open(self) -> None: ...

    def close(self) -> None: ...

    def poll_input(self) -> InputEvent | None:
        """Next input event, or None without blocking."""
        ...

    def draw(self, model: Model) -> None: ...

    def print_above(self, lines: list[str]) -> None:
        """Write ``lines`` to the scrollback above the inline region."""
        ...

    def reboot(self, inline: bool, height: int) -> None: ...

    def resize_inline(self, height: int) -> None: ...

    def autoresize(self) -> None: ...

    def scroll_past_height(self) -> None: ...


def decode_mouse(data: str) -> MouseScroll | None:
    """Wheel event from an SGR mouse report, ignoring clicks and motion."""
    match = _SGR_MOUSE.search(data)
    if match is None or match.group(4) != "M":
        return None
    button = int(match.group(1))
    if button == _WHEEL_UP:
        return MouseScroll(delta=3)
    if button == _WHEEL_DOWN:
        return MouseScroll(delta=-3)
    return None


class RichTerminal:
    """prompt_toolkit input plus rich ``Live`` output.

    In inline mode the live region is at most ``height`` rows and sits
    below the normal scrollback. Fullscreen mode uses the alternate screen.
    """

    def __init__(self, *, inline: bool = True, height: int = 12, mouse: bool = True) -> None:
        self._inline = inline
        self._height = height
        self._mouse = mouse
        self._console = Console()
        self._live: Live | None = None
        self._input: Input | None = None
        self._pending: deque[InputEvent] = deque()
        self._stack = ExitStack()

    @property
    def size(self) -> tuple[int, int]:
        size = self._console.size
        return size.width, size.height

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(self) -> None:
        """Enter raw mode and start drawing. Must run inside the event loop."""
        self._input = create_input(sys.stdin)
        self._stack.enter_context(self._input.raw_mode())
        self._stack.enter_context(self._input.attach(self._read_keys))

        loop = asyncio.get_running_loop()
        if hasattr(signal, "SIGWINCH"):
            loop.add_signal_handler(signal.SIGWINCH, self._on_resize)
            self._stack.callback(loop.remove_signal_handler, signal.SIGWINCH)

        if self._mouse:
            self._write_control(ENABLE_MOUSE)
            self._stack.callback(self._write_control, DISABLE_MOUSE)
        self._start_live()

    def close(self) -> None:
        self._stop_live()
        self._stack.close()
        self._input = None

    def _start_live(self) -> None:
        self._live = Live(
            console=self._console,
            screen=not self._inline,
            auto_refresh=False,
            redirect_stdout=False,
            redirect_stderr=False,
            vertical_overflow="crop",
        )
        self._live.start()

    def _stop_live(self) -> None:
        if self._live is not None:
            self._live.stop()
            self._live = None

    def _write_control(self, sequence: str) -> None:
        self._console.file.write(sequence)
        self._console.file.flush()

    # -------------------------------------------------------------------------
    # Input
    # -------------------------------------------------------------------------

    def _read_keys(self) -> None:
        if self._input is None:
            return
        for key_press in self._input.read_keys():
            if key_press.key == Keys.Vt100MouseEvent:
                scroll = decode_mouse(key_press.data)
                if scroll is not None:
                    self._pending.append(scroll)
                continue
            self._pending.append(key_press)

    def _on_resize(self) -> None:
        width, height = self.size
        self._pending.append(Resize(width=width, height=height))

    def poll_input(self) -> InputEvent | None:
        return self._pending.popleft() if self._pending else None

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def _viewport(self) -> tuple[int, int]:
        width, height = self.size
        return width, (min(self._height, height) if self._inline else height)

    def draw(self, model: Model) -> None:
        if self._live is None:
            return
        width, height = self._viewport()
        self._live.update(render(model, width, height), refresh=True)

    def print_above(self, lines: list[str]) -> None:
        if self._live is None:
            return
        for line in lines:
            self._live.console.print(line, markup=False, highlight=False)

    def reboot(self, inline: bool, height: int) -> None:
        """Tear down the live region and start again in the given mode."""
        logger.debug("Rebooting terminal (inline=%s, height=%d)", inline, height)
        self._stop_live()
        self._inline = inline
        self._height = height
        self._start_live()

    def resize_inline(self, height: int) -> None:
        self._height = height

    def autoresize(self) -> None:
        if self._live is not None:
            self._live.refresh()

    def scroll_past_height(self) -> None:
        """Push the inline region's rows into the scrollback."""
        if self._live is not None and self._inline:
            self._live.console.line(self._viewport()[1])
