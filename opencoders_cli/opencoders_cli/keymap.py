"""Key bindings: terminal input to application events.

Bindings depend on the state. Ctrl+X is a leader key: the next key picks
a command, anything else cancels it.
"""

from __future__ import annotations

from prompt_toolkit.key_binding.key_processor import KeyPress
from prompt_toolkit.keys import Keys

from opencoders_cli.app.state import AppState, Model
from opencoders_cli.events import (
    AppEvent,
    Backspace,
    ChangeInline,
    ChangeInlineHeight,
    ChangeState,
    ClearInput,
    CycleMode,
    InsertNewline,
    KeyPressed,
    MoveCursor,
    NewSession,
    Quit,
    RestartEventStream,
    RetryConnection,
    ScrollLog,
    SelectorClose,
    SelectorConfirm,
    SelectorMove,
    Shortcut,
    ShortcutCancelled,
    ShortcutPressed,
    ShowSessionSelector,
    SubmitInput,
    TerminalResize,
)
from opencoders_cli.terminal import InputEvent, MouseScroll, Resize

PAGE = 10

LEADER_COMMANDS: dict[str, type[AppEvent]] = {
    "l": ShowSessionSelector,
    "n": NewSession,
    "q": Quit,
    "r": RestartEventStream,
    Keys.Tab: ChangeInline,
}


def _printable(key: Keys | str) -> str | None:
    if isinstance(key, Keys) or len(key) != 1 or not key.isprintable():
        return None
    return key


def key_to_event(event: InputEvent, model: Model, now: float) -> AppEvent | None:
    """Translate one input event, or None if nothing is bound to it."""
    if isinstance(event, Resize):
        return TerminalResize(width=event.width, height=event.height)
    if isinstance(event, MouseScroll):
        return ScrollLog(delta=event.delta)
    return _key_to_event(event, model, now)


def _key_to_event(press: KeyPress, model: Model, now: float) -> AppEvent | None:
    key = press.key

    if key in (Keys.ControlC, Keys.ControlD):
        return ShortcutPressed(shortcut=Shortcut.QUIT, at=now)

    if model.shortcut_active(Shortcut.LEADER, now):
        if key in ("+", "="):
            return ChangeInlineHeight(height=model.inline_height + 1)
        if key == "-":
            return ChangeInlineHeight(height=model.inline_height - 1)
        command = LEADER_COMMANDS.get(key)
        return command() if command is not None else ShortcutCancelled()
    if key == Keys.ControlX:
        return ShortcutPressed(shortcut=Shortcut.LEADER, at=now)

    if model.selector is not None:
        if key == Keys.Up:
            return SelectorMove(delta=-1)
        if key == Keys.Down:
            return SelectorMove(delta=1)
        if key == Keys.Enter:
            return SelectorConfirm()
        if key == Keys.Escape:
            return SelectorClose()
        return None

    if model.state is AppState.CONNECTION_ERROR:
        if key == "r":
            return RetryConnection()
        if key == "q":
            return Quit()
        return None

    if model.state is AppState.WELCOME:
        if key == Keys.Enter:
            return ChangeState(target=AppState.TEXT_ENTRY)
        if key == "q":
            return Quit()
        return None

    if model.state is AppState.TEXT_ENTRY:
        return _text_entry_key(press, now)
    return None


def _text_entry_key(press: KeyPress, now: float) -> AppEvent | None:
    key = press.key
    if key == Keys.Enter:
        return SubmitInput()
    if key == Keys.ControlJ:
        return InsertNewline()
    if key == Keys.Tab:
        return CycleMode()
    if key == Keys.Escape:
        return ShortcutPressed(shortcut=Shortcut.ABORT, at=now)
    if key == Keys.Backspace:
        return Backspace()
    if key == Keys.ControlU:
        return ClearInput()
    if key == Keys.PageUp:
        return ScrollLog(delta=PAGE)
    if key == Keys.PageDown:
        return ScrollLog(delta=-PAGE)
    if key == Keys.Left:
        return MoveCursor(delta=-1)
    if key == Keys.Right:
        return MoveCursor(delta=1)
    if key == Keys.BracketedPaste:
        return KeyPressed(text=press.data.replace("\r\n", "\n").replace("\r", "\n"))

    text = _printable(key)
    return KeyPressed(text=text) if text is not None else None
