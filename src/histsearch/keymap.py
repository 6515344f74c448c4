"""Conversion of raw terminal input into session events."""

from __future__ import annotations

from textual import events

from histsearch.core import (
    Cancel,
    Clear,
    CursorMove,
    CycleFilterMode,
    Delete,
    Event,
    Exit,
    Input,
    SelectN,
    Selection,
    Step,
    Towards,
    Unit,
    Vertical,
)

LIST_UP = Selection(Vertical.UP, Step.SINGLE_LINE)
LIST_DOWN = Selection(Vertical.DOWN, Step.SINGLE_LINE)

KEY_BINDINGS: dict[str, Event] = {
    # leaving
    "ctrl+c": Cancel(),
    "ctrl+d": Cancel(),
    "ctrl+g": Cancel(),
    "escape": Exit(),
    "enter": SelectN(0),
    # caret
    "ctrl+left": CursorMove(Towards.LEFT, Unit.WORD),
    "left": CursorMove(Towards.LEFT, Unit.CHAR),
    "ctrl+h": CursorMove(Towards.LEFT, Unit.CHAR),
    "ctrl+right": CursorMove(Towards.RIGHT, Unit.WORD),
    "right": CursorMove(Towards.RIGHT, Unit.CHAR),
    "ctrl+l": CursorMove(Towards.RIGHT, Unit.CHAR),
    "ctrl+a": CursorMove(Towards.LEFT, Unit.EDGE),
    "home": CursorMove(Towards.LEFT, Unit.EDGE),
    "ctrl+e": CursorMove(Towards.RIGHT, Unit.EDGE),
    "end": CursorMove(Towards.RIGHT, Unit.EDGE),
    # editing
    "ctrl+backspace": Delete(Towards.LEFT, Unit.WORD),
    "ctrl+w": Delete(Towards.LEFT, Unit.WORD),
    "backspace": Delete(Towards.LEFT, Unit.CHAR),
    "ctrl+delete": Delete(Towards.RIGHT, Unit.WORD),
    "delete": Delete(Towards.RIGHT, Unit.CHAR),
    "ctrl+u": Clear(),
    "ctrl+r": CycleFilterMode(),
    # results
    "down": LIST_DOWN,
    "ctrl+n": LIST_DOWN,
    "ctrl+j": LIST_DOWN,
    "up": LIST_UP,
    "ctrl+p": LIST_UP,
    "ctrl+k": LIST_UP,
    "pagedown": Selection(Vertical.DOWN, Step.PAGE),
    "pageup": Selection(Vertical.UP, Step.PAGE),
}
KEY_BINDINGS.update({f"alt+{n}": SelectN(n) for n in range(1, 10)})


def key_to_event(key: events.Key) -> Event | None:
    bound = KEY_BINDINGS.get(key.key)
    if bound is not None:
        return bound
    if key.is_printable and key.character:
        return Input(key.character)
    return None


def to_event(raw: events.Event) -> Event | None:
    """Map one raw input to a session event, or None when it is not handled.

    Resize, focus changes, paste and unbound keys or mouse actions all map
    to None and are dropped without touching the session.
    """
    if isinstance(raw, events.Key):
        return key_to_event(raw)
    if isinstance(raw, events.MouseScrollDown):
        return LIST_DOWN
    if isinstance(raw, events.MouseScrollUp):
        return LIST_UP
    return None
