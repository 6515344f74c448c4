"""Terminal boundary used by the event loop."""

from __future__ import annotations

import queue
from collections import deque
from dataclasses import dataclass
from typing import Any, Protocol

from rich.console import RenderableType


@dataclass(frozen=True)
class Frame:
    """One rendered screen: the renderable plus where the text cursor goes."""

    renderable: RenderableType
    cursor: tuple[int, int]


class Terminal(Protocol):
    def size(self) -> tuple[int, int]:
        """Current (width, height) in cells."""
        ...

    def draw(self, frame: Frame) -> None: ...

    def poll(self, timeout: float) -> bool:
        """Block up to timeout seconds until a raw event can be read."""
        ...

    def read(self) -> Any:
        """Next raw event. Only valid after poll() returned True."""
        ...


class InputChannel:
    """Thread-safe hand-off of raw events from the UI thread to the event loop.

    poll() may block in a worker thread while feed() is called from the
    terminal's own thread. An event seen by poll() is held back until read()
    takes it, so polling never loses or reorders input.
    """

    def __init__(self) -> None:
        self._queue: queue.SimpleQueue[Any] = queue.SimpleQueue()
        self._ready: deque[Any] = deque()

    def feed(self, raw: Any) -> None:
        self._queue.put(raw)

    def poll(self, timeout: float) -> bool:
        if self._ready:
            return True
        try:
            if timeout <= 0:
                raw = self._queue.get_nowait()
            else:
                raw = self._queue.get(timeout=timeout)
        except queue.Empty:
            return False
        self._ready.append(raw)
        return True

    def read(self) -> Any:
        if not self._ready and not self.poll(0):
            raise LookupError("no input available")
        return self._ready.popleft()
