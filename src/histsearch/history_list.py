"""Results list: selection state and its Rich renderable."""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rich.text import Text

from histsearch.history import HistoryRecord

if TYPE_CHECKING:
    from rich.console import Console, ConsoleOptions, RenderResult

# Width of " > 123ms 59s ago": the selection marker, duration and age columns
PREFIX_LENGTH = 16

# Alt-1 .. Alt-9 pick the rows above the selection
MAX_SHORTCUT = 9


@dataclass
class ListState:
    """Selected row and scroll position of the results list.

    `max_entries` is the number of rows the last render could show; paging
    moves the selection by that amount.
    """

    selected: int = 0
    offset: int = 0
    max_entries: int = 0

    def select(self, index: int) -> None:
        self.selected = index


def scroll_offset(state: ListState, height: int) -> int:
    """First row index of a `height`-row window that keeps the selection in view."""
    offset = state.offset
    if height <= 0:
        return offset
    if state.selected >= offset + height:
        offset = state.selected - height + 1
    if state.selected < offset:
        offset = state.selected
    return offset


class HistoryList:
    """Renders results bottom-up: index 0 sits on the row nearest the input."""

    def __init__(
        self,
        history: Sequence[HistoryRecord],
        state: ListState,
        height: int,
        now: float | None = None,
    ) -> None:
        self.history = history
        self.state = state
        self.height = max(height, 0)
        self.now = time.time() if now is None else now

    def _scroll(self) -> None:
        self.state.max_entries = self.height
        self.state.offset = scroll_offset(self.state, self.height)

    def _row(self, index: int, record: HistoryRecord) -> Text:
        distance = index - self.state.selected
        if distance == 0:
            marker = " > "
        elif 0 < distance <= MAX_SHORTCUT:
            marker = f" {distance} "
        else:
            marker = "   "

        row = Text(no_wrap=True, overflow="ellipsis")
        row.append(marker, style="bold" if distance == 0 else "dim")
        row.append(
            f"{record.display_duration:>5} ",
            style="green" if record.exit == 0 else "red",
        )
        row.append(f"{record.display_ago(self.now):>7} ", style="blue")
        row.append(record.command.replace("\n", " "), style="bold" if distance == 0 else "")
        return row

    def lines(self) -> list[Text]:
        """Exactly `height` rows, oldest visible result first."""
        self._scroll()
        rows = [Text() for _ in range(self.height)]
        first = self.state.offset
        for index in range(first, min(len(self.history), first + self.height)):
            rows[self.height - 1 - (index - first)] = self._row(index, self.history[index])
        return rows

    def __rich_console__(self, console: Console, options: ConsoleOptions) -> RenderResult:
        yield Text("\n", no_wrap=True, overflow="ellipsis").join(self.lines())
