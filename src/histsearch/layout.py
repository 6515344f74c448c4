"""Screen geometry and frame rendering for the search view."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from rich import box
from rich.cells import cell_len
from rich.console import Group, RenderableType
from rich.padding import Padding
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from histsearch.core import View
from histsearch.history import HistoryRecord
from histsearch.history_list import PREFIX_LENGTH, HistoryList, ListState, scroll_offset
from histsearch.terminal import Frame

MAX_PREVIEW_LINES = 4
FILTER_LABEL_WIDTH = 14


@dataclass(frozen=True)
class Rect:
    x: int
    y: int
    width: int
    height: int


def preview_height(show_preview: bool, compact: bool, width: int, longest_command: int) -> int:
    """Rows reserved below the input, including the borders in full style."""
    border = 0 if compact else 1
    if not show_preview:
        return border
    # Same width the preview text is wrapped at: margins and both side borders
    text_width = max(width - 2 - 2 * border, 1)
    lines = min(MAX_PREVIEW_LINES, math.ceil(longest_command / text_width))
    return lines + border * 2


def longest_visible_command(
    history: Sequence[HistoryRecord],
    state: ListState,
    size: tuple[int, int],
    compact: bool,
    show_preview: bool,
) -> int:
    """Length of the longest command in the rows the results list will show.

    The window is the one left over when the preview is at its tallest, so
    every command it covers is on screen whatever height the preview ends up.
    """
    width = size[0]
    tallest = preview_height(show_preview, compact, width, MAX_PREVIEW_LINES * width)
    border = 0 if compact else 1
    rows = UILayout.compute(size, compact, tallest).list.height - border
    if rows <= 0:
        return 0
    first = scroll_offset(state, rows)
    return max((len(record.command) for record in history[first : first + rows]), default=0)


def wrap_command(command: str, width: int) -> list[str]:
    """Hard-wrap a command into rows of width characters."""
    if not command or width <= 0:
        return []
    return [command[i : i + width] for i in range(0, len(command), width)]


@dataclass(frozen=True)
class UILayout:
    compact: bool
    size: tuple[int, int]
    title: Rect
    help: Rect
    stats: Rect
    list: Rect
    input: Rect
    preview: Rect

    @classmethod
    def compute(cls, size: tuple[int, int], compact: bool, preview_rows: int) -> UILayout:
        width, height = size
        border = 0 if compact else 1
        show_help = not compact or height > 1

        # one column of margin on both sides
        x = 1
        inner_width = max(width - 2, 0)

        header_rows = 1 if show_help else 0
        input_rows = 1 + border
        list_rows = max(height - header_rows - input_rows - preview_rows, 1)

        third = inner_width // 3
        list_y = header_rows
        input_y = list_y + list_rows
        return cls(
            compact=compact,
            size=size,
            title=Rect(x, 0, third, header_rows),
            help=Rect(x + third, 0, third, header_rows),
            stats=Rect(x + 2 * third, 0, inner_width - 2 * third, header_rows),
            list=Rect(x, list_y, inner_width, list_rows),
            input=Rect(x, input_y, inner_width, input_rows),
            preview=Rect(x, input_y + input_rows, inner_width, preview_rows),
        )

    @property
    def border(self) -> int:
        return 0 if self.compact else 1

    def render(self, view: View, app_version: str, now: float | None = None) -> Frame:
        parts: list[RenderableType] = []
        if self.title.height:
            parts.append(self._header(view, app_version))

        list_rows = self.list.height - self.border
        results = HistoryList(view.history, view.results_state, list_rows, now=now)
        input_line = self._input_line(view)
        preview = self._preview(view)

        if self.compact:
            parts.extend([results, input_line])
            if preview is not None:
                parts.append(preview)
        else:
            body: list[RenderableType] = [results, Rule(style="dim"), input_line]
            if preview is not None:
                body.extend([Rule(style="dim"), preview])
            parts.append(
                Panel(
                    Group(*body),
                    box=box.ROUNDED,
                    padding=(0, 0),
                    height=self.list.height + self.input.height + self.preview.height,
                )
            )

        offset = self.border
        cursor = (
            self.input.x + cell_len(view.input.substring()) + PREFIX_LENGTH + 1 + offset,
            self.input.y + offset,
        )
        return Frame(Padding(Group(*parts), (0, 1)), cursor)

    def _header(self, view: View, app_version: str) -> Table:
        if view.update_needed:
            title = Text(
                f" histsearch v{app_version} - UPDATE AVAILABLE {view.update_needed}",
                style="bold red",
                no_wrap=True,
                overflow="ellipsis",
            )
        else:
            title = Text(f" histsearch v{app_version}", style="bold", no_wrap=True)

        help_text = Text.assemble(("Esc", "bold"), " to exit", style="bright_black")
        stats = Text(f"history count: {view.history_count}", style="bright_black")

        header = Table.grid(expand=True)
        header.add_column(ratio=1, justify="left", no_wrap=True)
        header.add_column(ratio=1, justify="center", no_wrap=True)
        header.add_column(ratio=1, justify="right", no_wrap=True)
        header.add_row(title, help_text, stats)
        return header

    def _input_line(self, view: View) -> Text:
        text = view.input.text
        position = view.input.position

        line = Text(no_wrap=True, overflow="crop")
        line.append(f"[{view.filter_mode.as_str():^{FILTER_LABEL_WIDTH}}] ")
        line.append(text[:position])
        line.append(text[position : position + 1] or " ", style="reverse")
        line.append(text[position + 1 :])
        return line

    def _preview(self, view: View) -> Text | None:
        """Selected command wrapped to the preview width, or None when no rows are left."""
        rows = self.preview.height - 2 * self.border
        if rows <= 0:
            return None

        selected = view.selected
        command = selected.command if selected is not None else ""
        chunks = wrap_command(command, self.preview.width - 2 * self.border)[:rows]
        chunks += [""] * (rows - len(chunks))
        style = "bright_black" if self.compact else ""
        return Text("\n".join(chunks), style=style, no_wrap=True, overflow="crop")
