"""Textual application hosting the interactive search."""

from __future__ import annotations

import atexit
import signal
import sys
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from textual import events, work
from textual.app import App, ComposeResult
from textual.geometry import Offset
from textual.widgets import Static

from histsearch.core import Session
from histsearch.database import get_db_connection, init_db
from histsearch.logger import get_logger
from histsearch.loop import run_loop
from histsearch.search import HistoryDatabase
from histsearch.settings import Settings
from histsearch.terminal import Frame, InputChannel, Terminal
from histsearch.update import check_for_update

SearchRunner = Callable[[Terminal], Awaitable[str]]


class SearchApp(App[str], inherit_bindings=False):
    """Full-screen host for the search loop.

    Textual owns the terminal: raw input, alternate screen and mouse
    capture on start, restored on every exit path. Input events are fed
    into an InputChannel that the loop polls; frames drawn by the loop
    replace the content of a single canvas widget.
    """

    ENABLE_COMMAND_PALETTE = False

    CSS = """
    Screen {
        overflow: hidden;
    }

    #canvas {
        width: 100%;
        height: 100%;
    }
    """

    def __init__(self, runner: SearchRunner) -> None:
        super().__init__()
        self._runner = runner
        self.input_channel = InputChannel()
        self.error: BaseException | None = None

    def compose(self) -> ComposeResult:
        yield Static(id="canvas")

    def on_mount(self) -> None:
        self._run_search()

    @work(exclusive=True)
    async def _run_search(self) -> None:
        try:
            result = await self._runner(TextualTerminal(self))
        except Exception as e:
            # Re-raised by run_terminal once the terminal is restored
            self.error = e
            self.exit(return_code=1)
            return
        self.exit(result)

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        self.input_channel.feed(event)

    def on_mouse_scroll_down(self, event: events.MouseScrollDown) -> None:
        self.input_channel.feed(event)

    def on_mouse_scroll_up(self, event: events.MouseScrollUp) -> None:
        self.input_channel.feed(event)

    def on_paste(self, event: events.Paste) -> None:
        self.input_channel.feed(event)

    def on_resize(self, event: events.Resize) -> None:
        self.input_channel.feed(event)


class TextualTerminal:
    """Terminal protocol over a running SearchApp."""

    def __init__(self, app: SearchApp) -> None:
        self._app = app

    def size(self) -> tuple[int, int]:
        size = self._app.size
        return size.width, size.height

    def draw(self, frame: Frame) -> None:
        self._app.query_one("#canvas", Static).update(frame.renderable)
        # Textual keeps the hardware cursor hidden; this positions IME input
        self._app.cursor_position = Offset(*frame.cursor)

    def poll(self, timeout: float) -> bool:
        return self._app.input_channel.poll(timeout)

    def read(self) -> Any:
        return self._app.input_channel.read()


def reset_terminal() -> None:
    """Reset terminal to sane state after the TUI exits."""
    reset_sequences = [
        "\x1b[?1049l",  # Exit alternate screen buffer
        "\x1b[?1000l",  # Disable mouse tracking (X10)
        "\x1b[?1002l",  # Disable mouse button tracking
        "\x1b[?1003l",  # Disable all mouse tracking
        "\x1b[?1006l",  # Disable SGR mouse mode
        "\x1b[?1015l",  # Disable urxvt mouse mode
        "\x1b[?25h",    # Show cursor
        "\x1b[?7h",     # Enable line wrapping
        "\x1b[0m",      # Reset all attributes
    ]
    sys.stdout.write("".join(reset_sequences))
    sys.stdout.flush()


def run_terminal(runner: SearchRunner) -> str:
    """Run runner inside the Textual app and return its result.

    Errors raised by the runner surface here, after the terminal has been
    restored.
    """
    atexit.register(reset_terminal)

    def signal_handler(signum: int, frame: object) -> None:
        reset_terminal()
        sys.exit(128 + signum)

    signal.signal(signal.SIGTERM, signal_handler)

    app = SearchApp(runner)
    try:
        result = app.run()
    finally:
        reset_terminal()

    if app.error is not None:
        raise app.error
    return result or ""


def run_app(query: Sequence[str], settings: Settings) -> str:
    """Run an interactive search and return the chosen command ("" when cancelled)."""
    logger = get_logger()
    conn = get_db_connection(settings.db_path)
    try:
        init_db(conn)
        db = HistoryDatabase(conn)

        async def search(terminal: Terminal) -> str:
            session = await Session.open(query, settings, db)
            logger.info(
                "Search started",
                query=session.input.text,
                filter_mode=session.filter_mode.value,
                history_count=session.history_count,
            )
            update_check = check_for_update() if settings.update_check else None
            return await run_loop(terminal, session, settings, update_check)

        result = run_terminal(search)
    finally:
        conn.close()

    logger.info("Search finished", selected=bool(result))
    return result
