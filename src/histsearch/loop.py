"""The cooperative render / wait / apply cycle of an interactive search."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable

from histsearch.core import Batch, Session, UpdateNeeded
from histsearch.keymap import to_event
from histsearch.layout import UILayout, longest_visible_command, preview_height
from histsearch.logger import get_logger
from histsearch.settings import Settings
from histsearch.terminal import Terminal
from histsearch.update import current_version

# Upper bound on one blocking wait for input; the screen is redrawn at least this often
POLL_TIMEOUT = 0.25


def render(
    terminal: Terminal,
    session: Session,
    settings: Settings,
    layout: UILayout | None,
    app_version: str,
) -> UILayout:
    """Draw the session, reusing the cached layout unless the geometry changed."""
    size = terminal.size()
    compact = settings.is_compact(size[1])
    view = session.view()

    longest_command = longest_visible_command(
        view.history, view.results_state, size, compact, settings.show_preview
    )
    preview_rows = preview_height(settings.show_preview, compact, size[0], longest_command)

    if layout is not None and (
        layout.size != size
        or (settings.show_preview and layout.preview.height != preview_rows)
    ):
        layout = None
    if layout is None:
        layout = UILayout.compute(size, compact, preview_rows)

    terminal.draw(layout.render(view, app_version))
    return layout


def drain_input(terminal: Terminal, batch: Batch) -> str | None:
    """Apply every raw event that is already buffered, without blocking.

    Returns the final result as soon as an event ends the search.
    """
    while True:
        event = to_event(terminal.read())
        if event is not None:
            result = batch.apply(event)
            if result is not None:
                return result
        if not terminal.poll(0):
            return None


async def run_loop(
    terminal: Terminal,
    session: Session,
    settings: Settings,
    update_check: Awaitable[str | None] | None = None,
    app_version: str | None = None,
) -> str:
    """Drive the search until an event resolves it, returning the chosen string.

    Each iteration renders, then waits for whichever comes first: buffered
    terminal input (polled in a worker thread) or the update check. The
    resulting events go through one Batch, so the query is re-run at most
    once per iteration.
    """
    app_version = app_version or current_version()
    logger = get_logger()

    update_task: asyncio.Future[str | None] | None = (
        asyncio.ensure_future(update_check) if update_check is not None else None
    )
    poll_task: asyncio.Future[bool] | None = None
    layout: UILayout | None = None

    try:
        while True:
            layout = render(terminal, session, settings, layout, app_version)

            # A poll still running from an iteration the update check won is reused
            if poll_task is None:
                poll_task = asyncio.ensure_future(
                    asyncio.to_thread(terminal.poll, POLL_TIMEOUT)
                )

            batch = session.start_batch()

            notice: str | None = None
            while True:
                waiters: set[asyncio.Future] = {poll_task}
                if update_task is not None:
                    waiters.add(update_task)
                done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
                if poll_task in done:
                    break
                assert update_task is not None
                notice = update_task.result()
                update_task = None
                if notice is not None:
                    break

            if notice is not None:
                logger.info("Update notice received", version=notice)
                result = batch.apply(UpdateNeeded(notice))
            else:
                ready = poll_task.result()
                poll_task = None
                result = drain_input(terminal, batch) if ready else None

            if result is not None:
                return result

            session, refreshed = await batch.commit()
            if refreshed:
                layout = None
    finally:
        if update_task is not None:
            update_task.cancel()
        if poll_task is not None:
            poll_task.cancel()
