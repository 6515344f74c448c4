"""Interactive search session: event algebra, state machine and edit batching.

A `Session` owns the query text, filter mode and current results. It is
driven one `Event` at a time; `Session.apply` returns None while the search
stays open and the final string once it ends. Events are grouped per redraw
cycle into a `Batch`, which re-runs the query at most once, on commit, and
only if the query text or filter mode changed.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from histsearch.cursor import Cursor
from histsearch.history import Context, HistoryRecord, current_context
from histsearch.history_list import ListState
from histsearch.logger import get_logger
from histsearch.search import HISTORY_LIMIT
from histsearch.settings import ExitMode, FilterMode, SearchMode, Settings


class Vertical(Enum):
    UP = "up"
    DOWN = "down"


class Step(Enum):
    SINGLE_LINE = "single-line"
    PAGE = "page"


class Towards(Enum):
    LEFT = "left"
    RIGHT = "right"


class Unit(Enum):
    WORD = "word"
    CHAR = "char"
    EDGE = "edge"


@dataclass(frozen=True)
class Input:
    char: str


@dataclass(frozen=True)
class Selection:
    direction: Vertical
    step: Step


@dataclass(frozen=True)
class CursorMove:
    towards: Towards
    unit: Unit


@dataclass(frozen=True)
class Delete:
    towards: Towards
    unit: Unit


@dataclass(frozen=True)
class Clear:
    pass


@dataclass(frozen=True)
class Exit:
    pass


@dataclass(frozen=True)
class Cancel:
    pass


@dataclass(frozen=True)
class SelectN:
    offset: int


@dataclass(frozen=True)
class CycleFilterMode:
    pass


@dataclass(frozen=True)
class UpdateNeeded:
    version: str


Event = (
    Input
    | Selection
    | CursorMove
    | Delete
    | Clear
    | Exit
    | Cancel
    | SelectN
    | CycleFilterMode
    | UpdateNeeded
)


@dataclass(frozen=True)
class MoveTo:
    """Plain clamped move of the selection."""

    index: int


@dataclass(frozen=True)
class ExitAtBoundary:
    """Moving down from the newest entry leaves the search with no selection."""


def move_selection(
    selected: int, length: int, direction: Vertical, step: Step, page_size: int
) -> MoveTo | ExitAtBoundary:
    last = max(length - 1, 0)
    if step is Step.SINGLE_LINE:
        if direction is Vertical.UP:
            return MoveTo(min(selected + 1, last))
        if selected == 0:
            return ExitAtBoundary()
        return MoveTo(selected - 1)
    if direction is Vertical.UP:
        return MoveTo(min(selected + page_size, last))
    return MoveTo(max(selected - page_size, 0))


@dataclass(frozen=True)
class UseQueryText:
    pass


@dataclass(frozen=True)
class UseRecord:
    index: int


def resolve_select_n(selected: int, offset: int, length: int) -> UseQueryText | UseRecord:
    """Pick the record `offset` rows above the selection, or fall back to the typed text.

    An index inside the list always resolves to that record, so Enter on a
    non-empty list returns the selected command. Only an index past the end
    (an empty list, or Alt-N beyond the last result) uses the query text.
    """
    index = selected + offset
    if index < length:
        return UseRecord(index)
    return UseQueryText()


class SearchDatabase(Protocol):
    async def list(
        self,
        filter_mode: FilterMode,
        context: Context,
        limit: int | None = ...,
        unique: bool = ...,
    ) -> list[HistoryRecord]: ...

    async def search(
        self,
        search_mode: SearchMode,
        filter_mode: FilterMode,
        context: Context,
        query: str,
        limit: int | None = ...,
    ) -> list[HistoryRecord]: ...

    async def history_count(self) -> int: ...


@dataclass(frozen=True)
class View:
    """Read-only projection of a session for rendering."""

    history_count: int
    input: Cursor
    filter_mode: FilterMode
    results_state: ListState
    update_needed: str | None
    history: Sequence[HistoryRecord]

    @property
    def selected(self) -> HistoryRecord | None:
        index = self.results_state.selected
        if 0 <= index < len(self.history):
            return self.history[index]
        return None


class Session:
    """State of one interactive search."""

    def __init__(
        self,
        db: SearchDatabase,
        settings: Settings,
        context: Context,
        query: str = "",
        history_count: int = 0,
    ) -> None:
        self.db = db
        self.settings = settings
        self.context = context
        self.input = Cursor(query)
        self.input.end()
        self.filter_mode = settings.initial_filter_mode
        self.results_state = ListState()
        self.history: list[HistoryRecord] = []
        self.history_count = history_count
        self.update_needed: str | None = None

    @classmethod
    async def open(
        cls,
        query: str | Sequence[str],
        settings: Settings,
        db: SearchDatabase,
        context: Context | None = None,
    ) -> Session:
        """Create a session seeded with the initial query and load its first results."""
        text = query if isinstance(query, str) else " ".join(query)
        session = cls(
            db,
            settings,
            context or current_context(),
            text,
            history_count=await db.history_count(),
        )
        await session.refresh_query()
        return session

    async def refresh_query(self) -> None:
        text = self.input.text
        if not text:
            history = await self.db.list(self.filter_mode, self.context, HISTORY_LIMIT, True)
        else:
            history = await self.db.search(
                self.settings.search_mode,
                self.filter_mode,
                self.context,
                text,
                HISTORY_LIMIT,
            )
        self.history = history[:HISTORY_LIMIT]
        self.results_state.select(0)
        get_logger().debug(
            "Query refreshed",
            query=text,
            filter_mode=self.filter_mode.value,
            results=len(self.history),
        )

    @property
    def page_size(self) -> int:
        return max(self.results_state.max_entries - self.settings.scroll_context_lines, 1)

    def apply(self, event: Event) -> str | None:
        """Apply one event. Returns the final result if it ends the search."""
        if isinstance(event, Selection):
            move = move_selection(
                self.results_state.selected,
                len(self.history),
                event.direction,
                event.step,
                self.page_size,
            )
            if isinstance(move, ExitAtBoundary):
                return ""
            self.results_state.select(move.index)
        elif isinstance(event, CursorMove):
            self._move_cursor(event.towards, event.unit)
        elif isinstance(event, Input):
            self.input.insert(event.char)
        elif isinstance(event, Delete):
            self._delete(event.towards, event.unit)
        elif isinstance(event, Clear):
            self.input.clear()
        elif isinstance(event, Cancel):
            return ""
        elif isinstance(event, Exit):
            if self.settings.exit_mode is ExitMode.RETURN_QUERY:
                return self.input.text
            return ""
        elif isinstance(event, SelectN):
            choice = resolve_select_n(
                self.results_state.selected, event.offset, len(self.history)
            )
            if isinstance(choice, UseQueryText):
                return self.input.text
            return self._take(choice.index).command
        elif isinstance(event, UpdateNeeded):
            self.update_needed = event.version
        elif isinstance(event, CycleFilterMode):
            self.filter_mode = self.filter_mode.next()
        else:
            raise TypeError(f"unknown event: {event!r}")
        return None

    def _move_cursor(self, towards: Towards, unit: Unit) -> None:
        left = towards is Towards.LEFT
        if unit is Unit.CHAR:
            if left:
                self.input.left()
            else:
                self.input.right()
        elif unit is Unit.WORD:
            if left:
                self.input.prev_word(self.settings.word_chars, self.settings.word_jump_mode)
            else:
                self.input.next_word(self.settings.word_chars, self.settings.word_jump_mode)
        elif left:
            self.input.start()
        else:
            self.input.end()

    def _delete(self, towards: Towards, unit: Unit) -> None:
        left = towards is Towards.LEFT
        if unit is Unit.CHAR:
            if left:
                self.input.back()
            else:
                self.input.remove()
        elif unit is Unit.WORD:
            if left:
                self.input.remove_prev_word(
                    self.settings.word_chars, self.settings.word_jump_mode
                )
            else:
                self.input.remove_next_word(
                    self.settings.word_chars, self.settings.word_jump_mode
                )
        elif left:
            self.input.clear_to_start()
        else:
            self.input.clear_to_end()

    def _take(self, index: int) -> HistoryRecord:
        """Swap-remove the record at index."""
        record = self.history[index]
        self.history[index] = self.history[-1]
        self.history.pop()
        return record

    def start_batch(self) -> Batch:
        return Batch(self)

    def view(self) -> View:
        return View(
            history_count=self.history_count,
            input=self.input,
            filter_mode=self.filter_mode,
            results_state=self.results_state,
            update_needed=self.update_needed,
            history=self.history,
        )


class Batch:
    """Exclusive owner of a Session for one redraw cycle.

    The batch is spent once an event ends the search or once it is
    committed; touching it afterwards raises RuntimeError.
    """

    def __init__(self, session: Session) -> None:
        self._initial_input = session.input.text
        self._initial_filter_mode = session.filter_mode
        self._session: Session | None = session

    def _owned(self) -> Session:
        if self._session is None:
            raise RuntimeError("batch already finished")
        return self._session

    @property
    def changed(self) -> bool:
        session = self._owned()
        return (
            session.input.text != self._initial_input
            or session.filter_mode is not self._initial_filter_mode
        )

    def apply(self, event: Event) -> str | None:
        result = self._owned().apply(event)
        if result is not None:
            self._session = None
        return result

    async def commit(self) -> tuple[Session, bool]:
        """Hand the session back, refreshing its results first if the query changed."""
        refresh = self.changed
        session = self._owned()
        self._session = None
        if refresh:
            await session.refresh_query()
        return session, refresh
