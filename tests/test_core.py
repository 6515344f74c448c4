"""Tests for the search session state machine and edit batching."""

from __future__ import annotations

import dataclasses
import random

import pytest

from histsearch.core import (
    Cancel,
    Clear,
    CursorMove,
    CycleFilterMode,
    Delete,
    Exit,
    ExitAtBoundary,
    Input,
    MoveTo,
    SelectN,
    Selection,
    Session,
    Step,
    Towards,
    Unit,
    UpdateNeeded,
    UseQueryText,
    UseRecord,
    Vertical,
    move_selection,
    resolve_select_n,
)
from histsearch.database import save_history
from histsearch.history import Context
from histsearch.settings import ExitMode, FilterMode, Settings

from conftest import CountingDatabase, make_record

UP = Selection(Vertical.UP, Step.SINGLE_LINE)
DOWN = Selection(Vertical.DOWN, Step.SINGLE_LINE)
PAGE_UP = Selection(Vertical.UP, Step.PAGE)
PAGE_DOWN = Selection(Vertical.DOWN, Step.PAGE)
BACKSPACE = Delete(Towards.LEFT, Unit.CHAR)


def commands(session: Session) -> list[str]:
    return [record.command for record in session.history]


class TestMoveSelection:
    def test_up_moves_to_older_entry(self):
        assert move_selection(0, 5, Vertical.UP, Step.SINGLE_LINE, 3) == MoveTo(1)

    def test_up_clamps_at_oldest(self):
        assert move_selection(4, 5, Vertical.UP, Step.SINGLE_LINE, 3) == MoveTo(4)

    def test_down_moves_to_newer_entry(self):
        assert move_selection(3, 5, Vertical.DOWN, Step.SINGLE_LINE, 3) == MoveTo(2)

    def test_down_at_newest_leaves_search(self):
        assert move_selection(0, 5, Vertical.DOWN, Step.SINGLE_LINE, 3) == ExitAtBoundary()

    def test_page_moves_clamp_both_ways(self):
        assert move_selection(3, 5, Vertical.UP, Step.PAGE, 3) == MoveTo(4)
        assert move_selection(1, 5, Vertical.DOWN, Step.PAGE, 3) == MoveTo(0)

    def test_empty_list_stays_at_zero(self):
        assert move_selection(0, 0, Vertical.UP, Step.SINGLE_LINE, 1) == MoveTo(0)
        assert move_selection(0, 0, Vertical.UP, Step.PAGE, 10) == MoveTo(0)


class TestResolveSelectN:
    def test_in_range_uses_record(self):
        assert resolve_select_n(0, 0, 3) == UseRecord(0)
        assert resolve_select_n(1, 1, 3) == UseRecord(2)

    def test_out_of_range_uses_query_text(self):
        assert resolve_select_n(1, 2, 3) == UseQueryText()
        assert resolve_select_n(0, 0, 0) == UseQueryText()


class TestSessionOpen:
    @pytest.mark.asyncio
    async def test_empty_query_lists_newest_first(self, db, settings, context):
        session = await Session.open("", settings, db, context)

        assert commands(session) == [
            "git status",
            "git push origin main",
            "cargo build",
            "git commit -m wip",
            "ls -la",
        ]
        assert session.results_state.selected == 0
        assert session.history_count == 5

    @pytest.mark.asyncio
    async def test_query_words_are_joined(self, db, settings, context):
        session = await Session.open(["git", "push"], settings, db, context)

        assert session.input.text == "git push"
        assert session.input.position == len("git push")
        assert commands(session) == ["git push origin main"]

    @pytest.mark.asyncio
    async def test_shell_up_binding_uses_its_filter_mode(self, db, context):
        settings = Settings(
            update_check=False,
            shell_up_key_binding=True,
            filter_mode_shell_up_key_binding=FilterMode.SESSION,
        )
        session = await Session.open("", settings, db, context)

        assert session.filter_mode is FilterMode.SESSION
        assert "git status" not in commands(session)

    @pytest.mark.asyncio
    async def test_results_are_capped(self, temp_db, settings, context):
        save_history(temp_db, [make_record(f"echo {i}", age=i) for i in range(250)])
        session = await Session.open("", settings, CountingDatabase(temp_db), context)

        assert len(session.history) == 200
        assert session.history[0].command == "echo 0"
        assert session.history_count == 250


class TestSelectionEvents:
    @pytest.mark.asyncio
    async def test_up_and_down(self, db, settings, context):
        session = await Session.open("", settings, db, context)

        assert session.apply(UP) is None
        assert session.apply(UP) is None
        assert session.results_state.selected == 2
        assert session.apply(DOWN) is None
        assert session.results_state.selected == 1

    @pytest.mark.asyncio
    async def test_down_at_top_returns_empty(self, db, settings, context):
        session = await Session.open("", settings, db, context)
        assert session.apply(DOWN) == ""

    @pytest.mark.asyncio
    async def test_paging_uses_visible_rows_minus_context(self, db, settings, context):
        session = await Session.open("", settings, db, context)
        session.results_state.max_entries = 3

        assert session.page_size == 2
        session.apply(PAGE_UP)
        assert session.results_state.selected == 2
        session.apply(PAGE_UP)
        session.apply(PAGE_UP)
        assert session.results_state.selected == 4
        session.apply(PAGE_DOWN)
        assert session.results_state.selected == 2

    @pytest.mark.asyncio
    async def test_page_size_never_below_one(self, db, settings, context):
        session = await Session.open("", settings, db, context)
        session.results_state.max_entries = 0
        assert session.page_size == 1

    @pytest.mark.asyncio
    async def test_selection_stays_in_range(self, db, settings, context):
        rng = random.Random(7)
        session = await Session.open("", settings, db, context)
        session.results_state.max_entries = 4

        for _ in range(300):
            if session.apply(rng.choice([UP, UP, DOWN, PAGE_UP, PAGE_DOWN])) is not None:
                session.results_state.select(0)
                continue
            assert 0 <= session.results_state.selected <= len(session.history) - 1

    @pytest.mark.asyncio
    async def test_empty_results_keep_selection_at_zero(self, db, settings, context):
        session = await Session.open("zzzz", settings, db, context)

        assert session.history == []
        session.apply(UP)
        session.apply(PAGE_UP)
        assert session.results_state.selected == 0
        assert session.view().selected is None


class TestTerminalEvents:
    @pytest.mark.asyncio
    async def test_cancel_returns_empty(self, db, settings, context):
        session = await Session.open("git", settings, db, context)
        assert session.apply(Cancel()) == ""

    @pytest.mark.asyncio
    async def test_exit_returns_query_when_configured(self, db, settings, context):
        settings = dataclasses.replace(settings, exit_mode=ExitMode.RETURN_QUERY)
        session = await Session.open("ls -la", settings, db, context)
        assert session.apply(Exit()) == "ls -la"

    @pytest.mark.asyncio
    async def test_exit_returns_empty_by_default(self, db, settings, context):
        session = await Session.open("ls -la", settings, db, context)
        assert session.apply(Exit()) == ""

    @pytest.mark.asyncio
    async def test_enter_returns_selected_command(self, db, settings, context):
        session = await Session.open("", settings, db, context)
        session.apply(UP)
        assert session.apply(SelectN(0)) == "git push origin main"

    @pytest.mark.asyncio
    async def test_select_n_counts_from_selection(self, db, settings, context):
        session = await Session.open("", settings, db, context)

        assert session.apply(SelectN(2)) == "cargo build"
        assert "cargo build" not in commands(session)
        assert len(session.history) == 4

    @pytest.mark.asyncio
    async def test_select_n_past_end_returns_query(self, db, settings, context):
        session = await Session.open("git", settings, db, context)
        assert session.apply(SelectN(9)) == "git"

    @pytest.mark.asyncio
    async def test_enter_with_no_results_returns_query(self, db, settings, context):
        session = await Session.open("zzzz", settings, db, context)
        assert session.apply(SelectN(0)) == "zzzz"


class TestEditingEvents:
    @pytest.mark.asyncio
    async def test_caret_moves_and_edits(self, db, settings, context):
        session = await Session.open("git", settings, db, context)

        session.apply(CursorMove(Towards.LEFT, Unit.EDGE))
        session.apply(Input("x"))
        assert session.input.text == "xgit"
        session.apply(CursorMove(Towards.RIGHT, Unit.CHAR))
        session.apply(Delete(Towards.RIGHT, Unit.EDGE))
        assert session.input.text == "xg"
        session.apply(Clear())
        assert session.input.text == ""
        assert session.input.position == 0

    @pytest.mark.asyncio
    async def test_word_delete(self, db, settings, context):
        session = await Session.open("git push origin", settings, db, context)

        session.apply(Delete(Towards.LEFT, Unit.WORD))
        assert session.input.text == "git push "

    @pytest.mark.asyncio
    async def test_cycle_filter_mode_returns_after_four(self, db, settings, context):
        session = await Session.open("", settings, db, context)

        seen = []
        for _ in range(4):
            session.apply(CycleFilterMode())
            seen.append(session.filter_mode)
        assert seen == [
            FilterMode.HOST,
            FilterMode.SESSION,
            FilterMode.DIRECTORY,
            FilterMode.GLOBAL,
        ]

    @pytest.mark.asyncio
    async def test_update_needed_is_recorded(self, db, settings, context):
        session = await Session.open("", settings, db, context)

        assert session.apply(UpdateNeeded("2.0.0")) is None
        assert session.view().update_needed == "2.0.0"

    @pytest.mark.asyncio
    async def test_unknown_event_is_rejected(self, db, settings, context):
        session = await Session.open("", settings, db, context)
        with pytest.raises(TypeError):
            session.apply(object())  # type: ignore[arg-type]


class TestBatch:
    @pytest.mark.asyncio
    async def test_edits_refresh_once(self, db, settings, context):
        session = await Session.open("", settings, db, context)
        queries = db.queries

        batch = session.start_batch()
        for event in [Input("g"), Input("i"), Input("t"), BACKSPACE, BACKSPACE, BACKSPACE, Input("x")]:
            assert batch.apply(event) is None
        session, refreshed = await batch.commit()

        assert refreshed
        assert db.queries == queries + 1
        assert session.input.text == "x"
        assert session.history == []

    @pytest.mark.asyncio
    async def test_unchanged_query_does_not_refresh(self, db, settings, context):
        session = await Session.open("", settings, db, context)
        queries = db.queries

        batch = session.start_batch()
        batch.apply(Input("a"))
        batch.apply(BACKSPACE)
        batch.apply(UP)
        session, refreshed = await batch.commit()

        assert not refreshed
        assert db.queries == queries
        assert session.results_state.selected == 1

    @pytest.mark.asyncio
    async def test_full_filter_cycle_does_not_refresh(self, db, settings, context):
        session = await Session.open("", settings, db, context)

        batch = session.start_batch()
        for _ in range(4):
            batch.apply(CycleFilterMode())
        _, refreshed = await batch.commit()

        assert not refreshed

    @pytest.mark.asyncio
    async def test_filter_change_rescopes_results(self, db, settings, context):
        session = await Session.open("", settings, db, context)

        batch = session.start_batch()
        batch.apply(CycleFilterMode())
        session, refreshed = await batch.commit()

        assert refreshed
        assert session.filter_mode is FilterMode.HOST
        assert "cargo build" not in commands(session)

    @pytest.mark.asyncio
    async def test_directory_filter_uses_context_cwd(self, db, settings):
        context = Context(session="session-1", cwd="/tmp", hostname="box:dev")
        settings = dataclasses.replace(settings, filter_mode=FilterMode.DIRECTORY)
        session = await Session.open("", settings, db, context)

        assert commands(session) == ["git push origin main"]

    @pytest.mark.asyncio
    async def test_refresh_resets_selection(self, db, settings, context):
        session = await Session.open("", settings, db, context)
        session.apply(UP)
        session.apply(UP)

        batch = session.start_batch()
        batch.apply(Input("g"))
        session, _ = await batch.commit()

        assert session.results_state.selected == 0

    @pytest.mark.asyncio
    async def test_batch_is_spent_after_result(self, db, settings, context):
        session = await Session.open("", settings, db, context)

        batch = session.start_batch()
        assert batch.apply(Cancel()) == ""
        with pytest.raises(RuntimeError):
            batch.apply(Input("a"))
        with pytest.raises(RuntimeError):
            await batch.commit()

    @pytest.mark.asyncio
    async def test_batch_is_spent_after_commit(self, db, settings, context):
        session = await Session.open("", settings, db, context)

        batch = session.start_batch()
        await batch.commit()
        with pytest.raises(RuntimeError):
            batch.apply(Input("a"))
