"""Tests for the Workspace state manager."""

import pytest

from textoc.exceptions import (
    DataIntegrityError,
    ErrorCode,
    NotFoundError,
    ValidationError,
)
from textoc.models.schema import CreateRequest, FocusRegion
from textoc.services.commands import Command, CommandEvent
from textoc.services.workspace import QUICK_SWITCH_LIMIT, Workspace


@pytest.fixture
def make_workspace(store, file_sync, timers):
    """Build extra workspaces over the shared store; closed on teardown."""
    created = []

    def factory(**kwargs):
        kwargs.setdefault("file_sync", file_sync)
        kwargs.setdefault("timer_factory", timers)
        kwargs.setdefault("debounce_seconds", 1.0)
        ws = Workspace(store, **kwargs)
        created.append(ws)
        return ws

    yield factory
    for ws in created:
        ws.close()


def _four_notes(workspace):
    """Create four notes and return their ids in list order."""
    for title in ("A", "B", "C", "D"):
        workspace.create_note(title)
    return [n.id for n in workspace.filtered_notes()]


class TestLoad:

    def test_empty_store(self, workspace):
        assert workspace.notes == []
        assert workspace.selected_notebook_id is None
        assert workspace.primary_note_id is None
        assert workspace.focus == FocusRegion.NONE

    def test_auto_selects_first_notebook_and_note(self, store, make_workspace):
        first = store.notebooks.create_notebook("First")
        store.notebooks.create_notebook("Second")
        note = store.notes.create_note("inside", notebook_id=first.id)
        store.notes.create_note("unfiled")

        ws = make_workspace()
        ws.load()

        assert ws.selected_notebook_id == first.id
        assert ws.primary_note_id == note.id
        assert ws.selected_note_ids == [note.id]
        assert ws.focus == FocusRegion.NONE

    def test_auto_select_with_empty_notebook(self, store, make_workspace):
        notebook = store.notebooks.create_notebook("Empty")
        ws = make_workspace()
        ws.load()
        assert ws.selected_notebook_id == notebook.id
        assert ws.primary_note_id is None

    def test_refresh_picks_up_external_changes(self, store, workspace):
        store.notes.create_note("from elsewhere")
        assert workspace.notes == []
        workspace.refresh()
        assert [n.title for n in workspace.notes] == ["from elsewhere"]
        assert workspace.loading is False


class TestFiltering:

    def test_search_matches_title_or_body(self, workspace):
        workspace.create_note("Groceries", "milk and eggs")
        workspace.create_note("Work", "standup at ten")
        workspace.set_search_query("MILK")
        assert [n.title for n in workspace.filtered_notes()] == ["Groceries"]
        workspace.set_search_query("work")
        assert [n.title for n in workspace.filtered_notes()] == ["Work"]
        workspace.set_search_query(None)
        assert len(workspace.filtered_notes()) == 2

    def test_notebook_filter(self, workspace):
        home = workspace.create_notebook("Home")
        workspace.create_note("inside", notebook_id=home.id)
        workspace.create_note("outside")
        workspace.select_notebook(home.id)
        assert [n.title for n in workspace.filtered_notes()] == ["inside"]
        assert workspace.focus == FocusRegion.NOTEBOOKS

    def test_tag_and_notebook_filters_exclude_each_other(self, workspace):
        home = workspace.create_notebook("Home")
        note = workspace.create_note("n", notebook_id=home.id)
        tag = workspace.tag_note(note.id, "urgent")

        workspace.select_notebook(home.id)
        workspace.select_tag(tag.id)
        assert workspace.selected_notebook_id is None
        assert workspace.selected_tag_id == tag.id
        assert workspace.focus == FocusRegion.TAGS

        workspace.select_notebook(home.id)
        assert workspace.selected_tag_id is None

    def test_tag_filter(self, workspace):
        tagged = workspace.create_note("tagged")
        workspace.create_note("plain")
        tag = workspace.tag_note(tagged.id, "t")
        workspace.select_tag(tag.id)
        assert [n.id for n in workspace.filtered_notes()] == [tagged.id]

    def test_clearing_filters(self, workspace):
        home = workspace.create_notebook("Home")
        workspace.create_note("a", notebook_id=home.id)
        workspace.create_note("b")
        workspace.select_notebook(home.id)
        workspace.select_notebook(None)
        assert len(workspace.filtered_notes()) == 2

    def test_unknown_filter_ids_rejected(self, workspace):
        with pytest.raises(NotFoundError):
            workspace.select_notebook("missing")
        with pytest.raises(NotFoundError):
            workspace.select_tag("missing")

    def test_unfiled_notes(self, workspace):
        home = workspace.create_notebook("Home")
        workspace.select_notebook(None)
        loose = workspace.create_note("loose")
        workspace.select_notebook(home.id)
        filed = workspace.create_note("filed")
        assert loose.notebook_id is None
        assert filed.notebook_id == home.id
        assert [n.id for n in workspace.unfiled_notes()] == [loose.id]


class TestSelection:

    def test_plain_click_replaces_selection(self, workspace):
        a, b, c, d = _four_notes(workspace)
        workspace.select_note(a)
        workspace.select_note(c)
        assert workspace.selected_note_ids == [c]
        assert workspace.primary_note_id == c

    def test_toggle_then_range(self, workspace):
        a, b, c, d = _four_notes(workspace)
        workspace.select_note(a)
        workspace.select_note(c, toggle=True)
        assert set(workspace.selected_note_ids) == {a, c}
        assert workspace.primary_note_id == c

        workspace.select_note(d, extend=True)
        assert workspace.selected_note_ids == [c, d]
        assert workspace.primary_note_id == c

    def test_toggle_off(self, workspace):
        a, b, c, d = _four_notes(workspace)
        workspace.select_note(a)
        workspace.select_note(b, toggle=True)
        workspace.select_note(a, toggle=True)
        assert workspace.selected_note_ids == [b]

    def test_range_backwards(self, workspace):
        a, b, c, d = _four_notes(workspace)
        workspace.select_note(d)
        workspace.select_note(b, extend=True)
        assert workspace.selected_note_ids == [b, c, d]
        assert workspace.primary_note_id == d

    def test_range_without_primary_is_plain_select(self, workspace):
        a, b, c, d = _four_notes(workspace)
        workspace.clear_note_selection()
        workspace.select_note(c, extend=True)
        assert workspace.selected_note_ids == [c]
        assert workspace.primary_note_id == c

    def test_clear(self, workspace):
        a, *_ = _four_notes(workspace)
        workspace.select_note(a)
        workspace.select_note(None)
        assert workspace.selected_note_ids == []
        assert workspace.primary_note_id is None

    def test_unknown_note(self, workspace):
        with pytest.raises(NotFoundError):
            workspace.select_note("missing")


class TestFocus:

    def test_no_cycle_out_of_none(self, workspace):
        assert workspace.cycle_focus() == FocusRegion.NONE
        assert workspace.cycle_focus(reverse=True) == FocusRegion.NONE

    def test_forward_cycle(self, workspace):
        workspace.focus_region(FocusRegion.NOTEBOOKS)
        assert workspace.cycle_focus() == FocusRegion.NOTES
        assert workspace.cycle_focus() == FocusRegion.EDITOR
        assert workspace.cycle_focus() == FocusRegion.NOTEBOOKS

    def test_tags_go_to_notes(self, workspace):
        workspace.focus_region(FocusRegion.TAGS)
        assert workspace.cycle_focus() == FocusRegion.NOTES

    def test_reverse_cycle(self, workspace):
        workspace.focus_region(FocusRegion.NOTES)
        assert workspace.cycle_focus(reverse=True) == FocusRegion.NOTEBOOKS
        assert workspace.cycle_focus(reverse=True) == FocusRegion.EDITOR

    def test_tab_commands(self, workspace):
        workspace.focus_region(FocusRegion.EDITOR)
        workspace.dispatch(Command.FOCUS_NEXT)
        assert workspace.focus == FocusRegion.NOTEBOOKS
        workspace.dispatch(Command.FOCUS_PREVIOUS)
        assert workspace.focus == FocusRegion.EDITOR


class TestMutations:

    def test_create_note_selects_it(self, workspace):
        note = workspace.create_note("  Fresh  ")
        assert note.title == "Fresh"
        assert workspace.primary_note_id == note.id
        assert workspace.get_note(note.id) is not None

    def test_empty_names_rejected(self, workspace):
        with pytest.raises(ValidationError) as exc_info:
            workspace.create_note("   ")
        assert exc_info.value.code == ErrorCode.EMPTY_NAME
        with pytest.raises(ValidationError):
            workspace.create_notebook("")
        with pytest.raises(ValidationError):
            workspace.create_tag(" ")
        assert workspace.notes == []

    def test_update_keeps_title_as_typed(self, workspace):
        note = workspace.create_note("x")
        workspace.update_note(note.id, title=" padded ")
        assert workspace.get_note(note.id).title == " padded "

    def test_update_missing_note(self, workspace):
        with pytest.raises(NotFoundError):
            workspace.update_note("missing", content="x")

    def test_move_note_between_notebooks(self, workspace):
        home = workspace.create_notebook("Home")
        note = workspace.create_note("n")
        workspace.update_note(note.id, notebook_id=home.id)
        assert workspace.get_note(note.id).notebook_id == home.id
        workspace.update_note(note.id, notebook_id=None)
        assert workspace.get_note(note.id).is_unfiled

    def test_delete_notes_reconciles_selection(self, workspace):
        a, b, c, d = _four_notes(workspace)
        workspace.select_note(a)
        workspace.select_note(b, toggle=True)
        workspace.delete_notes([a, b])
        assert workspace.selected_note_ids == []
        assert workspace.primary_note_id is None
        assert {n.id for n in workspace.notes} == {c, d}

    def test_delete_tag_clears_filter(self, workspace):
        note = workspace.create_note("n")
        tag = workspace.tag_note(note.id, "gone")
        workspace.select_tag(tag.id)
        workspace.delete_tag(tag.id)
        assert workspace.selected_tag_id is None
        assert workspace.tags == []
        assert workspace.tags_for_note(note.id) == []

    def test_delete_notebook_cascades(self, workspace, file_sync, mirror):
        parent = workspace.create_notebook("Parent")
        child = workspace.create_notebook("Child", parent_id=parent.id)
        inner = workspace.create_note("inner", notebook_id=child.id)
        outer = workspace.create_note("outer")
        file_sync.mirror_all()
        workspace.select_notebook(parent.id)
        workspace.select_note(inner.id)

        deleted = workspace.delete_notebook(parent.id)

        assert deleted == [inner.id]
        assert workspace.selected_notebook_id is None
        assert workspace.primary_note_id is None
        assert [n.id for n in workspace.notes] == [outer.id]
        assert len(workspace.forest) == 0
        assert mirror.read_note_file(inner.id) is None
        assert mirror.read_note_file(outer.id) is not None

    def test_move_notebook_cycle_rejected(self, workspace):
        a = workspace.create_notebook("A")
        b = workspace.create_notebook("B", parent_id=a.id)
        with pytest.raises(ValidationError) as exc_info:
            workspace.move_notebook(a.id, b.id)
        assert exc_info.value.code == ErrorCode.NOTEBOOK_CYCLE
        workspace.move_notebook(b.id, None)
        assert [nb.id for nb in workspace.forest.roots()] == [a.id, b.id]

    def test_tag_note_reuses_existing_tag(self, workspace):
        a = workspace.create_note("a")
        b = workspace.create_note("b")
        first = workspace.tag_note(a.id, "shared")
        second = workspace.tag_note(b.id, "shared")
        assert first.id == second.id
        assert len(workspace.tags) == 1
        workspace.remove_tag_from_note(a.id, first.id)
        assert workspace.tags_for_note(a.id) == []
        assert [t.name for t in workspace.tags_for_note(b.id)] == ["shared"]

    def test_tag_unknown_note_creates_no_tag(self, workspace, store):
        with pytest.raises(NotFoundError):
            workspace.tag_note("no-such-note", "orphan")
        assert store.tags.list_tags() == []
        assert workspace.tags == []

    def test_store_failure_leaves_state_untouched(self, workspace):
        workspace.create_tag("taken")
        other = workspace.create_tag("other")
        before = list(workspace.tags)
        with pytest.raises(DataIntegrityError):
            workspace.rename_tag(other.id, "taken")
        assert workspace.tags == before

    def test_create_in_unknown_notebook(self, workspace):
        existing = workspace.create_note("kept")
        with pytest.raises(DataIntegrityError):
            workspace.create_note("lost", notebook_id="missing")
        assert [n.id for n in workspace.notes] == [existing.id]
        assert workspace.primary_note_id == existing.id


class TestDrafts:

    def test_edit_is_debounced(self, workspace, store, timers):
        note = workspace.create_note("n", "old")
        workspace.edit_content("new")
        assert store.notes.get_note(note.id).content == "old"
        assert workspace.current_content() == "new"
        assert workspace.has_pending_draft(note.id)

        timers.fire_all()

        assert store.notes.get_note(note.id).content == "new"
        assert workspace.get_note(note.id).content == "new"
        assert workspace.drafts == {}
        assert not workspace.has_pending_draft(note.id)

    def test_rapid_edits_restart_timer(self, workspace, timers):
        workspace.create_note("n")
        workspace.edit_content("a")
        workspace.edit_content("ab")
        workspace.edit_title("title")
        assert len(timers.live) == 1
        assert timers.live[0].delay == 1.0
        timers.fire_all()
        note = workspace.primary_note
        assert (note.title, note.content) == ("title", "ab")

    def test_unchanged_draft_writes_nothing(self, workspace, store, timers):
        note = workspace.create_note("n", "same")
        workspace.edit_content("same")
        timers.fire_all()
        assert store.notes.get_note(note.id).updated_at == note.updated_at

    def test_empty_title_not_saved(self, workspace, store, timers):
        note = workspace.create_note("keep")
        workspace.edit_title("   ")
        workspace.edit_content("body")
        timers.fire_all()
        stored = store.notes.get_note(note.id)
        assert stored.title == "keep"
        assert stored.content == "body"

    def test_edit_without_open_note(self, workspace):
        with pytest.raises(ValidationError):
            workspace.edit_content("x")

    def test_switch_flushes_draft(self, workspace, store, timers):
        first = workspace.create_note("first")
        second = workspace.create_note("second")
        workspace.select_note(first.id)
        workspace.edit_content("typed")
        workspace.select_note(second.id)
        assert store.notes.get_note(first.id).content == "typed"
        assert timers.live == []

    def test_switch_discards_draft(self, make_workspace, store, timers):
        ws = make_workspace(flush_on_switch=False)
        ws.load()
        first = ws.create_note("first")
        second = ws.create_note("second")
        ws.select_note(first.id)
        ws.edit_content("typed")
        ws.select_note(second.id)
        assert store.notes.get_note(first.id).content == ""
        assert ws.drafts == {}
        assert timers.live == []

    def test_close_flushes(self, make_workspace, store, timers):
        ws = make_workspace()
        ws.load()
        note = ws.create_note("n")
        ws.edit_content("unsaved")
        ws.close()
        assert store.notes.get_note(note.id).content == "unsaved"
        assert timers.live == []

    def test_deleting_note_drops_draft(self, workspace, timers):
        note = workspace.create_note("n")
        workspace.edit_content("typed")
        workspace.delete_note(note.id)
        assert workspace.drafts == {}
        assert timers.live == []

    def test_flush_drafts(self, workspace, store):
        note = workspace.create_note("n")
        workspace.edit_content("now")
        workspace.flush_drafts()
        assert store.notes.get_note(note.id).content == "now"

    def test_timer_failure_is_logged_not_raised(self, workspace, timers, monkeypatch):
        workspace.create_note("n")
        workspace.edit_content("x")

        def broken(*args, **kwargs):
            raise DataIntegrityError("nope")

        monkeypatch.setattr(workspace.store.notes, "update_note", broken)
        timers.fire_all()
        assert workspace.primary_note_id in workspace.drafts

        workspace.close()
        assert timers.live == []

    def test_close_stops_timers_when_save_fails(self, make_workspace, timers, monkeypatch):
        ws = make_workspace()
        ws.load()
        ws.create_note("a")
        ws.edit_content("x")
        other = ws.create_note("b")
        ws.edit_content("y")
        assert len(timers.live) == 1

        def broken(*args, **kwargs):
            raise DataIntegrityError("nope")

        monkeypatch.setattr(ws.store.notes, "update_note", broken)
        ws.close()
        assert timers.live == []
        assert other.id in ws.drafts

    @pytest.mark.parametrize("toggle", [False, True])
    def test_failed_flush_keeps_selection(self, workspace, monkeypatch, toggle):
        a, b, c, d = _four_notes(workspace)
        workspace.select_note(a)
        workspace.edit_content("typed")

        def broken(*args, **kwargs):
            raise DataIntegrityError("nope")

        monkeypatch.setattr(workspace.store.notes, "update_note", broken)
        with pytest.raises(DataIntegrityError):
            workspace.select_note(b, toggle=toggle)
        assert workspace.selected_note_ids == [a]
        assert workspace.primary_note_id == a
        assert a in workspace.drafts


class TestDispatch:

    def test_new_commands_set_create_request(self, workspace):
        workspace.dispatch(Command.NEW_NOTE)
        assert workspace.create_request == CreateRequest.NOTE
        workspace.dispatch(Command.NEW_TAG)
        assert workspace.create_request == CreateRequest.TAG
        assert workspace.focus == FocusRegion.TAGS
        workspace.dispatch(Command.CANCEL)
        assert workspace.create_request is None

    def test_sub_notebook_needs_selected_notebook(self, workspace):
        workspace.dispatch(Command.NEW_SUB_NOTEBOOK)
        assert workspace.create_request is None

        parent = workspace.create_notebook("Parent")
        workspace.select_notebook(parent.id)
        workspace.dispatch(Command.NEW_SUB_NOTEBOOK)
        assert workspace.create_request == CreateRequest.SUB_NOTEBOOK
        child = workspace.submit_create("Child")
        assert child.parent_id == parent.id
        assert workspace.create_request is None

    def test_submit_create_note_uses_notebook_filter(self, workspace):
        home = workspace.create_notebook("Home")
        workspace.select_notebook(home.id)
        workspace.dispatch(Command.NEW_NOTE)
        note = workspace.submit_create("n")
        assert note.notebook_id == home.id

    def test_submit_without_request(self, workspace):
        with pytest.raises(ValidationError):
            workspace.submit_create("x")

    def test_navigate_notes(self, workspace):
        a, b, c, d = _four_notes(workspace)
        workspace.clear_note_selection()
        workspace.focus_region(FocusRegion.NOTES)
        workspace.dispatch(Command.NAVIGATE_DOWN)
        assert workspace.primary_note_id == a
        workspace.dispatch(Command.NAVIGATE_DOWN)
        workspace.dispatch(Command.NAVIGATE_DOWN)
        assert workspace.primary_note_id == c
        workspace.dispatch(Command.NAVIGATE_UP)
        assert workspace.primary_note_id == b

    def test_navigate_stops_at_ends(self, workspace):
        a, b, c, d = _four_notes(workspace)
        workspace.focus_region(FocusRegion.NOTES)
        workspace.select_note(d)
        workspace.dispatch(Command.NAVIGATE_DOWN)
        assert workspace.primary_note_id == d
        workspace.select_note(a)
        workspace.dispatch(Command.NAVIGATE_UP)
        assert workspace.primary_note_id == a

    def test_shift_navigate_extends(self, workspace):
        a, b, c, d = _four_notes(workspace)
        workspace.focus_region(FocusRegion.NOTES)
        workspace.select_note(b)
        workspace.dispatch(CommandEvent(Command.NAVIGATE_DOWN, extend=True))
        workspace.dispatch(CommandEvent(Command.NAVIGATE_DOWN, extend=True))
        assert workspace.selected_note_ids == [b, c, d]
        assert workspace.primary_note_id == b

    def test_navigate_sidebar_wraps_into_tags(self, workspace):
        parent = workspace.create_notebook("Parent")
        child = workspace.create_notebook("Child", parent_id=parent.id)
        tag = workspace.create_tag("t")
        workspace.select_notebook(parent.id)
        workspace.dispatch(Command.NAVIGATE_DOWN)
        assert workspace.selected_notebook_id == child.id
        workspace.dispatch(Command.NAVIGATE_DOWN)
        assert workspace.selected_tag_id == tag.id
        workspace.dispatch(Command.NAVIGATE_DOWN)
        assert workspace.selected_notebook_id == parent.id

    def test_rename_note(self, workspace):
        note = workspace.create_note("old")
        workspace.focus_region(FocusRegion.NOTES)
        workspace.dispatch(Command.RENAME)
        assert workspace.rename_target == ("note", note.id)
        workspace.commit_rename("new")
        assert workspace.get_note(note.id).title == "new"
        assert workspace.rename_target is None

    def test_rename_notebook_and_cancel(self, workspace):
        notebook = workspace.create_notebook("old")
        workspace.select_notebook(notebook.id)
        workspace.dispatch(Command.RENAME)
        assert workspace.rename_target == ("notebook", notebook.id)
        workspace.dispatch(Command.CANCEL)
        assert workspace.rename_target is None
        assert workspace.get_notebook(notebook.id).name == "old"

    def test_failed_rename_keeps_target(self, workspace):
        workspace.create_tag("taken")
        tag = workspace.create_tag("mine")
        workspace.select_tag(tag.id)
        workspace.dispatch(Command.RENAME)
        with pytest.raises(DataIntegrityError):
            workspace.commit_rename("taken")
        assert workspace.rename_target == ("tag", tag.id)

    def test_delete_selected_notes(self, workspace):
        a, b, c, d = _four_notes(workspace)
        workspace.focus_region(FocusRegion.NOTES)
        workspace.select_note(a)
        workspace.select_note(b, toggle=True)
        workspace.dispatch(Command.DELETE_SELECTED)
        assert {n.id for n in workspace.notes} == {c, d}

    def test_delete_focused_tag(self, workspace):
        tag = workspace.create_tag("t")
        workspace.select_tag(tag.id)
        workspace.dispatch(Command.DELETE_SELECTED)
        assert workspace.tags == []

    def test_click_commands(self, workspace):
        a, b, c, d = _four_notes(workspace)
        workspace.select_note(a)
        workspace.dispatch(CommandEvent(Command.TOGGLE_SELECTION, target_id=c))
        workspace.dispatch(CommandEvent(Command.SELECT_RANGE, target_id=d))
        assert workspace.selected_note_ids == [c, d]

    def test_open_and_close_note(self, workspace):
        note = workspace.create_note("n")
        workspace.dispatch(CommandEvent(Command.OPEN_EDITOR, target_id=note.id))
        assert workspace.focus == FocusRegion.EDITOR
        workspace.dispatch(Command.CLOSE_NOTE)
        assert workspace.primary_note_id is None

    def test_cancel_closes_quick_open_first(self, workspace):
        workspace.dispatch(Command.NEW_NOTE)
        workspace.dispatch(Command.QUICK_OPEN)
        workspace.dispatch(Command.CANCEL)
        assert workspace.quick_open is False
        assert workspace.create_request == CreateRequest.NOTE


class TestQuickSwitch:

    def test_results_span_all_notebooks(self, workspace):
        home = workspace.create_notebook("Home")
        work = workspace.create_notebook("Work")
        workspace.create_note("plan trip", notebook_id=home.id)
        workspace.create_note("plan sprint", notebook_id=work.id)
        workspace.create_note("other")
        workspace.select_notebook(home.id)
        titles = {n.title for n in workspace.quick_switch_results("PLAN")}
        assert titles == {"plan trip", "plan sprint"}

    def test_results_are_limited(self, workspace):
        for i in range(QUICK_SWITCH_LIMIT + 3):
            workspace.create_note(f"note {i}")
        assert len(workspace.quick_switch_results("note")) == QUICK_SWITCH_LIMIT

    def test_choose_reveals_filtered_note(self, workspace):
        home = workspace.create_notebook("Home")
        work = workspace.create_notebook("Work")
        target = workspace.create_note("hidden", notebook_id=work.id)
        workspace.select_notebook(home.id)
        workspace.set_search_query("nothing matches")
        workspace.dispatch(Command.QUICK_OPEN)

        workspace.choose_quick_switch(target.id)

        assert workspace.selected_notebook_id == work.id
        assert workspace.search_query == ""
        assert workspace.primary_note_id == target.id
        assert workspace.focus == FocusRegion.EDITOR
        assert workspace.quick_open is False
        assert target.id in {n.id for n in workspace.filtered_notes()}

    def test_choose_visible_note_keeps_filters(self, workspace):
        home = workspace.create_notebook("Home")
        note = workspace.create_note("n", notebook_id=home.id)
        workspace.select_notebook(home.id)
        workspace.choose_quick_switch(note.id)
        assert workspace.selected_notebook_id == home.id
