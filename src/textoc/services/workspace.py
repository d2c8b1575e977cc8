"""Workspace state manager.

Holds the in-memory view of the store that a front end renders: the note,
notebook and tag lists, the active filters, the note selection, keyboard
focus and the pending edit drafts. Every mutation goes to the store first
and is followed by a full refresh, so the in-memory lists are always a
snapshot of the store and never patched by hand.

Mutations are serialized by a re-entrant lock. Debounced draft commits run
on timer threads and take the same lock.
"""
import logging
import threading
from typing import Dict, Iterable, List, Optional, Tuple, Union

from textoc.config import config
from textoc.exceptions import ErrorCode, NotFoundError, TextocError, ValidationError
from textoc.models.schema import (
    CreateRequest,
    FocusRegion,
    Note,
    Notebook,
    NoteTag,
    Tag,
    normalize_name,
)
from textoc.observability import timed_operation
from textoc.services.commands import Command, CommandEvent
from textoc.services.drafts import Debouncer, Draft, TimerFactory
from textoc.services.file_sync_service import FileSyncService
from textoc.services.notebook_tree import NotebookForest
from textoc.storage import Store
from textoc.storage.base import UNSET, _Unset

logger = logging.getLogger(__name__)

QUICK_SWITCH_LIMIT = 10

_FORWARD_FOCUS = {
    FocusRegion.NOTEBOOKS: FocusRegion.NOTES,
    FocusRegion.TAGS: FocusRegion.NOTES,
    FocusRegion.NOTES: FocusRegion.EDITOR,
    FocusRegion.EDITOR: FocusRegion.NOTEBOOKS,
}
_REVERSE_FOCUS = {
    FocusRegion.NOTEBOOKS: FocusRegion.EDITOR,
    FocusRegion.TAGS: FocusRegion.EDITOR,
    FocusRegion.NOTES: FocusRegion.NOTEBOOKS,
    FocusRegion.EDITOR: FocusRegion.NOTES,
}


class Workspace:
    """In-memory workspace over an injected store.

    Args:
        store: Repository bundle (notes, notebooks, tags).
        file_sync: Optional mirror coordinator; used to remove mirror files
            of deleted notes.
        debounce_seconds: Quiet period before a draft is committed.
            Defaults to ``config.debounce_seconds``.
        flush_on_switch: Commit (True) or discard (False) a pending draft
            when the open note changes. Defaults to ``config.flush_on_switch``.
        timer_factory: Timer constructor for the debouncer.
    """

    def __init__(
        self,
        store: Store,
        file_sync: Optional[FileSyncService] = None,
        debounce_seconds: Optional[float] = None,
        flush_on_switch: Optional[bool] = None,
        timer_factory: Optional[TimerFactory] = None,
    ):
        self.store = store
        self.file_sync = file_sync
        self.debounce_seconds = (
            config.debounce_seconds if debounce_seconds is None else debounce_seconds
        )
        self.flush_on_switch = (
            config.flush_on_switch if flush_on_switch is None else flush_on_switch
        )
        self._lock = threading.RLock()
        self._debouncer = Debouncer(self.debounce_seconds, timer_factory)

        self.notes: List[Note] = []
        self.notebooks: List[Notebook] = []
        self.tags: List[Tag] = []
        self.note_tags: List[NoteTag] = []
        self.forest = NotebookForest()

        self.search_query = ""
        self.selected_notebook_id: Optional[str] = None
        self.selected_tag_id: Optional[str] = None
        self.selected_note_ids: List[str] = []
        self.primary_note_id: Optional[str] = None
        self.focus = FocusRegion.NONE
        self.loading = False
        self.create_request: Optional[CreateRequest] = None
        self.rename_target: Optional[Tuple[str, str]] = None
        self.quick_open = False
        self.drafts: Dict[str, Draft] = {}
        # Far end of the last selection gesture; keyboard range selection
        # grows from here while the primary stays fixed.
        self._cursor_id: Optional[str] = None

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_note(self, note_id: Optional[str]) -> Optional[Note]:
        return next((n for n in self.notes if n.id == note_id), None)

    def get_notebook(self, notebook_id: Optional[str]) -> Optional[Notebook]:
        return self.forest.get(notebook_id) if notebook_id else None

    def get_tag(self, tag_id: Optional[str]) -> Optional[Tag]:
        return next((t for t in self.tags if t.id == tag_id), None)

    @property
    def primary_note(self) -> Optional[Note]:
        return self.get_note(self.primary_note_id)

    def tags_for_note(self, note_id: str) -> List[Tag]:
        tag_ids = {nt.tag_id for nt in self.note_tags if nt.note_id == note_id}
        return [t for t in self.tags if t.id in tag_ids]

    def _require_note(self, note_id: str) -> Note:
        note = self.get_note(note_id)
        if note is None:
            raise NotFoundError("note", note_id, code=ErrorCode.NOTE_NOT_FOUND)
        return note

    def _require_notebook(self, notebook_id: str) -> Notebook:
        notebook = self.get_notebook(notebook_id)
        if notebook is None:
            raise NotFoundError("notebook", notebook_id, code=ErrorCode.NOTEBOOK_NOT_FOUND)
        return notebook

    def _require_tag(self, tag_id: str) -> Tag:
        tag = self.get_tag(tag_id)
        if tag is None:
            raise NotFoundError("tag", tag_id, code=ErrorCode.TAG_NOT_FOUND)
        return tag

    # ------------------------------------------------------------------
    # Load / refresh
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Initial fetch, then pick the first notebook and its first note.

        Auto-selection only happens when no notebook or tag filter is set.
        """
        with self._lock:
            self.refresh()
            if self.selected_notebook_id or self.selected_tag_id or not self.notebooks:
                return
            first = self.notebooks[0]
            self.selected_notebook_id = first.id
            first_note = next((n for n in self.notes if n.notebook_id == first.id), None)
            if first_note is not None:
                self.select_note(first_note.id)
            logger.debug(f"Auto-selected notebook {first.id}")

    def refresh(self) -> None:
        """Replace every in-memory list with a fresh copy from the store.

        Selection ids, filters and drafts that point at rows which no longer
        exist are dropped.
        """
        with self._lock:
            self.loading = True
            try:
                with timed_operation("workspace_refresh") as op:
                    notes = self.store.notes.list_notes()
                    notebooks = self.store.notebooks.list_notebooks()
                    tags = self.store.tags.list_tags()
                    note_tags = self.store.tags.list_all_note_tag_associations()
                    op["notes"] = len(notes)
            finally:
                self.loading = False

            self.notes = notes
            self.notebooks = notebooks
            self.tags = tags
            self.note_tags = note_tags
            self.forest = NotebookForest(notebooks)
            self._prune_stale_references()

    def _prune_stale_references(self) -> None:
        note_ids = {n.id for n in self.notes}
        self.selected_note_ids = [i for i in self.selected_note_ids if i in note_ids]
        if self.primary_note_id not in note_ids:
            self.primary_note_id = None
        if self._cursor_id not in note_ids:
            self._cursor_id = None
        for stale in [i for i in self.drafts if i not in note_ids]:
            self._debouncer.cancel(stale)
            del self.drafts[stale]
        if self.selected_notebook_id and self.selected_notebook_id not in self.forest:
            self.selected_notebook_id = None
        if self.selected_tag_id and self.get_tag(self.selected_tag_id) is None:
            self.selected_tag_id = None
        if self.rename_target and not self._rename_target_exists(self.rename_target):
            self.rename_target = None

    def _rename_target_exists(self, target: Tuple[str, str]) -> bool:
        kind, entity_id = target
        if kind == "note":
            return self.get_note(entity_id) is not None
        if kind == "notebook":
            return entity_id in self.forest
        return self.get_tag(entity_id) is not None

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------

    def filtered_notes(self) -> List[Note]:
        """Notes passing the search text, notebook filter and tag filter."""
        query = self.search_query
        tagged = None
        if self.selected_tag_id:
            tagged = {nt.note_id for nt in self.note_tags if nt.tag_id == self.selected_tag_id}
        result = []
        for note in self.notes:
            if query and not note.matches(query):
                continue
            if self.selected_notebook_id and note.notebook_id != self.selected_notebook_id:
                continue
            if tagged is not None and note.id not in tagged:
                continue
            result.append(note)
        return result

    def unfiled_notes(self) -> List[Note]:
        return [n for n in self.notes if n.is_unfiled]

    def set_search_query(self, text: Optional[str]) -> None:
        self.search_query = text or ""

    def select_notebook(self, notebook_id: Optional[str]) -> None:
        """Filter by notebook; clears any tag filter."""
        with self._lock:
            if notebook_id is not None:
                self._require_notebook(notebook_id)
                self.focus = FocusRegion.NOTEBOOKS
            self.selected_notebook_id = notebook_id
            self.selected_tag_id = None

    def select_tag(self, tag_id: Optional[str]) -> None:
        """Filter by tag; clears any notebook filter."""
        with self._lock:
            if tag_id is not None:
                self._require_tag(tag_id)
                self.focus = FocusRegion.TAGS
            self.selected_tag_id = tag_id
            self.selected_notebook_id = None

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_note(
        self, note_id: Optional[str], toggle: bool = False, extend: bool = False
    ) -> None:
        """Update the note selection.

        Args:
            note_id: Clicked note; None clears the selection.
            toggle: Flip membership of ``note_id``; it becomes primary.
            extend: Select the filtered-list slice between the primary and
                ``note_id``. The primary does not move. Falls back to a
                plain selection when there is no usable primary.
        """
        with self._lock:
            if note_id is None:
                self.clear_note_selection()
                return
            self._require_note(note_id)

            if extend:
                visible = [n.id for n in self.filtered_notes()]
                if self.primary_note_id in visible and note_id in visible:
                    a = visible.index(self.primary_note_id)
                    b = visible.index(note_id)
                    self.selected_note_ids = visible[min(a, b):max(a, b) + 1]
                    self._cursor_id = note_id
                    return

            elif toggle:
                if note_id in self.selected_note_ids:
                    selection = [i for i in self.selected_note_ids if i != note_id]
                else:
                    selection = self.selected_note_ids + [note_id]
                # Selection changes only once the previous draft is settled
                self._switch_primary(note_id)
                self.selected_note_ids = selection
                self._cursor_id = note_id
                return

            self._switch_primary(note_id)
            self.selected_note_ids = [note_id]
            self._cursor_id = note_id

    def clear_note_selection(self) -> None:
        with self._lock:
            self._switch_primary(None)
            self.selected_note_ids = []
            self._cursor_id = None

    def _switch_primary(self, note_id: Optional[str]) -> None:
        previous = self.primary_note_id
        if previous == note_id:
            return
        if previous is not None and previous in self.drafts:
            self._settle_draft(previous)
        self.primary_note_id = note_id

    # ------------------------------------------------------------------
    # Focus
    # ------------------------------------------------------------------

    def focus_region(self, region: FocusRegion) -> None:
        self.focus = region

    def cycle_focus(self, reverse: bool = False) -> FocusRegion:
        """Tab order NOTEBOOKS/TAGS -> NOTES -> EDITOR -> NOTEBOOKS.

        Nothing happens while focus is NONE.
        """
        table = _REVERSE_FOCUS if reverse else _FORWARD_FOCUS
        self.focus = table.get(self.focus, self.focus)
        return self.focus

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_note(
        self, title: str, content: str = "", notebook_id: Optional[str] = None
    ) -> Note:
        """Create a note and make it the selected, primary note.

        Without an explicit ``notebook_id`` the note goes into the notebook
        filter, or stays unfiled when there is none.
        """
        title = normalize_name(title, "title")
        with self._lock, timed_operation("create_note", title=title[:30]):
            target = notebook_id if notebook_id is not None else self.selected_notebook_id
            note = self.store.notes.create_note(title, content, notebook_id=target)
            self.refresh()
            self.create_request = None
            self.select_note(note.id)
            return note

    def update_note(
        self,
        note_id: str,
        *,
        title: Union[str, _Unset] = UNSET,
        content: Union[str, _Unset] = UNSET,
        notebook_id: Union[Optional[str], _Unset] = UNSET,
    ) -> Note:
        """Patch the supplied fields of a note.

        Titles are stored as typed; only an empty title is rejected.
        """
        if not isinstance(title, _Unset):
            normalize_name(title, "title")
        with self._lock, timed_operation("update_note", note_id=note_id):
            note = self.store.notes.update_note(
                note_id, title=title, content=content, notebook_id=notebook_id
            )
            if note is None:
                raise NotFoundError("note", note_id, code=ErrorCode.NOTE_NOT_FOUND)
            self.refresh()
            return note

    def delete_note(self, note_id: str) -> int:
        return self.delete_notes([note_id])

    def delete_notes(self, note_ids: Iterable[str]) -> int:
        """Delete notes, their drafts and their mirror files.

        Returns:
            Number of notes removed from the store.
        """
        ids = list(dict.fromkeys(note_ids))
        with self._lock, timed_operation("delete_notes", count=len(ids)):
            removed = self.store.notes.delete_notes(ids)
            self._discard_drafts(ids)
            self._remove_mirror_files(ids)
            self.refresh()
            return removed

    def create_notebook(self, name: str, parent_id: Optional[str] = None) -> Notebook:
        name = normalize_name(name, "name")
        with self._lock, timed_operation("create_notebook", name=name[:30]):
            notebook = self.store.notebooks.create_notebook(name, parent_id=parent_id)
            self.refresh()
            self.create_request = None
            return notebook

    def rename_notebook(self, notebook_id: str, name: str) -> Notebook:
        name = normalize_name(name, "name")
        with self._lock, timed_operation("rename_notebook", notebook_id=notebook_id):
            notebook = self.store.notebooks.update_notebook(notebook_id, name)
            if notebook is None:
                raise NotFoundError(
                    "notebook", notebook_id, code=ErrorCode.NOTEBOOK_NOT_FOUND
                )
            self.refresh()
            return notebook

    def move_notebook(self, notebook_id: str, new_parent_id: Optional[str]) -> Notebook:
        """Reparent a notebook; moves that would form a cycle are rejected."""
        with self._lock, timed_operation("move_notebook", notebook_id=notebook_id):
            if self.forest.would_create_cycle(notebook_id, new_parent_id):
                raise ValidationError(
                    "Cannot move a notebook under itself or its descendants",
                    field="parent_id",
                    value=new_parent_id,
                    code=ErrorCode.NOTEBOOK_CYCLE,
                )
            notebook = self.store.notebooks.move_notebook(notebook_id, new_parent_id)
            if notebook is None:
                raise NotFoundError(
                    "notebook", notebook_id, code=ErrorCode.NOTEBOOK_NOT_FOUND
                )
            self.refresh()
            return notebook

    def delete_notebook(self, notebook_id: str) -> List[str]:
        """Delete a notebook subtree and the notes inside it.

        Returns:
            IDs of the deleted notes.
        """
        with self._lock, timed_operation("delete_notebook", notebook_id=notebook_id):
            deleted = self.store.notebooks.delete_notebook(notebook_id)
            self._discard_drafts(deleted)
            self._remove_mirror_files(deleted)
            self.refresh()
            return deleted

    def create_tag(self, name: str) -> Tag:
        """Create a tag; an existing tag with the same name is returned."""
        name = normalize_name(name, "name")
        with self._lock, timed_operation("create_tag", name=name[:30]):
            tag = self.store.tags.create_tag(name)
            self.refresh()
            self.create_request = None
            return tag

    def rename_tag(self, tag_id: str, name: str) -> Tag:
        name = normalize_name(name, "name")
        with self._lock, timed_operation("rename_tag", tag_id=tag_id):
            tag = self.store.tags.update_tag(tag_id, name)
            if tag is None:
                raise NotFoundError("tag", tag_id, code=ErrorCode.TAG_NOT_FOUND)
            self.refresh()
            return tag

    def delete_tag(self, tag_id: str) -> None:
        with self._lock, timed_operation("delete_tag", tag_id=tag_id):
            self.store.tags.delete_tag(tag_id)
            self.refresh()

    def add_tag_to_note(self, note_id: str, tag_id: str) -> None:
        with self._lock, timed_operation("add_tag_to_note", note_id=note_id):
            self.store.tags.add_tag_to_note(note_id, tag_id)
            self.refresh()

    def remove_tag_from_note(self, note_id: str, tag_id: str) -> None:
        with self._lock, timed_operation("remove_tag_from_note", note_id=note_id):
            self.store.tags.remove_tag_from_note(note_id, tag_id)
            self.refresh()

    def tag_note(self, note_id: str, name: str) -> Tag:
        """Attach the tag called ``name`` to a note, creating it if needed."""
        with self._lock:
            self._require_note(note_id)
            tag = self.create_tag(name)
            self.add_tag_to_note(note_id, tag.id)
            return tag

    def submit_create(self, name: str):
        """Fulfil the pending ``create_request`` with the entered name."""
        with self._lock:
            request = self.create_request
            if request is None:
                raise ValidationError("Nothing is being created", field="create_request")
            if request == CreateRequest.NOTE:
                return self.create_note(name)
            if request == CreateRequest.NOTEBOOK:
                return self.create_notebook(name)
            if request == CreateRequest.SUB_NOTEBOOK:
                return self.create_notebook(name, parent_id=self.selected_notebook_id)
            return self.create_tag(name)

    def _remove_mirror_files(self, note_ids: Iterable[str]) -> None:
        if self.file_sync is None:
            return
        for note_id in note_ids:
            try:
                self.file_sync.remove_note(note_id)
            except Exception as e:
                logger.warning(f"Could not remove mirror file for {note_id}: {e}")

    # ------------------------------------------------------------------
    # Drafts
    # ------------------------------------------------------------------

    def edit_title(self, text: str) -> None:
        self._edit(title=text)

    def edit_content(self, text: str) -> None:
        self._edit(content=text)

    def _edit(self, title: Optional[str] = None, content: Optional[str] = None) -> None:
        with self._lock:
            note_id = self.primary_note_id
            if note_id is None:
                raise ValidationError("No note is open for editing", field="primary_note_id")
            draft = self.drafts.setdefault(note_id, Draft(note_id=note_id))
            if title is not None:
                draft.title = title
            if content is not None:
                draft.content = content
            self._debouncer.schedule(note_id, lambda: self._on_debounce(note_id))

    def _on_debounce(self, note_id: str) -> None:
        # Runs on a timer thread; nothing to propagate to
        try:
            self.commit_draft(note_id)
        except Exception as e:
            logger.error(f"Failed to save draft for note {note_id}: {e}")

    def commit_draft(self, note_id: str) -> Optional[Note]:
        """Write the fields of a draft that differ from the stored note.

        An emptied title is not written; the rest of the draft still is.

        Returns:
            The updated note, or None when nothing needed writing.
        """
        with self._lock:
            self._debouncer.cancel(note_id)
            draft = self.drafts.pop(note_id, None)
            note = self.get_note(note_id)
            if draft is None or note is None:
                return None
            changes = {}
            if draft.title is not None and draft.title != note.title:
                if draft.title.strip():
                    changes["title"] = draft.title
                else:
                    logger.warning(f"Not saving empty title for note {note_id}")
            if draft.content is not None and draft.content != note.content:
                changes["content"] = draft.content
            if not changes:
                return None
            try:
                return self.update_note(note_id, **changes)
            except TextocError:
                self.drafts.setdefault(note_id, draft)
                raise

    def flush_drafts(self) -> None:
        """Commit every pending draft now."""
        with self._lock:
            for note_id in list(self.drafts):
                self.commit_draft(note_id)

    def _settle_draft(self, note_id: str) -> None:
        self._debouncer.cancel(note_id)
        if self.flush_on_switch:
            self.commit_draft(note_id)
        else:
            self.drafts.pop(note_id, None)
            logger.debug(f"Discarded draft for note {note_id}")

    def _discard_drafts(self, note_ids: Iterable[str]) -> None:
        for note_id in note_ids:
            self._debouncer.cancel(note_id)
            self.drafts.pop(note_id, None)

    def has_pending_draft(self, note_id: str) -> bool:
        return self._debouncer.is_pending(note_id)

    def current_title(self) -> Optional[str]:
        note = self.primary_note
        if note is None:
            return None
        draft = self.drafts.get(note.id)
        return draft.title if draft and draft.title is not None else note.title

    def current_content(self) -> Optional[str]:
        note = self.primary_note
        if note is None:
            return None
        draft = self.drafts.get(note.id)
        return draft.content if draft and draft.content is not None else note.content

    def close(self) -> None:
        """Settle every draft per the switch policy and stop all timers."""
        with self._lock:
            try:
                for note_id in list(self.drafts):
                    try:
                        self._settle_draft(note_id)
                    except TextocError as e:
                        logger.error(f"Could not save draft for note {note_id} on close: {e}")
            finally:
                self._debouncer.cancel_all()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def dispatch(self, event: Union[CommandEvent, Command]) -> None:
        """Apply a keyboard command to the workspace."""
        if isinstance(event, Command):
            event = CommandEvent(event)
        command = event.command
        with self._lock:
            if command == Command.NEW_NOTE:
                self.create_request = CreateRequest.NOTE
            elif command == Command.NEW_NOTEBOOK:
                self.create_request = CreateRequest.NOTEBOOK
                self.focus = FocusRegion.NOTEBOOKS
            elif command == Command.NEW_SUB_NOTEBOOK:
                if self.selected_notebook_id is not None:
                    self.create_request = CreateRequest.SUB_NOTEBOOK
                    self.focus = FocusRegion.NOTEBOOKS
            elif command == Command.NEW_TAG:
                self.create_request = CreateRequest.TAG
                self.focus = FocusRegion.TAGS
            elif command == Command.RENAME:
                self._begin_rename()
            elif command == Command.DELETE_SELECTED:
                self._delete_focused()
            elif command in (Command.NAVIGATE_UP, Command.NAVIGATE_DOWN):
                self._navigate(command == Command.NAVIGATE_DOWN, event.extend)
            elif command == Command.FOCUS_NEXT:
                self.cycle_focus()
            elif command == Command.FOCUS_PREVIOUS:
                self.cycle_focus(reverse=True)
            elif command == Command.SELECT_RANGE:
                self.select_note(event.target_id, extend=True)
            elif command == Command.TOGGLE_SELECTION:
                self.select_note(event.target_id, toggle=True)
            elif command == Command.QUICK_OPEN:
                self.quick_open = True
            elif command == Command.CLOSE_NOTE:
                self.clear_note_selection()
            elif command == Command.OPEN_EDITOR:
                if event.target_id is not None:
                    self.select_note(event.target_id)
                if self.primary_note_id is not None:
                    self.focus = FocusRegion.EDITOR
            elif command == Command.CANCEL:
                if self.quick_open:
                    self.quick_open = False
                elif self.rename_target is not None:
                    self.cancel_rename()
                else:
                    self.create_request = None

    def _begin_rename(self) -> None:
        if self.focus == FocusRegion.NOTES and self.primary_note_id:
            self.rename_target = ("note", self.primary_note_id)
        elif self.focus == FocusRegion.NOTEBOOKS and self.selected_notebook_id:
            self.rename_target = ("notebook", self.selected_notebook_id)
        elif self.focus == FocusRegion.TAGS and self.selected_tag_id:
            self.rename_target = ("tag", self.selected_tag_id)

    def commit_rename(self, name: str) -> None:
        """Apply the rename started by RENAME. The target stays set on failure."""
        with self._lock:
            if self.rename_target is None:
                return
            kind, entity_id = self.rename_target
            if kind == "note":
                self.update_note(entity_id, title=name)
            elif kind == "notebook":
                self.rename_notebook(entity_id, name)
            else:
                self.rename_tag(entity_id, name)
            self.rename_target = None

    def cancel_rename(self) -> None:
        self.rename_target = None

    def _delete_focused(self) -> None:
        if self.focus == FocusRegion.NOTES:
            ids = self.selected_note_ids or (
                [self.primary_note_id] if self.primary_note_id else []
            )
            if ids:
                self.delete_notes(ids)
        elif self.focus == FocusRegion.NOTEBOOKS and self.selected_notebook_id:
            self.delete_notebook(self.selected_notebook_id)
        elif self.focus == FocusRegion.TAGS and self.selected_tag_id:
            self.delete_tag(self.selected_tag_id)

    def _navigate(self, down: bool, extend: bool) -> None:
        if self.focus == FocusRegion.NOTES:
            visible = [n.id for n in self.filtered_notes()]
            if not visible:
                return
            current = self._cursor_id if self._cursor_id in visible else self.primary_note_id
            index = visible.index(current) if current in visible else -1
            if down:
                target = 0 if index == -1 else min(index + 1, len(visible) - 1)
            else:
                target = 0 if index <= 0 else index - 1
            self.select_note(visible[target], extend=extend)
        elif self.focus in (FocusRegion.NOTEBOOKS, FocusRegion.TAGS):
            items = [("notebook", nb.id) for nb, _ in self.forest.flatten()]
            items += [("tag", t.id) for t in self.tags]
            if not items:
                return
            current = self.selected_notebook_id or self.selected_tag_id
            ids = [item_id for _, item_id in items]
            index = ids.index(current) if current in ids else -1
            if down:
                target = (index + 1) % len(items)
            else:
                target = (index - 1) % len(items) if index >= 0 else len(items) - 1
            kind, item_id = items[target]
            if kind == "notebook":
                self.select_notebook(item_id)
            else:
                self.select_tag(item_id)

    # ------------------------------------------------------------------
    # Quick switch
    # ------------------------------------------------------------------

    def quick_switch_results(self, query: str) -> List[Note]:
        """Up to ten notes matching ``query``, searched across all notebooks."""
        matches = [n for n in self.notes if n.matches(query or "")]
        return matches[:QUICK_SWITCH_LIMIT]

    def choose_quick_switch(self, note_id: str) -> None:
        """Open a note from the quick switcher, revealing it if filtered out."""
        with self._lock:
            note = self._require_note(note_id)
            if note_id not in {n.id for n in self.filtered_notes()}:
                self.search_query = ""
                self.selected_tag_id = None
                self.selected_notebook_id = note.notebook_id
            self.select_note(note_id)
            self.focus = FocusRegion.EDITOR
            self.quick_open = False
