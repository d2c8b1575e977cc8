"""Keyboard command surface.

Raw key presses are translated into ``CommandEvent`` values here; the
workspace applies them. Keeping the key table separate lets the same
workspace be driven by any front end, or directly by tests.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from textoc.models.schema import FocusRegion

_LIST_REGIONS = (FocusRegion.NOTEBOOKS, FocusRegion.TAGS, FocusRegion.NOTES)


class Command(str, Enum):
    NEW_NOTE = "new_note"
    NEW_NOTEBOOK = "new_notebook"
    NEW_SUB_NOTEBOOK = "new_sub_notebook"
    NEW_TAG = "new_tag"
    DELETE_SELECTED = "delete_selected"
    RENAME = "rename"
    NAVIGATE_UP = "navigate_up"
    NAVIGATE_DOWN = "navigate_down"
    FOCUS_NEXT = "focus_next"
    FOCUS_PREVIOUS = "focus_previous"
    SELECT_RANGE = "select_range"
    TOGGLE_SELECTION = "toggle_selection"
    QUICK_OPEN = "quick_open"
    CLOSE_NOTE = "close_note"
    OPEN_EDITOR = "open_editor"
    CANCEL = "cancel"


@dataclass(frozen=True)
class CommandEvent:
    """A command plus the modifiers that qualify it.

    ``extend`` marks a shift-held navigation (range select).
    ``target_id`` names the clicked note for the selection commands.
    """

    command: Command
    extend: bool = False
    target_id: Optional[str] = None


@dataclass(frozen=True)
class KeyEvent:
    """One key press. ``meta`` is treated the same as ``ctrl``."""

    key: str
    ctrl: bool = False
    shift: bool = False
    alt: bool = False
    meta: bool = False

    @classmethod
    def parse(cls, combo: str) -> "KeyEvent":
        """Build an event from text such as ``"ctrl+shift+n"`` or ``"F2"``."""
        parts = combo.split("+")
        key = parts[-1]
        modifiers = {p.lower() for p in parts[:-1]}
        return cls(
            key=key,
            ctrl="ctrl" in modifiers,
            shift="shift" in modifiers,
            alt="alt" in modifiers,
            meta="meta" in modifiers or "cmd" in modifiers,
        )

    @property
    def command_modifier(self) -> bool:
        return self.ctrl or self.meta


class InputRouter:
    """Maps key presses to commands for the focused region.

    Args:
        vim_mode: Also accept ``j``/``k`` for down/up in list regions.
    """

    def __init__(self, vim_mode: bool = False):
        self.vim_mode = vim_mode

    def route(self, event: KeyEvent, focus: FocusRegion) -> Optional[CommandEvent]:
        """Return the command for ``event``, or None when the key is unbound.

        In the editor only the global shortcuts apply so ordinary typing
        passes through.
        """
        key = event.key
        lower = key.lower()

        if event.command_modifier and not event.alt:
            if lower == "n":
                if event.shift:
                    if focus == FocusRegion.NOTEBOOKS:
                        return CommandEvent(Command.NEW_SUB_NOTEBOOK)
                    return None
                if focus == FocusRegion.NOTEBOOKS:
                    return CommandEvent(Command.NEW_NOTEBOOK)
                if focus == FocusRegion.TAGS:
                    return CommandEvent(Command.NEW_TAG)
                return CommandEvent(Command.NEW_NOTE)
            if lower == "p":
                return CommandEvent(Command.QUICK_OPEN)
            if lower == "w":
                return CommandEvent(Command.CLOSE_NOTE)
            return None

        if key == "Tab":
            return CommandEvent(Command.FOCUS_PREVIOUS if event.shift else Command.FOCUS_NEXT)
        if key == "Escape":
            return CommandEvent(Command.CANCEL)

        if focus not in _LIST_REGIONS:
            return None

        if key == "F2":
            return CommandEvent(Command.RENAME)
        if key == "Delete":
            return CommandEvent(Command.DELETE_SELECTED)
        if key == "ArrowDown" or (self.vim_mode and key == "j"):
            return CommandEvent(Command.NAVIGATE_DOWN, extend=event.shift)
        if key == "ArrowUp" or (self.vim_mode and key == "k"):
            return CommandEvent(Command.NAVIGATE_UP, extend=event.shift)
        if key == "Enter" and focus == FocusRegion.NOTES:
            return CommandEvent(Command.OPEN_EDITOR)
        if lower == "a":
            sub = event.shift or key == "A"
            if focus == FocusRegion.NOTES:
                return CommandEvent(Command.NEW_NOTE)
            if focus == FocusRegion.TAGS:
                return CommandEvent(Command.NEW_TAG)
            return CommandEvent(Command.NEW_SUB_NOTEBOOK if sub else Command.NEW_NOTEBOOK)
        return None

    @staticmethod
    def route_click(
        note_id: str, ctrl: bool = False, shift: bool = False
    ) -> Optional[CommandEvent]:
        """Modified note-list click: shift extends, ctrl toggles.

        Plain clicks return None; they map straight to ``select_note``.
        """
        if shift:
            return CommandEvent(Command.SELECT_RANGE, target_id=note_id)
        if ctrl:
            return CommandEvent(Command.TOGGLE_SELECTION, target_id=note_id)
        return None
