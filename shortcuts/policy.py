"""
shortcuts/policy.py

Keyboard shortcut policy: maps a key event context to a semantic action.

Key names follow the DOM ``KeyboardEvent.key`` convention ("Tab",
"Enter", " " for the space bar); the Qt main window translates its key
codes into these names before asking.
"""

from __future__ import annotations

from typing import Dict, Optional

from models import ShortcutAction

KEY_ACTIONS: Dict[str, str] = {
    "Tab": ShortcutAction.ADD_CHILD,
    "Enter": ShortcutAction.ADD_SIBLING,
    "Delete": ShortcutAction.DELETE_NODE,
    "Backspace": ShortcutAction.DELETE_NODE,
    " ": ShortcutAction.TOGGLE_COLLAPSE,
    "Escape": ShortcutAction.DESELECT,
    "F2": ShortcutAction.START_EDIT,
}


def resolve_action(
    key: str,
    has_selection: bool,
    is_editing: bool,
    has_modifier: bool,
    is_editable_target: bool,
) -> Optional[str]:
    """Return the ``ShortcutAction`` for *key*, or ``None`` to let it through.

    Shortcuts only apply to a selected node on the canvas: while a text
    editor is active, with any modifier held, or when focus is in an
    editable widget, every key belongs to the user.
    """
    if is_editing or has_modifier or is_editable_target or not has_selection:
        return None
    return KEY_ACTIONS.get(key)
