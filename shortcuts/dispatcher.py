"""
shortcuts/dispatcher.py

Routes key events through the shortcut policy into store operations.
"""

from __future__ import annotations

from typing import Optional

from debug_trace import trace
from models import ShortcutAction
from shortcuts.policy import resolve_action
from tree.store import TreeStore


class ShortcutDispatcher:
    """
    Performs shortcut actions on a store.

    Args:
        store: The tree store to mutate.
        reconciler: Optional ``SceneReconciler``; supplies the editing flag
            and opens label editors.  Without one, nothing is ever
            considered "editing" and edit requests are dropped.
    """

    def __init__(self, store: TreeStore, reconciler=None):
        self._store = store
        self._reconciler = reconciler

    @property
    def is_editing(self) -> bool:
        return self._reconciler is not None and self._reconciler.is_editing

    def selected_node_id(self) -> Optional[str]:
        state = self._store.get_state()
        selected = state.selected_node_id
        if selected is None or selected not in state.nodes:
            return None
        return selected

    def handle_key(self, key: str, has_modifier: bool = False, is_editable_target: bool = False) -> bool:
        """Handle one key press.

        Returns:
            True if the key mapped to an action (the caller should stop
            default processing), False otherwise.
        """
        selected = self.selected_node_id()
        action = resolve_action(
            key,
            has_selection=selected is not None,
            is_editing=self.is_editing,
            has_modifier=has_modifier,
            is_editable_target=is_editable_target,
        )
        if action is None:
            return False

        trace(f"key {key!r} -> {action} on {selected}", "KEY")
        self.perform(action, selected)
        return True

    def perform(self, action: str, node_id: str) -> None:
        """Apply *action* to *node_id*."""
        store = self._store
        if action == ShortcutAction.ADD_CHILD:
            self._edit_later(store.add_child(node_id))
        elif action == ShortcutAction.ADD_SIBLING:
            new_id = store.add_sibling(node_id)
            if new_id != node_id:
                self._edit_later(new_id)
        elif action == ShortcutAction.DELETE_NODE:
            store.delete_node(node_id)
        elif action == ShortcutAction.TOGGLE_COLLAPSE:
            store.toggle_collapse(node_id)
        elif action == ShortcutAction.DESELECT:
            store.select_node(None)
        elif action == ShortcutAction.START_EDIT:
            if self._reconciler is not None:
                self._reconciler.start_edit(node_id, frames=0)
        else:
            raise ValueError(f"unknown shortcut action: {action!r}")

    def _edit_later(self, node_id: str) -> None:
        # The new node's label element exists only after the next push.
        if self._reconciler is not None:
            self._reconciler.start_edit(node_id)
