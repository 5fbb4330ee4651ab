"""
tree/store.py

Single source of truth for the mind map forest.

All semantic mutations go through ``TreeStore``.  Scene elements are
derived from its state, never the other way around; the reconciler only
calls the public operations below.

Lifecycle of the process-wide instance: ``get_store()`` creates it lazily
on first use with the configured history limit, ``reset_store()`` drops it
(tests and the main window use this to start from an empty map).  Code
that wants an isolated forest constructs its own ``TreeStore``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from debug_trace import trace
from models import (
    DEFAULT_ROOT_LABEL,
    ForestState,
    Node,
    NodeKind,
    NodeMetadata,
    NodeNotFoundError,
    Position,
)
from settings import get_settings
from tree.history import History
from tree.subtree import collect_subtree

log = logging.getLogger(__name__)

StateListener = Callable[[ForestState], None]

# Global store instance (singleton)
_store: Optional["TreeStore"] = None


def get_store() -> "TreeStore":
    """Get the process-wide store, creating it on first use."""
    global _store
    if _store is None:
        _store = TreeStore()
    return _store


def reset_store() -> None:
    """Discard the process-wide store; the next ``get_store()`` starts empty."""
    global _store
    _store = None


class TreeStore:
    """Explicit state container for the forest.

    Exposes ``get_state`` / ``set_state`` / ``subscribe`` plus the semantic
    operations.  Every operation reads the current state, builds a new one
    and swaps it in whole; an operation that would change nothing is a
    no-op and records no history.

    Args:
        history_limit: Undo depth.  Defaults to ``[history] limit``.
        clock: Returns the current time in seconds (for node metadata).
    """

    def __init__(self, history_limit: Optional[int] = None,
                 clock: Callable[[], float] = time.time):
        if history_limit is None:
            history_limit = get_settings().settings.history.limit
        self._state = ForestState()
        self._history = History(history_limit)
        self._listeners: List[StateListener] = []
        self._clock = clock
        self._id_counter = 1

    # ---- container API ----

    def get_state(self) -> ForestState:
        return self._state

    @property
    def state(self) -> ForestState:
        return self._state

    def set_state(self, state: ForestState) -> None:
        """Replace the state wholesale without touching history."""
        self._state = state
        self._notify()

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register *listener*; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._state)

    def _commit(self, new_state: ForestState, reason: str) -> None:
        self._history.record(self._state)
        self._state = new_state
        trace(f"{reason} (history={len(self._history)})", "STORE")
        self._notify()

    def _new_node(self, label: str, parent_id: Optional[str]) -> Node:
        state = self._state
        while True:
            node_id = f"n{self._id_counter:06d}"
            self._id_counter += 1
            if node_id not in state.nodes and node_id not in state.deleted_nodes:
                break
        now = self._clock()
        return Node(
            id=node_id,
            label=label,
            parent_id=parent_id,
            metadata=NodeMetadata(created_at=now, updated_at=now),
        )

    def _touch(self, node: Node, **changes) -> Node:
        return replace(node, metadata=replace(node.metadata, updated_at=self._clock()), **changes)

    # ---- history ----

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    def undo(self) -> None:
        previous = self._history.undo(self._state)
        if previous is None:
            return
        self._state = previous
        trace("undo", "STORE")
        self._notify()

    def redo(self) -> None:
        nxt = self._history.redo(self._state)
        if nxt is None:
            return
        self._state = nxt
        trace("redo", "STORE")
        self._notify()

    def clear_history(self) -> None:
        self._history.clear()

    # ---- creation ----

    def create_root(self, label: str = DEFAULT_ROOT_LABEL) -> str:
        """Append a new root to the forest and select it."""
        state = self._state
        root = self._new_node(label, None)
        nodes = dict(state.nodes)
        nodes[root.id] = root
        self._commit(
            replace(state, root_ids=state.root_ids + (root.id,), nodes=nodes, selected_node_id=root.id),
            f"create_root {root.id}",
        )
        return root.id

    def ensure_root(self, label: Optional[str] = None) -> Optional[str]:
        """Create a root only if the forest has no live nodes."""
        if self._state.nodes:
            return None
        if label is None:
            label = get_settings().settings.root_label
        return self.create_root(label)

    def add_child(self, parent_id: str, label: str = "") -> str:
        """Append a new child under *parent_id*, expand the parent, select the child.

        Raises:
            NodeNotFoundError: If *parent_id* is not a live node.
        """
        state = self._state
        parent = state.nodes.get(parent_id)
        if parent is None:
            raise NodeNotFoundError(parent_id)

        child = self._new_node(label, parent_id)
        nodes = dict(state.nodes)
        nodes[parent_id] = replace(parent, children_ids=parent.children_ids + (child.id,), collapsed=False)
        nodes[child.id] = child
        self._commit(replace(state, nodes=nodes, selected_node_id=child.id), f"add_child {child.id} -> {parent_id}")
        return child.id

    def add_sibling(self, sibling_id: str, label: str = "") -> str:
        """Insert a new node right after *sibling_id* under the same parent.

        Roots have no parent to attach a sibling under, so for a root (or an
        unknown id) *sibling_id* is returned unchanged.
        """
        state = self._state
        sibling = state.nodes.get(sibling_id)
        if sibling is None or sibling.parent_id is None:
            return sibling_id
        parent = state.nodes.get(sibling.parent_id)
        if parent is None:
            return sibling_id

        new_node = self._new_node(label, parent.id)
        children = list(parent.children_ids)
        if sibling_id in children:
            children.insert(children.index(sibling_id) + 1, new_node.id)
        else:
            children.append(new_node.id)

        nodes = dict(state.nodes)
        nodes[parent.id] = replace(parent, children_ids=tuple(children))
        nodes[new_node.id] = new_node
        self._commit(replace(state, nodes=nodes, selected_node_id=new_node.id),
                     f"add_sibling {new_node.id} after {sibling_id}")
        return new_node.id

    # ---- edits ----

    def update_label(self, node_id: str, label: str) -> None:
        state = self._state
        node = state.nodes.get(node_id)
        if node is None or node.label == label:
            return
        nodes = dict(state.nodes)
        nodes[node_id] = self._touch(node, label=label)
        self._commit(replace(state, nodes=nodes), f"update_label {node_id} {label!r}")

    def toggle_collapse(self, node_id: str) -> None:
        state = self._state
        node = state.nodes.get(node_id)
        if node is None or not node.children_ids:
            return
        nodes = dict(state.nodes)
        nodes[node_id] = replace(node, collapsed=not node.collapsed)
        self._commit(replace(state, nodes=nodes), f"toggle_collapse {node_id}")

    def set_node_kind(self, node_id: str, kind: str) -> None:
        if kind not in NodeKind.ALL:
            log.warning("ignoring unknown node kind %r for %s", kind, node_id)
            return
        state = self._state
        node = state.nodes.get(node_id)
        if node is None or node.kind == kind:
            return
        nodes = dict(state.nodes)
        nodes[node_id] = replace(node, kind=kind)
        self._commit(replace(state, nodes=nodes), f"set_node_kind {node_id} {kind}")

    def set_node_position(self, node_id: str, position: Position) -> None:
        """Persist a manual position override (e.g. after a drag in the scene)."""
        state = self._state
        node = state.nodes.get(node_id)
        if node is None:
            return
        position = Position(position.x, position.y)
        if node.position == position:
            return
        nodes = dict(state.nodes)
        nodes[node_id] = self._touch(node, position=position)
        self._commit(replace(state, nodes=nodes), f"set_node_position {node_id} ({position.x}, {position.y})")

    # ---- view state (no history) ----

    def select_node(self, node_id: Optional[str]) -> None:
        if self._state.selected_node_id == node_id:
            return
        self._state = replace(self._state, selected_node_id=node_id)
        self._notify()

    def set_focus_branch(self, node_id: Optional[str]) -> None:
        state = self._state
        if node_id is not None and node_id not in state.nodes:
            return
        if state.focus_branch_id == node_id:
            return
        self._state = replace(state, focus_branch_id=node_id)
        self._notify()

    # ---- soft delete ----

    def delete_node(self, node_id: str) -> None:
        """Soft-delete a node and its whole subtree."""
        state = self._state
        node = state.nodes.get(node_id)
        if node is None:
            return

        subtree_ids = collect_subtree(node_id, state.nodes)
        nodes: Dict[str, Node] = dict(state.nodes)
        deleted: Dict[str, Node] = dict(state.deleted_nodes)

        parent = nodes.get(node.parent_id) if node.parent_id is not None else None
        if parent is not None:
            nodes[parent.id] = replace(
                parent, children_ids=tuple(cid for cid in parent.children_ids if cid != node_id)
            )

        for sid in subtree_ids:
            moved = nodes.pop(sid, None)
            if moved is not None:
                deleted[sid] = moved

        root_ids = state.root_ids
        if node.parent_id is None:
            root_ids = tuple(rid for rid in root_ids if rid != node_id)

        selected = state.selected_node_id
        if selected is not None and selected in subtree_ids:
            if parent is not None:
                selected = parent.id
            else:
                remaining = [rid for rid in root_ids if rid in nodes]
                selected = remaining[-1] if remaining else None

        self._commit(
            replace(state, root_ids=root_ids, nodes=nodes, deleted_nodes=deleted, selected_node_id=selected),
            f"delete_node {node_id} ({len(subtree_ids)} nodes)",
        )

    def restore_node(self, node_id: str) -> None:
        """Bring a soft-deleted subtree back and re-attach it."""
        state = self._state
        node = state.deleted_nodes.get(node_id)
        if node is None:
            return

        subtree_ids = collect_subtree(node_id, state.deleted_nodes)
        nodes: Dict[str, Node] = dict(state.nodes)
        deleted: Dict[str, Node] = dict(state.deleted_nodes)
        for sid in subtree_ids:
            nodes[sid] = deleted.pop(sid)

        if node.parent_id is not None:
            parent = nodes.get(node.parent_id)
            if parent is not None and node_id not in parent.children_ids:
                nodes[parent.id] = replace(parent, children_ids=parent.children_ids + (node_id,))

        root_ids = state.root_ids
        if node.parent_id is None and node_id not in root_ids:
            root_ids = root_ids + (node_id,)

        self._commit(
            replace(state, root_ids=root_ids, nodes=nodes, deleted_nodes=deleted),
            f"restore_node {node_id} ({len(subtree_ids)} nodes)",
        )
