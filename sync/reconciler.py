"""
sync/reconciler.py

Bidirectional synchronization between the tree store and a scene host.

Forward path (store -> scene): layout, projection, merge with the host's
freeform content, one replacement write.  Backward path (scene -> store):
every host notification is diffed and classified, and changes to managed
elements (deletion, selection, label text, position) become store
operations.

Echo suppression: ``_suppressed`` is set right before each programmatic
write and released by a callback scheduled one frame after the write, so
the host's own notification for that write is recorded but not
interpreted.  Store changes reach the forward path through a coalesced
push scheduled on the next frame; a backward-triggered mutation therefore
always completes before the push it causes.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Callable, Iterable, List, Optional, Set

from debug_trace import trace
from engine.layout import PositionMap, compute_layout
from engine.projector import fingerprint, project
from models import ElementRole, ForestState, Position, label_element_id, shape_element_id
from scene.elements import AppState, ElementType, SceneElement, build_scene_elements, index_by_id
from settings import AppSettings, get_settings
from sync.classify import (
    collapse_to_topmost,
    element_tag,
    has_managed_element_id,
    is_unmanaged_element,
    managed_ids,
    normalize_label_text,
    resolve_label_node_id,
    resolve_managed_shape_node_id,
    resolve_selected_managed_node_id,
)
from sync.scheduler import QtFrameScheduler
from tree.store import TreeStore


class SceneReconciler:
    """
    Keeps one scene host in sync with one tree store.

    Args:
        store: The tree store (single writer of semantic state).
        host: A scene host (see ``scene.host.SceneHostMixin``).
        scheduler: Object with ``schedule(callback, frames)``; defaults to
            the Qt event loop.
        settings: Application settings; defaults to the global settings.
    """

    def __init__(self, store: TreeStore, host, scheduler=None,
                 settings: Optional[AppSettings] = None):
        self._store = store
        self._host = host
        self._scheduler = scheduler if scheduler is not None else QtFrameScheduler()
        self._settings = settings if settings is not None else get_settings().settings

        self._suppressed = False
        self._release_generation = 0
        self._push_pending = False
        self._last_fingerprint: Optional[str] = None
        self._mounted = False

        self._previous_elements: List[SceneElement] = []
        self._app_state = AppState()
        self._positions: PositionMap = {}
        # Every id the projector has ever emitted
        self._remembered_ids: Set[str] = set()

        self._unsubscribe_store: Optional[Callable[[], None]] = None
        self._remove_host_listener: Optional[Callable[[], None]] = None

    # ---- lifecycle ----

    @property
    def attached(self) -> bool:
        return self._unsubscribe_store is not None

    def attach(self) -> None:
        """Subscribe to store and host, then push the initial scene."""
        if self.attached:
            return
        self._unsubscribe_store = self._store.subscribe(self._on_store_changed)
        self._remove_host_listener = self._host.add_change_listener(self.handle_change)
        self._previous_elements = self._host.get_scene_elements()
        self._app_state = self._host.get_app_state()
        self.push(force=True)

    def detach(self) -> None:
        """Unsubscribe from store and host; pending pushes and releases are dropped."""
        self._push_pending = False
        self._release_generation += 1
        self._suppressed = False
        if self._unsubscribe_store is not None:
            self._unsubscribe_store()
            self._unsubscribe_store = None
        if self._remove_host_listener is not None:
            self._remove_host_listener()
            self._remove_host_listener = None

    # ---- observable state ----

    @property
    def suppressed(self) -> bool:
        return self._suppressed

    @property
    def push_pending(self) -> bool:
        return self._push_pending

    @property
    def is_editing(self) -> bool:
        return self._app_state.editing_text_element_id is not None

    @property
    def positions(self) -> PositionMap:
        return dict(self._positions)

    # ---- forward path ----

    def _on_store_changed(self, state: ForestState) -> None:
        if self._push_pending:
            return
        self._push_pending = True
        self._scheduler.schedule(self._flush_push, 1)

    def _flush_push(self) -> None:
        if not self._push_pending or not self.attached:
            trace("scheduled push dropped", "PUSH")
            return
        self._push_pending = False
        self.push()

    def push(self, force: bool = False) -> bool:
        """Project the store and write it to the host.

        Skipped when neither the projected elements nor the target
        selection changed since the last write, unless *force* is set.

        Returns:
            True if a write was issued.
        """
        state = self._store.get_state()
        positions = compute_layout(state.root_ids, state.nodes, self._settings.layout)
        descriptors = project(state.root_ids, state.nodes, positions, self._settings)
        self._positions = positions

        target = self._target_selection(state, {d.id for d in descriptors})
        fp = fingerprint(descriptors, extra=list(target))
        if not force and fp == self._last_fingerprint:
            trace("push skipped (fingerprint unchanged)", "PUSH")
            return False

        projected = build_scene_elements(descriptors)
        projected_ids = {el.id for el in projected}
        self._remembered_ids.update(projected_ids)

        current = self._host.get_scene_elements()
        managed = managed_ids(current) | projected_ids
        unmanaged = [
            el for el in current
            if not el.is_deleted and is_unmanaged_element(el, managed, self._remembered_ids)
        ]
        merged = projected + unmanaged

        app_state = self._selection_update(target, managed)

        self._last_fingerprint = fp
        trace(f"push {len(projected)} managed + {len(unmanaged)} unmanaged elements", "PUSH")
        self._suppressed = True
        self._previous_elements = [el.copy() for el in merged]
        self._host.update_scene(merged, app_state, suppress_history=True)
        self._schedule_release()

        if not self._mounted:
            self._mounted = True
            self._scheduler.schedule(lambda: self._fit(projected), 1)
        return True

    def _fit(self, elements: List[SceneElement]) -> None:
        if self.attached:
            self._host.scroll_to_content(elements, fit=True)

    @staticmethod
    def _target_selection(state: ForestState, projected_ids) -> tuple:
        selected = state.selected_node_id
        if selected is None:
            return ()
        shape_id = shape_element_id(selected)
        return (shape_id,) if shape_id in projected_ids else ()

    def _selection_update(self, target: tuple, managed: Set[str]) -> Optional[AppState]:
        """Host app state to write, or ``None`` if the selection already matches."""
        host_state = self._host.get_app_state()
        current = tuple(host_state.selected_element_ids)
        if target:
            wanted = target
        else:
            # Nothing managed to select: keep whatever freeform content is selected.
            wanted = tuple(
                i for i in current
                if i not in managed and i not in self._remembered_ids and not has_managed_element_id(i)
            )
        if wanted == current:
            return None
        return replace(host_state, selected_element_ids=wanted)

    def _schedule_release(self) -> None:
        self._release_generation += 1
        generation = self._release_generation
        self._scheduler.schedule(lambda: self._release(generation), 1)

    def _release(self, generation: int) -> None:
        # A newer write re-armed suppression; its own release will clear it.
        if generation == self._release_generation:
            self._suppressed = False

    # ---- backward path ----

    def handle_change(self, elements: Iterable[SceneElement], app_state: AppState) -> None:
        """Interpret one host change notification."""
        elements = list(elements)
        self._app_state = app_state

        if self._suppressed:
            trace(f"echo ignored ({len(elements)} elements)", "ECHO")
            self._previous_elements = elements
            return

        previous = self._previous_elements
        self._previous_elements = elements
        by_id = index_by_id(elements)

        if self._mirror_deletions(previous, by_id):
            return

        if self._push_pending:
            # The store is ahead of the scene; its push will overwrite these values.
            trace("scene stale, waiting for pending push", "SYNC")
            return

        if app_state.editing_text_element_id is None:
            self._sync_selection(app_state, by_id)
            self._sync_labels(elements, by_id)
        self._sync_positions(elements)

    def _mirror_deletions(self, previous: List[SceneElement], by_id) -> bool:
        nodes = self._store.get_state().nodes
        removed: List[str] = []
        for prev in previous:
            if prev.is_deleted:
                continue
            # A shape that lost its tag is still recognized by its id
            node_id = resolve_managed_shape_node_id(prev)
            if node_id is None or node_id not in nodes:
                continue
            current = by_id.get(prev.id)
            if current is None or current.is_deleted:
                removed.append(node_id)

        if not removed:
            return False

        applied = 0
        for node_id in collapse_to_topmost(removed, nodes):
            if node_id in self._store.get_state().nodes:
                trace(f"host removed shape of {node_id}; deleting subtree", "SYNC")
                self._store.delete_node(node_id)
                applied += 1
        return applied > 0

    def _sync_selection(self, app_state: AppState, by_id) -> None:
        state = self._store.get_state()
        node_id = None
        if app_state.selected_element_ids:
            node_id = resolve_selected_managed_node_id(app_state.selected_element_ids, by_id)

        if node_id is None:
            if state.selected_node_id is not None:
                trace("host selection has no managed node; clearing", "SYNC")
                self._store.select_node(None)
            return

        if node_id in state.nodes and node_id != state.selected_node_id:
            trace(f"host selected {node_id}", "SYNC")
            self._store.select_node(node_id)

    def _sync_labels(self, elements: List[SceneElement], by_id) -> None:
        for el in elements:
            if el.type != ElementType.TEXT or el.is_deleted:
                continue
            node_id = resolve_label_node_id(el, by_id)
            if node_id is None:
                continue
            node = self._store.get_state().nodes.get(node_id)
            if node is None:
                continue
            text = normalize_label_text(el.text)
            if text != node.label:
                trace(f"label of {node_id} edited in scene: {text!r}", "SYNC")
                self._store.update_label(node_id, text)

    def _sync_positions(self, elements: List[SceneElement]) -> None:
        epsilon = self._settings.sync.position_epsilon
        for el in elements:
            if el.is_deleted:
                continue
            tag = element_tag(el)
            if tag is None or tag.role != ElementRole.SHAPE:
                continue
            node = self._store.get_state().nodes.get(tag.owner_node_id)
            if node is None:
                continue
            stored = node.position or self._positions.get(node.id)
            if stored is None:
                continue
            if abs(el.x - stored.x) > epsilon or abs(el.y - stored.y) > epsilon:
                trace(f"{node.id} moved in scene to ({el.x:.1f}, {el.y:.1f})", "SYNC")
                self._store.set_node_position(node.id, Position(el.x, el.y))

    # ---- text editing ----

    def start_edit(self, node_id: str, frames: Optional[int] = None) -> None:
        """Open the label editor for *node_id*, *frames* frames from now.

        A freshly created node's shape only exists in the scene after the
        next push has been applied, hence the default two-frame delay.
        """
        if frames is None:
            frames = self._settings.sync.edit_start_frames
        if frames <= 0:
            self._begin_edit(node_id)
        else:
            self._scheduler.schedule(lambda: self._begin_edit(node_id), frames)

    def _begin_edit(self, node_id: str) -> None:
        if not self.attached or node_id not in self._store.get_state().nodes:
            return
        element_id = label_element_id(node_id)
        if not any(el.id == element_id for el in self._host.get_scene_elements()):
            return
        trace(f"begin text edit on {element_id}", "SYNC")
        self._host.begin_text_edit(element_id)
