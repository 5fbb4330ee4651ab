"""
scene/memory_host.py

Headless scene host.

Keeps the scene as an element list, applies programmatic writes and
reports them asynchronously (one frame later, through a scheduler) the
way a rendering surface does.  The ``user_*`` methods apply edits as if a
person made them on the canvas and notify immediately.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Optional, Sequence, Tuple

from scene.elements import AppState, ElementType, SceneElement
from scene.host import SceneHostMixin


class MemorySceneHost(SceneHostMixin):
    """
    In-memory scene host.

    Args:
        scheduler: Object with ``schedule(callback, frames)``.  When omitted,
            programmatic writes notify synchronously.
    """

    def __init__(self, scheduler=None, elements: Iterable[SceneElement] = ()):
        self._init_host()
        self._scheduler = scheduler
        self._elements: List[SceneElement] = [el.copy() for el in elements]
        self._app_state = AppState()
        # (elements, app_state, suppress_history) of every programmatic write
        self.writes: List[Tuple[List[SceneElement], Optional[AppState], bool]] = []
        self.fit_requests: List[List[str]] = []
        self.edit_requests: List[str] = []

    # ---- host interface ----

    def update_scene(self, elements: Sequence[SceneElement], app_state: Optional[AppState] = None,
                     suppress_history: bool = True) -> None:
        self._elements = [el.copy() for el in elements]
        if app_state is not None:
            self._app_state = replace(
                self._app_state,
                selected_element_ids=tuple(app_state.selected_element_ids),
                editing_text_element_id=app_state.editing_text_element_id,
            )
        self.writes.append(([el.copy() for el in elements], app_state, suppress_history))
        if self._scheduler is None:
            self._emit_change()
        else:
            self._scheduler.schedule(self._emit_change, 1)

    def get_scene_elements(self) -> List[SceneElement]:
        return [el.copy() for el in self._elements]

    def get_app_state(self) -> AppState:
        return self._app_state

    def scroll_to_content(self, elements: Sequence[SceneElement], fit: bool = True) -> None:
        self.fit_requests.append([el.id for el in elements])

    def begin_text_edit(self, element_id: str) -> None:
        self.edit_requests.append(element_id)
        if self.find(element_id) is not None:
            self.user_begin_edit(element_id)

    # ---- inspection ----

    def find(self, element_id: str) -> Optional[SceneElement]:
        for el in self._elements:
            if el.id == element_id:
                return el
        return None

    def live_ids(self) -> List[str]:
        return [el.id for el in self._elements if not el.is_deleted]

    # ---- user edits (notify immediately) ----

    def _replace(self, element_id: str, **changes) -> None:
        self._elements = [
            el.copy(**changes) if el.id == element_id else el for el in self._elements
        ]

    def user_add(self, element: SceneElement) -> None:
        self._elements.append(element.copy())
        self._emit_change()

    def user_move(self, element_id: str, x: float, y: float) -> None:
        """Move an element; text bound to it moves along."""
        el = self.find(element_id)
        if el is None:
            return
        dx, dy = x - el.x, y - el.y
        self._replace(element_id, x=x, y=y)
        for child in list(self._elements):
            if child.container_id == element_id:
                self._replace(child.id, x=child.x + dx, y=child.y + dy)
        self._emit_change()

    def user_delete(self, element_ids: Iterable[str]) -> None:
        """Mark elements (and text bound to them) deleted, as an eraser would."""
        doomed = set(element_ids)
        doomed.update(el.id for el in self._elements if el.container_id in doomed)
        for element_id in doomed:
            self._replace(element_id, is_deleted=True)
        self._app_state = replace(
            self._app_state,
            selected_element_ids=tuple(i for i in self._app_state.selected_element_ids if i not in doomed),
        )
        self._emit_change()

    def user_remove(self, element_ids: Iterable[str]) -> None:
        """Drop elements from the list entirely."""
        doomed = set(element_ids)
        self._elements = [el for el in self._elements if el.id not in doomed]
        self._emit_change()

    def user_select(self, element_ids: Iterable[str]) -> None:
        self._app_state = replace(self._app_state, selected_element_ids=tuple(element_ids))
        self._emit_change()

    def user_edit_text(self, element_id: str, text: str) -> None:
        el = self.find(element_id)
        if el is None or el.type != ElementType.TEXT:
            return
        self._replace(element_id, text=text)
        self._emit_change()

    def user_begin_edit(self, element_id: str) -> None:
        self._app_state = replace(self._app_state, editing_text_element_id=element_id)
        self._emit_change()

    def user_end_edit(self) -> None:
        self._app_state = replace(self._app_state, editing_text_element_id=None)
        self._emit_change()
