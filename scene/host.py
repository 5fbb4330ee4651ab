"""
scene/host.py

Interface shared by scene hosts.

A scene host owns the rendered scene.  It accepts full element list
replacements, reports every mutation (programmatic or user-made) to its
change listeners, and returns each element's ``custom_data`` unchanged.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence

from scene.elements import AppState, SceneElement

ChangeListener = Callable[[List[SceneElement], AppState], None]


class SceneHostMixin:
    """
    Mixin providing change-listener bookkeeping for scene hosts.

    Hosts implement ``update_scene``, ``get_scene_elements`` and
    ``get_app_state``; ``scroll_to_content`` and ``begin_text_edit`` are
    optional conveniences that default to doing nothing.
    """

    def _init_host(self):
        self._change_listeners: List[ChangeListener] = []

    def add_change_listener(self, listener: ChangeListener) -> Callable[[], None]:
        """Register *listener*; returns a function that unregisters it."""
        self._change_listeners.append(listener)

        def remove():
            if listener in self._change_listeners:
                self._change_listeners.remove(listener)

        return remove

    def _emit_change(self) -> None:
        """Notify listeners with the current elements and app state."""
        elements = self.get_scene_elements()
        app_state = self.get_app_state()
        for listener in list(self._change_listeners):
            listener(elements, app_state)

    def update_scene(self, elements: Sequence[SceneElement], app_state: Optional[AppState] = None,
                     suppress_history: bool = True) -> None:
        """Replace the scene; the effect is observed via a change notification."""
        raise NotImplementedError

    def get_scene_elements(self) -> List[SceneElement]:
        raise NotImplementedError

    def get_app_state(self) -> AppState:
        raise NotImplementedError

    def scroll_to_content(self, elements: Sequence[SceneElement], fit: bool = True) -> None:
        """Bring *elements* into view."""

    def begin_text_edit(self, element_id: str) -> None:
        """Open the host's text editor on *element_id*."""
