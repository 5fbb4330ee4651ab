"""
scene package

Scene element models, the scene host interface and the headless host.
"""

from scene.elements import (
    AppState,
    ElementType,
    SceneElement,
    Viewport,
    build_scene_elements,
    index_by_id,
)
from scene.host import ChangeListener, SceneHostMixin
from scene.memory_host import MemorySceneHost

__all__ = [
    "AppState",
    "ElementType",
    "SceneElement",
    "Viewport",
    "build_scene_elements",
    "index_by_id",
    "ChangeListener",
    "SceneHostMixin",
    "MemorySceneHost",
]
