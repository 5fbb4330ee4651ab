"""
canvas package

PyQt6 graphics items, scene host and view for the mind map canvas.
"""

from canvas.items import (
    ELEMENT_ID_KEY,
    ElementItemMixin,
    ShapeItem,
    LabelTextItem,
    PolylineItem,
    create_item,
)
from canvas.scene import MindmapScene, Mode
from canvas.view import MindmapView, has_shortcut_modifier, key_name

__all__ = [
    "ELEMENT_ID_KEY",
    "ElementItemMixin",
    "ShapeItem",
    "LabelTextItem",
    "PolylineItem",
    "create_item",
    "MindmapScene",
    "Mode",
    "MindmapView",
    "has_shortcut_modifier",
    "key_name",
]
