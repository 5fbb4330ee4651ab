"""
canvas/view.py

QGraphicsView with wheel zoom, fit-to-content and keyboard shortcut
routing.
"""

from __future__ import annotations

from typing import Callable, List, Optional

from PyQt6.QtCore import Qt, QRectF
from PyQt6.QtGui import QKeyEvent, QPainter
from PyQt6.QtWidgets import QGraphicsItem, QGraphicsView

from canvas.scene import MindmapScene
from settings import get_settings

# Qt key code -> shortcut key name
KEY_NAMES = {
    Qt.Key.Key_Tab.value: "Tab",
    Qt.Key.Key_Return.value: "Enter",
    Qt.Key.Key_Enter.value: "Enter",
    Qt.Key.Key_Delete.value: "Delete",
    Qt.Key.Key_Backspace.value: "Backspace",
    Qt.Key.Key_Space.value: " ",
    Qt.Key.Key_Escape.value: "Escape",
    Qt.Key.Key_F2.value: "F2",
}

SHORTCUT_MODIFIERS = (
    Qt.KeyboardModifier.ControlModifier
    | Qt.KeyboardModifier.AltModifier
    | Qt.KeyboardModifier.MetaModifier
)


def key_name(event: QKeyEvent) -> str:
    """Name of the pressed key in shortcut terms."""
    return KEY_NAMES.get(event.key(), event.text())


def has_shortcut_modifier(event: QKeyEvent) -> bool:
    return bool(event.modifiers() & SHORTCUT_MODIFIERS)


class MindmapView(QGraphicsView):
    """
    Graphics view for the mind map canvas.

    Key presses go to ``key_handler`` first (unless a text item is being
    edited); it returns True to consume the key.  Tab is delivered as a key
    press instead of moving widget focus.

    Selection behavior:
    - Rubber-band selection selects ONLY items fully enclosed by the rubber band
    - Ctrl + Left-click toggles selection membership without clearing others
    """

    def __init__(self, scene: MindmapScene, parent=None):
        super().__init__(scene, parent)
        self.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        self.setDragMode(QGraphicsView.DragMode.RubberBandDrag)
        self.setTransformationAnchor(QGraphicsView.ViewportAnchor.AnchorUnderMouse)
        self.key_handler: Optional[Callable[[QKeyEvent], bool]] = None

        # Internal state to detect rubber-band usage
        self._rb_active = False

    def _editing_text(self) -> bool:
        scene = self.scene()
        return scene is not None and scene.get_app_state().editing_text_element_id is not None

    def focusNextPrevChild(self, next: bool) -> bool:
        return False

    def keyPressEvent(self, event):
        if not self._editing_text() and self.key_handler and self.key_handler(event):
            event.accept()
            return
        super().keyPressEvent(event)

    def wheelEvent(self, event):
        """Zoom with mouse wheel."""
        delta = event.angleDelta().y()
        # Zoom factor from settings. Default: 1.15 (15% per scroll step)
        zoom_factor = get_settings().settings.canvas.wheel_factor
        factor = zoom_factor if delta > 0 else 1 / zoom_factor
        self.scale(factor, factor)

    def mousePressEvent(self, event):
        """Handle mouse press with Ctrl+click toggle selection."""
        if event.button() == Qt.MouseButton.LeftButton and (event.modifiers() & Qt.KeyboardModifier.ControlModifier):
            item = self.itemAt(event.position().toPoint())
            if item is not None and (item.flags() & QGraphicsItem.GraphicsItemFlag.ItemIsSelectable):
                item.setSelected(not item.isSelected())
                event.accept()
                return

        if event.button() == Qt.MouseButton.LeftButton and self.dragMode() == QGraphicsView.DragMode.RubberBandDrag:
            self._rb_active = True

        super().mousePressEvent(event)

    def mouseReleaseEvent(self, event):
        """Handle mouse release with fully-enclosed selection enforcement."""
        rb = self.rubberBandRect()
        super().mouseReleaseEvent(event)

        if not self._rb_active:
            return
        self._rb_active = False
        if rb.isNull() or rb.width() < 2 or rb.height() < 2:
            return

        scene_rect = self.mapToScene(rb).boundingRect()
        candidates = self.scene().items(scene_rect, Qt.ItemSelectionMode.IntersectsItemBoundingRect)
        fully_contained: List[QGraphicsItem] = [
            it for it in candidates
            if (it.flags() & QGraphicsItem.GraphicsItemFlag.ItemIsSelectable)
            and scene_rect.contains(it.sceneBoundingRect())
        ]

        if not (event.modifiers() & Qt.KeyboardModifier.ControlModifier):
            self.scene().clearSelection()
        for it in fully_contained:
            it.setSelected(True)

    def fit_rect(self, rect: QRectF):
        """Zoom to show *rect* with the configured margin."""
        # Fit margin from settings. Default: 40 pixels
        margin = get_settings().settings.canvas.fit_margin
        self.fitInView(rect.adjusted(-margin, -margin, margin, margin), Qt.AspectRatioMode.KeepAspectRatio)

    def zoom_fit(self):
        """Zoom to fit the entire scene in the view."""
        scene_rect = self.scene().itemsBoundingRect()
        if not scene_rect.isNull() and not scene_rect.isEmpty():
            self.fit_rect(scene_rect)

    def zoom_reset(self):
        """Reset zoom to 100% (1:1 scale)."""
        self.resetTransform()

    def zoom_in(self):
        """Zoom in by the configured factor."""
        zoom_factor = get_settings().settings.canvas.wheel_factor
        self.scale(zoom_factor, zoom_factor)

    def zoom_out(self):
        """Zoom out by the configured factor."""
        zoom_factor = get_settings().settings.canvas.wheel_factor
        self.scale(1 / zoom_factor, 1 / zoom_factor)
