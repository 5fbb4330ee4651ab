"""
canvas/scene.py

QGraphicsScene acting as a scene host for the reconciler, with drawing
mode support for freeform content.
"""

from __future__ import annotations

import uuid
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set

from PyQt6.QtCore import Qt, QPointF, QRectF
from PyQt6.QtGui import QBrush, QColor
from PyQt6.QtWidgets import QGraphicsItem, QGraphicsScene

from canvas.items import ElementItemMixin, LabelTextItem, PolylineItem, ShapeItem, create_item
from debug_trace import trace
from models import ElementSchemaError
from scene.elements import AppState, ElementType, SceneElement, Viewport
from scene.host import SceneHostMixin
from schemas import validate_element
from settings import get_settings


class Mode:
    """Canvas interaction modes."""
    SELECT = "select"
    RECT = "rect"
    ELLIPSE = "ellipse"
    LINE = "line"
    TEXT = "text"

    DRAG_TO_CREATE = (RECT, ELLIPSE, LINE)


# Freeform strokes and fills. Default: light gray
FREEFORM_STROKE = "#ced4da"
FREEFORM_TEXT_SIZE = 20.0
# Drags shorter than this create nothing. Default: 3 pixels
MIN_DRAG = 3.0
# Pasted copies are shifted by this much. Default: 20 pixels
PASTE_OFFSET = 20.0


def make_freeform_id() -> str:
    return f"free-{uuid.uuid4().hex[:12]}"


class MindmapScene(QGraphicsScene, SceneHostMixin):
    """
    Graphics scene implementing the scene host interface.

    ``update_scene`` replaces the item set from an element list, reusing
    items by id, and reports the result to change listeners right away.
    User interaction (drags, selection, text edits, deletion, drawing) is
    reported to listeners as it completes.  Deleted elements are kept,
    flagged ``is_deleted``, until the next ``update_scene``.
    """

    def __init__(self, parent=None):
        super().__init__(parent)
        self._init_host()
        self.mode = Mode.SELECT

        self._items: Dict[str, QGraphicsItem] = {}
        self._order: List[str] = []
        self._deleted: Dict[str, SceneElement] = {}
        self._selection_order: List[str] = []
        self._editing_id: Optional[str] = None

        self._applying = False
        self._geometry_dirty = False

        self._drag_start: Optional[QPointF] = None
        self._temp_item: Optional[QGraphicsItem] = None
        self._on_mode_finished: Optional[Callable[[], None]] = None

        self.setBackgroundBrush(QBrush(QColor(get_settings().settings.canvas.background_color)))
        self.selectionChanged.connect(self._on_selection_changed)

    def set_mode(self, mode: str) -> None:
        """Set the current interaction mode."""
        self.mode = mode

    def set_mode_finished_callback(self, callback: Optional[Callable[[], None]]):
        """Set callback run after a drawing mode created its element."""
        self._on_mode_finished = callback

    # ---- scene host interface ----

    def update_scene(self, elements: Sequence[SceneElement], app_state: Optional[AppState] = None,
                     suppress_history: bool = True) -> None:
        # The scene keeps no undo stack of its own, so suppress_history needs no handling.
        self._applying = True
        try:
            self._apply_elements(list(elements))
            if app_state is not None:
                self._apply_selection(app_state.selected_element_ids)
        finally:
            self._applying = False
        trace(f"scene updated: {len(self._order)} items, {len(self._deleted)} deleted", "CANVAS")
        self._emit_change()

    def get_scene_elements(self) -> List[SceneElement]:
        elements = [self._items[i].to_element() for i in self._order if i in self._items]
        elements.extend(el.copy() for el in self._deleted.values())
        return elements

    def get_app_state(self) -> AppState:
        selected = tuple(
            i for i in self._selection_order if i in self._items and self._items[i].isSelected()
        )
        return AppState(
            selected_element_ids=selected,
            editing_text_element_id=self._editing_id,
            viewport=self._viewport(),
        )

    def scroll_to_content(self, elements: Sequence[SceneElement], fit: bool = True) -> None:
        rect = QRectF()
        for el in elements:
            item = self._items.get(el.id)
            if item is not None:
                rect = rect.united(item.sceneBoundingRect())
        if rect.isNull() or rect.isEmpty():
            return
        for view in self.views():
            if fit and hasattr(view, "fit_rect"):
                view.fit_rect(rect)
            else:
                view.centerOn(rect.center())

    def begin_text_edit(self, element_id: str) -> None:
        item = self.item_for(element_id)
        if isinstance(item, LabelTextItem):
            item.start_editing()

    def item_for(self, element_id: str) -> Optional[QGraphicsItem]:
        """Graphics item currently rendering *element_id*."""
        return self._items.get(element_id)

    # ---- applying element lists ----

    def _make_item(self, element: SceneElement) -> QGraphicsItem:
        item = create_item(element, self._on_item_changed)
        if isinstance(item, ShapeItem):
            item.on_double_click = self._on_shape_double_clicked
        elif isinstance(item, LabelTextItem):
            item.on_editing_started = self._on_editing_started
            item.on_editing_finished = self._on_editing_finished
        return item

    @staticmethod
    def _release_labels(item: QGraphicsItem) -> None:
        for child in item.childItems():
            if isinstance(child, LabelTextItem):
                child.bind_to(None)

    def _apply_elements(self, elements: List[SceneElement]) -> None:
        live = [el for el in elements if not el.is_deleted]
        self._deleted = {el.id: el.copy() for el in elements if el.is_deleted}
        by_id = {el.id: el for el in live}

        # Unbind text whose container is going away or changing before anything is removed
        for item in self._items.values():
            if isinstance(item, LabelTextItem) and item.container is not None:
                new = by_id.get(item.element_id)
                if new is None or new.container_id != item.container.element_id or new.container_id not in by_id:
                    item.bind_to(None)

        for element_id in [i for i in self._items if i not in by_id]:
            item = self._items.pop(element_id)
            self._release_labels(item)
            self.removeItem(item)

        for el in live:
            item = self._items.get(el.id)
            if item is not None and item.element.type == el.type:
                item.apply_element(el)
                continue
            if item is not None:
                self._release_labels(item)
                self.removeItem(item)
            item = self._make_item(el)
            self._items[el.id] = item
            self.addItem(item)

        for el in live:
            if el.type != ElementType.TEXT:
                continue
            item = self._items[el.id]
            container = self._items.get(el.container_id) if el.container_id else None
            item.bind_to(container if isinstance(container, ShapeItem) else None)

        self._order = [el.id for el in live]
        for z, element_id in enumerate(self._order):
            item = self._items[element_id]
            if item.parentItem() is None:
                item.setZValue(z)

    def _apply_selection(self, element_ids: Iterable[str]) -> None:
        self.clearSelection()
        order = []
        for element_id in element_ids:
            item = self._items.get(element_id)
            if item is None or not (item.flags() & QGraphicsItem.GraphicsItemFlag.ItemIsSelectable):
                continue
            item.setSelected(True)
            order.append(element_id)
        self._selection_order = order

    def _viewport(self) -> Viewport:
        views = self.views()
        if not views:
            return Viewport()
        view = views[0]
        return Viewport(
            scroll_x=float(view.horizontalScrollBar().value()),
            scroll_y=float(view.verticalScrollBar().value()),
            zoom=float(view.transform().m11()),
        )

    # ---- user interaction ----

    def _on_selection_changed(self):
        current = [
            item.element_id for item in self.selectedItems() if isinstance(item, ElementItemMixin)
        ]
        kept = [i for i in self._selection_order if i in current]
        rank = {element_id: n for n, element_id in enumerate(self._order)}
        added = sorted((i for i in current if i not in kept), key=lambda i: rank.get(i, len(rank)))
        self._selection_order = kept + added
        if not self._applying:
            self._emit_change()

    def _on_item_changed(self, item: QGraphicsItem):
        if self._applying or item is self._temp_item:
            return
        self._geometry_dirty = True

    def _on_shape_double_clicked(self, shape: ShapeItem):
        for child in shape.childItems():
            if isinstance(child, LabelTextItem):
                child.start_editing()
                return

    def _on_editing_started(self, item: LabelTextItem):
        self._editing_id = item.element_id
        self._emit_change()

    def _on_editing_finished(self, item: LabelTextItem):
        if self._editing_id == item.element_id:
            self._editing_id = None
        self._emit_change()

    def selected_element_ids(self) -> List[str]:
        return list(self.get_app_state().selected_element_ids)

    def _with_bound_text(self, element_ids: Iterable[str]) -> Set[str]:
        ids = set(element_ids)
        ids.update(
            i for i, item in self._items.items()
            if isinstance(item, LabelTextItem) and item.container is not None
            and item.container.element_id in ids
        )
        return ids

    def delete_selected(self) -> int:
        """Delete the selected elements (and text bound to them).

        Returns:
            Number of elements deleted.
        """
        doomed = self._with_bound_text(self.selected_element_ids())
        if not doomed:
            return 0
        removed = []
        for element_id in doomed:
            item = self._items.pop(element_id, None)
            if item is None:
                continue
            self._deleted[element_id] = item.to_element().copy(is_deleted=True)
            removed.append(item)
        self._applying = True
        try:
            # Children first so no item is removed twice
            for item in sorted(removed, key=lambda it: it.parentItem() is None):
                self.removeItem(item)
        finally:
            self._applying = False
        self._order = [i for i in self._order if i not in doomed]
        self._selection_order = [i for i in self._selection_order if i not in doomed]
        trace(f"user deleted {sorted(doomed)}", "CANVAS")
        self._emit_change()
        return len(doomed)

    def add_freeform(self, element: SceneElement) -> QGraphicsItem:
        """Add a user-authored element and report it."""
        item = self._make_item(element)
        self._items[element.id] = item
        self._order.append(element.id)
        self.addItem(item)
        item.setZValue(len(self._order))
        self._emit_change()
        return item

    # ---- clipboard payloads ----

    def copy_payload(self) -> List[Dict[str, Any]]:
        """Serialize the selected elements, and text bound to them, in scene order."""
        ids = self._with_bound_text(self.selected_element_ids())
        return [self._items[i].to_element().to_dict() for i in self._order if i in ids and i in self._items]

    def paste_payload(self, payload: Any, offset: float = PASTE_OFFSET) -> List[QGraphicsItem]:
        """
        Add copies of serialized elements as freeform content.

        Copies get fresh ``free-`` ids, lose their ownership tags and keep
        bindings only between elements pasted together.

        Raises:
            ElementSchemaError: If the payload is not a list of valid elements;
                nothing is added in that case.
        """
        if not isinstance(payload, list):
            raise ElementSchemaError(["root: expected a list of elements"])
        for data in payload:
            validate_element(data)

        elements = [SceneElement.from_dict(data) for data in payload]
        new_ids = {el.id: make_freeform_id() for el in elements}
        items = []
        for el in elements:
            copy = el.copy(
                id=new_ids[el.id],
                x=el.x + offset,
                y=el.y + offset,
                custom_data=None,
                is_deleted=False,
                container_id=new_ids.get(el.container_id),
                start_binding=new_ids.get(el.start_binding),
                end_binding=new_ids.get(el.end_binding),
                bound_element_ids=tuple(new_ids[i] for i in el.bound_element_ids if i in new_ids),
            )
            item = self._make_item(copy)
            self._items[copy.id] = item
            self._order.append(copy.id)
            self.addItem(item)
            item.setZValue(len(self._order))
            items.append(item)

        for item in items:
            if isinstance(item, LabelTextItem) and item.element.container_id:
                container = self._items.get(item.element.container_id)
                item.bind_to(container if isinstance(container, ShapeItem) else None)

        trace(f"pasted {len(items)} elements", "CANVAS")
        if items:
            self._emit_change()
        return items

    # ---- drawing modes ----

    def keyPressEvent(self, event):
        """Escape leaves a drawing mode."""
        if event.key() == Qt.Key.Key_Escape and self.mode != Mode.SELECT and self._temp_item is None:
            self.set_mode(Mode.SELECT)
            if self._on_mode_finished:
                self._on_mode_finished()
            event.accept()
            return
        super().keyPressEvent(event)

    def _freeform_element(self, sp: QPointF) -> SceneElement:
        if self.mode == Mode.LINE:
            return SceneElement(
                id=make_freeform_id(), type=ElementType.LINE, x=sp.x(), y=sp.y(),
                points=((0.0, 0.0), (0.0, 0.0)), stroke_color=FREEFORM_STROKE, stroke_width=2,
            )
        element_type = ElementType.ELLIPSE if self.mode == Mode.ELLIPSE else ElementType.RECTANGLE
        return SceneElement(
            id=make_freeform_id(), type=element_type, x=sp.x(), y=sp.y(),
            stroke_color=FREEFORM_STROKE, stroke_width=2,
        )

    def mousePressEvent(self, event):
        if event.button() == Qt.MouseButton.LeftButton and self.mode != Mode.SELECT:
            sp = event.scenePos()
            if self.mode == Mode.TEXT:
                item = self.add_freeform(SceneElement(
                    id=make_freeform_id(), type=ElementType.TEXT, x=sp.x(), y=sp.y(),
                    text="Text", font_size=FREEFORM_TEXT_SIZE,
                    stroke_color=FREEFORM_STROKE,
                ))
                self._finish_mode()
                item.start_editing()
                event.accept()
                return
            if self.mode in Mode.DRAG_TO_CREATE:
                self._drag_start = sp
                self._temp_item = self._make_item(self._freeform_element(sp))
                self.addItem(self._temp_item)
                event.accept()
                return
        super().mousePressEvent(event)

    def _drag_element(self, sp: QPointF) -> SceneElement:
        start = self._drag_start
        element = self._temp_item.element
        if isinstance(self._temp_item, PolylineItem):
            return element.copy(
                x=start.x(), y=start.y(),
                points=((0.0, 0.0), (sp.x() - start.x(), sp.y() - start.y())),
            )
        rect = QRectF(start, sp).normalized()
        return element.copy(x=rect.x(), y=rect.y(), width=rect.width(), height=rect.height())

    def mouseMoveEvent(self, event):
        if self._drag_start is not None and self._temp_item is not None:
            self._temp_item.apply_element(self._drag_element(event.scenePos()))
            event.accept()
            return
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event):
        if self._drag_start is not None and self._temp_item is not None:
            element = self._drag_element(event.scenePos())
            self.removeItem(self._temp_item)
            self._temp_item = None
            self._drag_start = None
            big_enough = (
                max(abs(c) for p in element.points for c in p) >= MIN_DRAG
                if element.points else min(element.width, element.height) >= MIN_DRAG
            )
            if big_enough:
                self.add_freeform(element)
            self._finish_mode()
            event.accept()
            return

        super().mouseReleaseEvent(event)

        # Report drags once, when the mouse is released
        if self._geometry_dirty:
            self._geometry_dirty = False
            self._emit_change()

    def _finish_mode(self):
        self.set_mode(Mode.SELECT)
        if self._on_mode_finished:
            self._on_mode_finished()
