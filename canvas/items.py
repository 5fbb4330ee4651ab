"""
canvas/items.py

Graphics items mirroring scene elements: shapes, (bound) text and
polylines.

Every item keeps the ``SceneElement`` it was built from and reports its
current geometry back through ``to_element()``; the element's
``custom_data`` travels with the item untouched.
"""

from __future__ import annotations

import math
from typing import Callable, Optional

from PyQt6.QtCore import Qt, QPointF, QRectF
from PyQt6.QtGui import QBrush, QColor, QPainter, QPainterPath, QPen, QPolygonF, QTextOption
from PyQt6.QtWidgets import (
    QGraphicsItem,
    QGraphicsPathItem,
    QGraphicsRectItem,
    QGraphicsTextItem,
    QStyle,
    QStyleOptionGraphicsItem,
)

from scene.elements import ElementType, SceneElement
from settings import get_settings
from debug_trace import trace

# QGraphicsItem.data() key holding the element id
ELEMENT_ID_KEY = 0

# Corner radius of rectangle shapes. Default: 8 pixels
CORNER_RADIUS = 8.0
# Arrow head length. Default: 12 pixels
ARROW_SIZE = 12.0


def round2(value: float) -> float:
    """Round a value to 2 decimal places for geometry."""
    return round(value, 2)


def _color(value: Optional[str], fallback: str = "transparent") -> QColor:
    c = QColor(value or fallback)
    return c if c.isValid() else QColor(fallback)


def _selection_pen() -> QPen:
    # Selection color from settings. Default: #0078D7 (blue)
    return QPen(QColor(get_settings().settings.canvas.selection_color), 1, Qt.PenStyle.DashLine)


class ElementItemMixin:
    """
    Mixin linking a graphics item to the scene element it renders.

    ``on_change`` is called with the item after a user-driven geometry
    change; the scene decides when to report it.
    """

    def __init__(self):
        # Also reached without arguments from the Qt base constructors
        self.element: Optional[SceneElement] = None
        self.on_change: Optional[Callable[[QGraphicsItem], None]] = None

    def bind_element(self, element: SceneElement, on_change: Optional[Callable[[QGraphicsItem], None]]):
        """Attach *element* and the change callback after the Qt base init."""
        self.element = element.copy()
        self.on_change = on_change
        self.setData(ELEMENT_ID_KEY, element.id)

    @property
    def element_id(self) -> str:
        return self.element.id

    @property
    def is_managed(self) -> bool:
        return self.element.tag is not None

    def _notify_changed(self):
        if self.on_change:
            self.on_change(self)

    def apply_element(self, element: SceneElement) -> None:
        raise NotImplementedError

    def to_element(self) -> SceneElement:
        raise NotImplementedError


class ShapeItem(QGraphicsRectItem, ElementItemMixin):
    """Rectangle, ellipse or diamond element."""

    def __init__(self, element: SceneElement, on_change=None):
        QGraphicsRectItem.__init__(self)
        ElementItemMixin.__init__(self)
        self.bind_element(element, on_change)
        self.on_double_click: Optional[Callable[["ShapeItem"], None]] = None

        self.setFlags(
            QGraphicsItem.GraphicsItemFlag.ItemIsSelectable
            | QGraphicsItem.GraphicsItemFlag.ItemIsMovable
            | QGraphicsItem.GraphicsItemFlag.ItemSendsGeometryChanges
        )
        self.apply_element(element)

    def apply_element(self, element: SceneElement) -> None:
        self.element = element.copy()
        self.prepareGeometryChange()
        self.setRect(QRectF(0, 0, element.width, element.height))
        self.setPos(QPointF(element.x, element.y))
        self.setPen(QPen(_color(element.stroke_color, "#1e1e1e"), element.stroke_width))
        self.setBrush(QBrush(_color(element.background_color)))
        self.update()

    def to_element(self) -> SceneElement:
        p = self.pos()
        r = self.rect()
        return self.element.copy(
            x=round2(p.x()),
            y=round2(p.y()),
            width=round2(r.width()),
            height=round2(r.height()),
        )

    def _outline(self) -> QPainterPath:
        r = self.rect()
        path = QPainterPath()
        if self.element.type == ElementType.ELLIPSE:
            path.addEllipse(r)
        elif self.element.type == ElementType.DIAMOND:
            path.addPolygon(QPolygonF([
                QPointF(r.center().x(), r.top()),
                QPointF(r.right(), r.center().y()),
                QPointF(r.center().x(), r.bottom()),
                QPointF(r.left(), r.center().y()),
            ]))
            path.closeSubpath()
        else:
            path.addRoundedRect(r, CORNER_RADIUS, CORNER_RADIUS)
        return path

    def shape(self) -> QPainterPath:
        return self._outline()

    def boundingRect(self) -> QRectF:
        margin = self.pen().widthF() / 2 + 2
        return self.rect().adjusted(-margin, -margin, margin, margin)

    def paint(self, painter: QPainter, option, widget=None):
        painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        painter.setPen(self.pen())
        painter.setBrush(self.brush())
        painter.drawPath(self._outline())

        if self.isSelected():
            painter.setPen(_selection_pen())
            painter.setBrush(Qt.BrushStyle.NoBrush)
            painter.drawRect(self.rect().adjusted(-2, -2, 2, 2))

    def mouseDoubleClickEvent(self, event):
        if event.button() == Qt.MouseButton.LeftButton and self.on_double_click:
            self.on_double_click(self)
            event.accept()
            return
        super().mouseDoubleClickEvent(event)

    def itemChange(self, change, value):
        out = super().itemChange(change, value)
        if change == QGraphicsItem.GraphicsItemChange.ItemPositionHasChanged:
            self._notify_changed()
        return out


class LabelTextItem(QGraphicsTextItem, ElementItemMixin):
    """Text element; bound text is centered inside its container.

    Bound text is a child item of its container, follows it when dragged
    and takes no mouse input except while it is being edited.
    """

    def __init__(self, element: SceneElement, on_change=None):
        QGraphicsTextItem.__init__(self)
        ElementItemMixin.__init__(self)
        self.bind_element(element, on_change)
        self.on_editing_started: Optional[Callable[["LabelTextItem"], None]] = None
        self.on_editing_finished: Optional[Callable[["LabelTextItem"], None]] = None
        self._editing = False
        self._container: Optional[ShapeItem] = None

        self.setTextInteractionFlags(Qt.TextInteractionFlag.NoTextInteraction)
        self.setDefaultTextColor(QColor(get_settings().settings.canvas.text_color))
        self.apply_element(element)

    @property
    def editing(self) -> bool:
        return self._editing

    @property
    def container(self) -> Optional[ShapeItem]:
        return self._container

    def apply_element(self, element: SceneElement) -> None:
        self.element = element.copy()
        f = self.font()
        f.setPixelSize(max(1, int(element.font_size)))
        self.setFont(f)
        if not self._editing and element.text != self.toPlainText():
            self.setPlainText(element.text)
        if self._container is None:
            self.setPos(QPointF(element.x, element.y))
        else:
            self._layout_in_container()

    def bind_to(self, container: Optional[ShapeItem]) -> None:
        """Make this text the label of *container* (or free it with ``None``)."""
        self._container = container
        if container is None:
            scene_pos = self.scenePos()
            self.setParentItem(None)
            self.setPos(scene_pos)
            self.setTextWidth(-1)
            self.setAcceptedMouseButtons(Qt.MouseButton.AllButtons)
            self.setFlags(
                QGraphicsItem.GraphicsItemFlag.ItemIsSelectable
                | QGraphicsItem.GraphicsItemFlag.ItemIsMovable
                | QGraphicsItem.GraphicsItemFlag.ItemSendsGeometryChanges
            )
            return

        self.setParentItem(container)
        self.setFlags(QGraphicsItem.GraphicsItemFlag(0))
        if not self._editing:
            self.setAcceptedMouseButtons(Qt.MouseButton.NoButton)
        option = QTextOption(Qt.AlignmentFlag.AlignCenter)
        option.setWrapMode(QTextOption.WrapMode.WordWrap)
        self.document().setDefaultTextOption(option)
        self._layout_in_container()

    def _layout_in_container(self):
        r = self._container.rect()
        self.setTextWidth(max(10.0, r.width()))
        text_height = self.boundingRect().height()
        self.setPos(QPointF(0, (r.height() - text_height) / 2))

    def to_element(self) -> SceneElement:
        text = self.toPlainText()
        if self._container is not None:
            box = self._container.to_element()
            return self.element.copy(x=box.x, y=box.y, width=box.width, height=box.height, text=text)
        p = self.scenePos()
        br = self.boundingRect()
        return self.element.copy(
            x=round2(p.x()),
            y=round2(p.y()),
            width=round2(br.width()),
            height=round2(br.height()),
            text=text,
        )

    # ---- editing ----

    def start_editing(self):
        """Enter text editing mode with the whole text selected."""
        if self._editing:
            return
        self._editing = True
        trace(f"text edit started: {self.element_id}", "CANVAS")
        self.setAcceptedMouseButtons(Qt.MouseButton.AllButtons)
        self.setTextInteractionFlags(Qt.TextInteractionFlag.TextEditorInteraction)
        self.setFocus(Qt.FocusReason.OtherFocusReason)
        cursor = self.textCursor()
        cursor.select(cursor.SelectionType.Document)
        self.setTextCursor(cursor)
        if self.on_editing_started:
            self.on_editing_started(self)

    def finish_editing(self):
        """Leave text editing mode and report the final text."""
        if not self._editing:
            return
        self._editing = False
        self.setTextInteractionFlags(Qt.TextInteractionFlag.NoTextInteraction)
        cursor = self.textCursor()
        cursor.clearSelection()
        self.setTextCursor(cursor)
        if self._container is not None:
            self.setAcceptedMouseButtons(Qt.MouseButton.NoButton)
            self._layout_in_container()
        trace(f"text edit finished: {self.element_id}", "CANVAS")
        if self.on_editing_finished:
            self.on_editing_finished(self)

    def keyPressEvent(self, event):
        if self._editing:
            plain_enter = (
                event.key() in (Qt.Key.Key_Return, Qt.Key.Key_Enter)
                and not (event.modifiers() & Qt.KeyboardModifier.ShiftModifier)
            )
            if event.key() == Qt.Key.Key_Escape or plain_enter:
                self.clearFocus()
                event.accept()
                return
        super().keyPressEvent(event)

    def focusOutEvent(self, event):
        super().focusOutEvent(event)
        self.finish_editing()

    def mouseDoubleClickEvent(self, event):
        if event.button() == Qt.MouseButton.LeftButton and self._container is None:
            self.start_editing()
        super().mouseDoubleClickEvent(event)

    def itemChange(self, change, value):
        out = super().itemChange(change, value)
        if change == QGraphicsItem.GraphicsItemChange.ItemPositionHasChanged and self._container is None:
            self._notify_changed()
        return out


class PolylineItem(QGraphicsPathItem, ElementItemMixin):
    """Arrow, line or freehand element drawn through its points.

    Points are relative to the element origin.  Managed connectors are
    selectable but cannot be dragged: their geometry is derived.
    """

    def __init__(self, element: SceneElement, on_change=None):
        QGraphicsPathItem.__init__(self)
        ElementItemMixin.__init__(self)
        self.bind_element(element, on_change)
        self.apply_element(element)

    def apply_element(self, element: SceneElement) -> None:
        self.element = element.copy()
        flags = QGraphicsItem.GraphicsItemFlag.ItemIsSelectable | QGraphicsItem.GraphicsItemFlag.ItemSendsGeometryChanges
        if not self.is_managed:
            flags |= QGraphicsItem.GraphicsItemFlag.ItemIsMovable
        self.setFlags(flags)

        path = QPainterPath()
        points = [QPointF(px, py) for px, py in element.points]
        if points:
            path.moveTo(points[0])
            for pt in points[1:]:
                path.lineTo(pt)
        self.setPath(path)
        self.setPos(QPointF(element.x, element.y))
        pen = QPen(_color(element.stroke_color, "#1e1e1e"), element.stroke_width)
        pen.setCapStyle(Qt.PenCapStyle.RoundCap)
        pen.setJoinStyle(Qt.PenJoinStyle.RoundJoin)
        self.setPen(pen)
        self.setBrush(QBrush(Qt.BrushStyle.NoBrush))

    def to_element(self) -> SceneElement:
        p = self.pos()
        return self.element.copy(x=round2(p.x()), y=round2(p.y()))

    def _arrow_head(self) -> Optional[QPolygonF]:
        pts = self.element.points
        if self.element.type != ElementType.ARROW or len(pts) < 2:
            return None
        (x1, y1), (x2, y2) = pts[-2], pts[-1]
        angle = math.atan2(y2 - y1, x2 - x1)
        spread = math.pi / 7
        tip = QPointF(x2, y2)
        left = QPointF(x2 - ARROW_SIZE * math.cos(angle - spread), y2 - ARROW_SIZE * math.sin(angle - spread))
        right = QPointF(x2 - ARROW_SIZE * math.cos(angle + spread), y2 - ARROW_SIZE * math.sin(angle + spread))
        return QPolygonF([tip, left, right])

    def boundingRect(self) -> QRectF:
        margin = ARROW_SIZE + self.pen().widthF()
        return self.path().boundingRect().adjusted(-margin, -margin, margin, margin)

    def paint(self, painter: QPainter, option, widget=None):
        # Suppress the default dashed selection rectangle
        my_option = QStyleOptionGraphicsItem(option)
        my_option.state &= ~QStyle.StateFlag.State_Selected
        painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        super().paint(painter, my_option, widget)

        head = self._arrow_head()
        if head is not None:
            painter.setPen(self.pen())
            painter.setBrush(QBrush(self.pen().color()))
            painter.drawPolygon(head)

        if self.isSelected():
            painter.setPen(_selection_pen())
            painter.setBrush(Qt.BrushStyle.NoBrush)
            painter.drawRect(self.path().boundingRect().adjusted(-3, -3, 3, 3))

    def itemChange(self, change, value):
        out = super().itemChange(change, value)
        if change == QGraphicsItem.GraphicsItemChange.ItemPositionHasChanged:
            self._notify_changed()
        return out


def create_item(element: SceneElement, on_change=None) -> QGraphicsItem:
    """Build the graphics item for *element*."""
    if element.type == ElementType.TEXT:
        return LabelTextItem(element, on_change)
    if element.type in (ElementType.ARROW, ElementType.LINE, ElementType.FREEDRAW):
        return PolylineItem(element, on_change)
    return ShapeItem(element, on_change)
