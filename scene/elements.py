"""
scene/elements.py

Scene element and application state models exchanged with scene hosts.

``SceneElement`` mirrors the host's element payload.  Known fields are
typed attributes; any other keys a host attaches are kept in ``extras`` so
they survive the host -> reconciler -> host round-trip.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Iterable, List, Optional, Tuple

from models import ElementRole, ElementTag, DescriptorKind, label_element_id


class ElementType:
    """Element types understood by the hosts."""
    RECTANGLE = "rectangle"
    ELLIPSE = "ellipse"
    DIAMOND = "diamond"
    TEXT = "text"
    ARROW = "arrow"
    LINE = "line"
    FREEDRAW = "freedraw"

    CONNECTORS = (ARROW, LINE)


@dataclass
class SceneElement:
    """One element of the host scene."""
    id: str
    type: str
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    text: str = ""
    container_id: Optional[str] = None
    start_binding: Optional[str] = None   # element id the connector starts at
    end_binding: Optional[str] = None     # element id the connector ends at
    bound_element_ids: Tuple[str, ...] = ()
    points: Tuple[Tuple[float, float], ...] = ()
    stroke_color: str = "#1e1e1e"
    background_color: str = "transparent"
    stroke_width: float = 1.0
    font_size: float = 20.0
    is_deleted: bool = False
    custom_data: Optional[Dict[str, Any]] = None
    # Arbitrary extra keys preserved through round-trips
    extras: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def tag(self) -> Optional[ElementTag]:
        return ElementTag.from_dict(self.custom_data)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SceneElement":
        """Create an element from a host payload, preserving unknown keys in ``extras``."""
        known_names = {f.name for f in fields(cls) if f.name != "extras"}
        known: Dict[str, Any] = {}
        extras: Dict[str, Any] = {}
        for k, v in d.items():
            if k in known_names:
                known[k] = v
            else:
                extras[k] = v
        if "bound_element_ids" in known:
            known["bound_element_ids"] = tuple(known["bound_element_ids"] or ())
        if "points" in known:
            known["points"] = tuple(tuple(p) for p in known["points"] or ())
        return cls(**known, extras=extras)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a plain dict, merging extras back in."""
        d = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "extras"}
        d["bound_element_ids"] = list(self.bound_element_ids)
        d["points"] = [list(p) for p in self.points]
        d.update(self.extras)
        return d

    def copy(self, **changes) -> "SceneElement":
        return replace(self, extras=dict(self.extras), **changes)


@dataclass(frozen=True)
class Viewport:
    """Host viewport transform."""
    scroll_x: float = 0.0
    scroll_y: float = 0.0
    zoom: float = 1.0
    offset_left: float = 0.0
    offset_top: float = 0.0


@dataclass(frozen=True)
class AppState:
    """Snapshot of the host's interaction state.

    ``selected_element_ids`` keeps the host's selection order; resolution
    of a selection to a node uses the first match.
    """
    selected_element_ids: Tuple[str, ...] = ()
    editing_text_element_id: Optional[str] = None
    viewport: Viewport = field(default_factory=Viewport)


def index_by_id(elements: Iterable[SceneElement]) -> Dict[str, SceneElement]:
    return {el.id: el for el in elements}


def build_scene_elements(descriptors) -> List[SceneElement]:
    """Convert projector descriptors into host elements.

    A shape descriptor becomes a rectangle plus a centered text element
    bound to it (``label-<node>``).  Connectors are bound to their shapes
    and listed in each shape's ``bound_element_ids``.
    """
    elements: List[SceneElement] = []
    bound: Dict[str, List[str]] = {}

    for d in descriptors:
        tag = d.tag.to_dict() if d.tag else None
        style = d.style or {}
        if d.kind == DescriptorKind.SHAPE:
            shape = SceneElement(
                id=d.id,
                type=ElementType.RECTANGLE,
                x=d.x,
                y=d.y,
                width=d.width,
                height=d.height,
                stroke_color=style.get("stroke_color", "#1e1e1e"),
                background_color=style.get("background_color", "transparent"),
                stroke_width=style.get("stroke_width", 1.0),
                custom_data=tag,
            )
            elements.append(shape)
            if d.label is not None and d.tag is not None:
                text_id = label_element_id(d.tag.owner_node_id)
                elements.append(SceneElement(
                    id=text_id,
                    type=ElementType.TEXT,
                    x=d.x,
                    y=d.y,
                    width=d.width,
                    height=d.height,
                    text=d.label,
                    container_id=d.id,
                    font_size=style.get("font_size", 20.0),
                    custom_data=ElementTag(d.tag.owner_node_id, ElementRole.LABEL).to_dict(),
                ))
                bound.setdefault(d.id, []).append(text_id)
        elif d.kind == DescriptorKind.CONNECTOR:
            elements.append(SceneElement(
                id=d.id,
                type=ElementType.ARROW,
                x=d.x,
                y=d.y,
                width=d.width,
                height=d.height,
                start_binding=d.start_element_id,
                end_binding=d.end_element_id,
                points=tuple(tuple(p) for p in d.points),
                stroke_color=style.get("stroke_color", "#1e1e1e"),
                stroke_width=style.get("stroke_width", 1.0),
                custom_data=tag,
            ))
            for target in (d.start_element_id, d.end_element_id):
                if target:
                    bound.setdefault(target, []).append(d.id)
        else:
            elements.append(SceneElement(
                id=d.id,
                type=ElementType.TEXT,
                x=d.x,
                y=d.y,
                width=d.width,
                height=d.height,
                text=d.label or "",
                font_size=style.get("font_size", 20.0),
                custom_data=tag,
            ))

    for el in elements:
        if el.id in bound:
            el.bound_element_ids = tuple(bound[el.id])
    return elements
