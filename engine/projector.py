"""
engine/projector.py

Projects the semantic forest plus layout positions into element
descriptors for the scene host.

Descriptors are plain data.  ``scene.elements.build_scene_elements`` turns
them into host elements (splitting a shape's embedded label into a bound
text element), and ``fingerprint`` lets the reconciler skip pushes that
would not change anything.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from engine.layout import PositionMap, normalize_root_ids
from models import (
    DescriptorKind,
    ElementRole,
    ElementTag,
    Node,
    Position,
    connector_element_id,
    shape_element_id,
)
from settings import AppSettings, ProjectionSettings, get_settings


@dataclass
class ElementDescriptor:
    """Simplified element description produced by the projector.

    Attributes:
        id: Deterministic element id (``shape-<node>``, ``arrow-<parent>-<node>``).
        kind: ``shape``, ``connector`` or ``text``.
        x, y, width, height: Geometry in scene units.
        points: Connector polyline, relative to ``(x, y)``.
        style: Stroke/fill/font values handed to the host untouched.
        label: Text embedded in a shape (``None`` for connectors).
        start_element_id, end_element_id: Shapes a connector is bound to.
        tag: Ownership tag.
    """
    id: str
    kind: str
    x: float
    y: float
    width: float
    height: float
    style: Dict[str, Any] = field(default_factory=dict)
    label: Optional[str] = None
    points: Tuple[Tuple[float, float], ...] = ()
    start_element_id: Optional[str] = None
    end_element_id: Optional[str] = None
    tag: Optional[ElementTag] = None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["points"] = [list(p) for p in self.points]
        d["tag"] = self.tag.to_dict() if self.tag else None
        return d


def estimate_text_width(text: str, settings: ProjectionSettings) -> float:
    """Estimate a node's width from its label length."""
    return max(
        settings.node_min_width,
        len(text) * settings.font_size * settings.char_width_ratio + settings.label_padding,
    )


def _shape_descriptor(node: Node, pos: Position, is_root: bool, cfg: AppSettings) -> ElementDescriptor:
    proj = cfg.projection
    style = cfg.styles.root if is_root else cfg.styles.for_kind(node.kind)
    return ElementDescriptor(
        id=shape_element_id(node.id),
        kind=DescriptorKind.SHAPE,
        x=pos.x,
        y=pos.y,
        width=estimate_text_width(node.label, proj),
        height=cfg.layout.node_height,
        style={
            "stroke_color": style.stroke,
            "background_color": style.background,
            "stroke_width": proj.stroke_width,
            "font_size": proj.font_size,
        },
        # The host drops empty text, so a blank label keeps a single space.
        label=node.label or " ",
        tag=ElementTag(node.id, ElementRole.SHAPE),
    )


def _connector_descriptor(parent: Node, child: Node, parent_pos: Position,
                          child_pos: Position, cfg: AppSettings) -> ElementDescriptor:
    proj = cfg.projection
    half_height = cfg.layout.node_height / 2
    start_x = parent_pos.x + estimate_text_width(parent.label, proj)
    start_y = parent_pos.y + half_height
    end_x = child_pos.x
    end_y = child_pos.y + half_height
    dx = end_x - start_x
    dy = end_y - start_y
    return ElementDescriptor(
        id=connector_element_id(parent.id, child.id),
        kind=DescriptorKind.CONNECTOR,
        x=start_x,
        y=start_y,
        width=dx,
        height=dy,
        points=((0.0, 0.0), (dx, dy)),
        style={
            "stroke_color": cfg.styles.connector_color,
            "stroke_width": proj.stroke_width,
            "gap": proj.connector_gap,
            "end_arrowhead": "arrow",
        },
        start_element_id=shape_element_id(parent.id),
        end_element_id=shape_element_id(child.id),
        tag=ElementTag(child.id, ElementRole.CONNECTOR),
    )


def project(
    root_ids: Union[Iterable[str], str, None],
    nodes: Mapping[str, Node],
    positions: PositionMap,
    settings: Optional[AppSettings] = None,
) -> List[ElementDescriptor]:
    """Build the ordered element descriptors for the forest.

    Walks depth-first from each root, emitting a shape per positioned node
    and a connector from its parent when the parent is live and positioned.
    Collapsed nodes hide their children.
    """
    if settings is None:
        settings = get_settings().settings

    descriptors: List[ElementDescriptor] = []
    visited = set()

    def walk(node_id: str) -> None:
        if node_id in visited:
            return
        visited.add(node_id)

        node = nodes.get(node_id)
        pos = positions.get(node_id)
        if node is None or pos is None:
            return

        descriptors.append(_shape_descriptor(node, pos, node.parent_id is None, settings))

        parent = nodes.get(node.parent_id) if node.parent_id is not None else None
        if parent is not None and parent.id in positions:
            descriptors.append(
                _connector_descriptor(parent, node, positions[parent.id], pos, settings)
            )

        if not node.collapsed:
            for child_id in node.children_ids:
                walk(child_id)

    for root_id in normalize_root_ids(root_ids, nodes):
        walk(root_id)

    return descriptors


def fingerprint(descriptors: Iterable[ElementDescriptor], extra: Any = None) -> str:
    """Stable digest of a descriptor list (plus optional extra state)."""
    payload = {
        "elements": [d.to_dict() for d in descriptors],
        "extra": extra,
    }
    blob = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha1(blob.encode("utf-8")).hexdigest()
