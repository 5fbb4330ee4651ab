"""
sync/classify.py

Classification of scene elements as managed (owned by a mind map node) or
unmanaged (freeform content the user drew on the canvas), and resolution
of managed elements back to node ids.

Nothing here raises on malformed host data: an element whose tag does not
validate is simply treated as untagged.
"""

from __future__ import annotations

from typing import AbstractSet, Iterable, List, Mapping, Optional, Set

from models import MANAGED_ELEMENT_ID_PREFIXES, ElementRole, ElementTag, Node
from scene.elements import ElementType, SceneElement
from schemas import is_valid_tag
from tree.subtree import ancestor_chain


def is_managed_element(element: Optional[SceneElement]) -> bool:
    """True if *element* carries a valid ownership tag."""
    if element is None:
        return False
    return is_valid_tag(element.custom_data)


def element_tag(element: Optional[SceneElement]) -> Optional[ElementTag]:
    if not is_managed_element(element):
        return None
    return ElementTag.from_dict(element.custom_data)


def has_managed_element_id(element_id: Optional[str]) -> bool:
    """True if the id follows one of the projector's id schemes."""
    if not isinstance(element_id, str):
        return False
    return element_id.startswith(MANAGED_ELEMENT_ID_PREFIXES)


def resolve_managed_shape_node_id(element: SceneElement) -> Optional[str]:
    """Node id of a shape element, from its tag or else its ``shape-`` id."""
    tag = element_tag(element)
    if tag is not None and tag.role == ElementRole.SHAPE:
        return tag.owner_node_id
    if not element.id.startswith("shape-"):
        return None
    node_id = element.id[len("shape-"):]
    return node_id or None


def resolve_selected_managed_node_id(
    selected_ids: Iterable[str],
    by_id: Mapping[str, SceneElement],
) -> Optional[str]:
    """Resolve a host selection to the first managed node it touches.

    Selected text bound to a container stands for its container.
    """
    for selected_id in selected_ids:
        element = by_id.get(selected_id)
        if element is not None and element.type == ElementType.TEXT and element.container_id:
            element = by_id.get(element.container_id) or element
        tag = element_tag(element)
        if tag is not None:
            return tag.owner_node_id
    return None


def resolve_label_node_id(element: SceneElement, by_id: Mapping[str, SceneElement]) -> Optional[str]:
    """Node id whose label *element* displays, or ``None`` for other text."""
    if element.type != ElementType.TEXT:
        return None

    tag = element_tag(element)
    if tag is not None and tag.role == ElementRole.LABEL:
        return tag.owner_node_id

    if not element.container_id:
        return None
    container_tag = element_tag(by_id.get(element.container_id))
    if container_tag is None:
        return None
    return container_tag.owner_node_id


def normalize_label_text(text: Optional[str]) -> str:
    """Whitespace-only text becomes ``""``; anything else is kept exactly."""
    if text is None or not text.strip():
        return ""
    return text


def managed_ids(elements: Iterable[SceneElement]) -> Set[str]:
    return {el.id for el in elements if is_managed_element(el)}


def is_unmanaged_element(
    element: SceneElement,
    managed: AbstractSet[str],
    remembered: AbstractSet[str] = frozenset(),
) -> bool:
    """True if *element* is freeform content the reconciler must preserve.

    An element is managed (and therefore replaced by each projection) when
    it is tagged, is text bound to a managed container, is a connector bound
    to a managed element, or reuses an id the projector has emitted before.
    The last rule keeps a host-duplicated element whose tag was lost from
    being resurrected as freeform content.
    """
    if is_managed_element(element):
        return False
    if element.id in managed or element.id in remembered:
        return False
    if element.container_id and (element.container_id in managed or element.container_id in remembered):
        return False
    for target in (element.start_binding, element.end_binding):
        if target and (target in managed or target in remembered):
            return False
    return True


def collapse_to_topmost(node_ids: Iterable[str], nodes: Mapping[str, Node]) -> List[str]:
    """Drop every id that has an ancestor also in *node_ids*.

    Keeps the input order of the survivors.
    """
    ordered = list(dict.fromkeys(node_ids))
    members = set(ordered)
    return [
        nid for nid in ordered
        if not any(ancestor in members for ancestor in ancestor_chain(nid, nodes))
    ]
