"""
engine/layout.py

Offset-based tree layout.

Computes ``{x, y}`` positions for every visible node: depth sets the
column, leaves stack downward on one cursor shared by all roots, and each
branch is centered between its first and last visible child.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Union

from models import Node, Position
from settings import LayoutSettings, get_settings

PositionMap = Dict[str, Position]


def normalize_root_ids(
    root_ids: Union[Iterable[str], str, None],
    nodes: Mapping[str, Node],
) -> List[str]:
    """Return the ordered, de-duplicated roots to lay out.

    Listed ids are kept if they are live, parentless nodes.  Any other
    parentless live node is appended afterwards, so a root that dropped out
    of ``root_ids`` still renders.
    """
    if isinstance(root_ids, str):
        candidates: List[str] = [root_ids]
    elif root_ids is None:
        candidates = []
    else:
        candidates = [rid for rid in root_ids if isinstance(rid, str) and rid]

    ordered: List[str] = []
    seen = set()
    for rid in candidates:
        node = nodes.get(rid)
        if rid in seen or node is None or node.parent_id is not None:
            continue
        ordered.append(rid)
        seen.add(rid)

    for node_id, node in nodes.items():
        if node.parent_id is None and node_id not in seen:
            ordered.append(node_id)
            seen.add(node_id)

    return ordered


def visible_children(node: Node, nodes: Mapping[str, Node]) -> List[str]:
    """Children that are live and not hidden by a collapsed parent."""
    if node.collapsed:
        return []
    return [cid for cid in node.children_ids if cid in nodes]


def compute_layout(
    root_ids: Union[Iterable[str], str, None],
    nodes: Mapping[str, Node],
    settings: Optional[LayoutSettings] = None,
) -> PositionMap:
    """Compute positions for all visible nodes of the forest.

    Args:
        root_ids: Forest roots in display order (a single id is accepted).
        nodes: Live node table.
        settings: Spacing constants; defaults to the ``[layout]`` settings.

    Returns:
        Map of node id to position.  Nodes unreachable from a root are
        omitted; nodes with a manual override get it verbatim.
    """
    if settings is None:
        settings = get_settings().settings.layout

    ordered_roots = normalize_root_ids(root_ids, nodes)
    if not ordered_roots:
        return {}

    positions: PositionMap = {}
    row_step = settings.node_height + settings.vertical_gap
    cursor = 0.0

    def layout_node(node_id: str, depth: int) -> None:
        nonlocal cursor
        node = nodes.get(node_id)
        if node is None or node_id in positions:
            return

        x = depth * settings.horizontal_gap
        # Reserve the slot so a child listed twice (or a cycle) is not revisited.
        positions[node_id] = Position(x, cursor)

        placed = []
        for child_id in visible_children(node, nodes):
            if child_id in positions:
                continue
            layout_node(child_id, depth + 1)
            placed.append(child_id)

        if not placed:
            positions[node_id] = Position(x, cursor)
            cursor += row_step
        else:
            first_y = positions[placed[0]].y
            last_y = positions[placed[-1]].y
            positions[node_id] = Position(x, (first_y + last_y) / 2)

    for root_id in ordered_roots:
        layout_node(root_id, 0)

    for node_id in positions:
        override = nodes[node_id].position
        if override is not None:
            positions[node_id] = Position(override.x, override.y)

    return positions
