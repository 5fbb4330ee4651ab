"""
tree/subtree.py

Subtree walking that tolerates parent/child drift.

A node's ``children_ids`` and its children's ``parent_id`` back-references
can briefly disagree while the scene and the store catch up with each
other.  Walks here therefore consult both sources and union the results.
"""

from __future__ import annotations

from typing import Dict, List, Mapping

from models import Node


def build_children_index(nodes: Mapping[str, Node]) -> Dict[str, List[str]]:
    """Build a parent id -> child ids index from ``parent_id`` back-references."""
    index: Dict[str, List[str]] = {}
    for node_id, node in nodes.items():
        if node.parent_id is None:
            continue
        index.setdefault(node.parent_id, []).append(node_id)
    return index


def collect_subtree(node_id: str, nodes: Mapping[str, Node]) -> List[str]:
    """Collect a node and all of its descendants present in *nodes*.

    Follows ``children_ids`` forward and the reverse parent index backward,
    sharing one visited set, so a child missing from its parent's list is
    still found.  Ids absent from *nodes* are skipped.

    Args:
        node_id: Root of the subtree.
        nodes: The node table to walk (live or deleted).

    Returns:
        Collected ids, starting with *node_id*; empty if it is absent.
    """
    children_index = build_children_index(nodes)

    result: List[str] = []
    visited = set()
    stack = [node_id]

    while stack:
        current_id = stack.pop()
        if current_id in visited:
            continue
        node = nodes.get(current_id)
        if node is None:
            continue

        visited.add(current_id)
        result.append(current_id)

        for child_id in node.children_ids:
            if child_id not in visited:
                stack.append(child_id)
        for child_id in children_index.get(current_id, ()):
            if child_id not in visited:
                stack.append(child_id)

    return result


def ancestor_chain(node_id: str, nodes: Mapping[str, Node]) -> List[str]:
    """Return the ids of a node's ancestors, nearest first.

    Stops at the first missing parent and never loops on a cycle.
    """
    chain: List[str] = []
    seen = {node_id}
    node = nodes.get(node_id)
    while node is not None and node.parent_id is not None:
        parent_id = node.parent_id
        if parent_id in seen:
            break
        seen.add(parent_id)
        chain.append(parent_id)
        node = nodes.get(parent_id)
    return chain
