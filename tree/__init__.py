"""
tree package

Canonical mind map forest: store, undo history and subtree helpers.
"""

from tree.history import History
from tree.store import TreeStore, get_store, reset_store
from tree.subtree import collect_subtree, build_children_index, ancestor_chain

__all__ = [
    "History",
    "TreeStore",
    "get_store",
    "reset_store",
    "collect_subtree",
    "build_children_index",
    "ancestor_chain",
]
