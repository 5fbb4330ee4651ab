"""
models.py

Data models and constants for the MindSync mind map.

The semantic forest is the source of truth.  Scene elements are derived
(projected) from it; the scene only ever sees rectangles, bound text and
arrows carrying an ownership tag.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


# ----------------------------
# Exceptions
# ----------------------------

class MindsyncError(Exception):
    """Base class for MindSync errors."""


class NodeNotFoundError(MindsyncError, KeyError):
    """Raised when an operation needs a live node that does not exist."""

    def __init__(self, node_id: str):
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self) -> str:
        return f"node not found: {self.node_id!r}"


class ElementSchemaError(MindsyncError, ValueError):
    """Raised when a scene element payload fails schema validation."""

    def __init__(self, messages):
        super().__init__("; ".join(messages))
        self.messages = list(messages)


# ----------------------------
# Enumerations
# ----------------------------

class NodeKind:
    """Semantic intent of a node; drives styling."""
    TOPIC = "topic"
    TASK = "task"
    REFERENCE = "reference"

    ALL = (TOPIC, TASK, REFERENCE)


class ElementRole:
    """Role of a managed element within a node's visual representation."""
    SHAPE = "shape"
    LABEL = "label"
    CONNECTOR = "connector"

    ALL = (SHAPE, LABEL, CONNECTOR)


class DescriptorKind:
    """Kinds of projected element descriptors."""
    SHAPE = "shape"
    CONNECTOR = "connector"
    TEXT = "text"


class ShortcutAction:
    """Semantic actions produced by the shortcut policy."""
    ADD_CHILD = "add_child"
    ADD_SIBLING = "add_sibling"
    DELETE_NODE = "delete_node"
    TOGGLE_COLLAPSE = "toggle_collapse"
    DESELECT = "deselect"
    START_EDIT = "start_edit"


DEFAULT_ROOT_LABEL = "Central Topic"


# ----------------------------
# Tree model
# ----------------------------

@dataclass(frozen=True)
class Position:
    """A point on the canvas."""
    x: float
    y: float


@dataclass(frozen=True)
class NodeMetadata:
    """Bookkeeping attached to every node."""
    created_at: float
    updated_at: float
    notes: Optional[str] = None
    links: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Node:
    """A single node of the semantic forest.

    ``parent_id`` is ``None`` iff the node is a forest root.  The parent
    should list the node exactly once in ``children_ids``, but walkers
    must not rely on it (see ``tree.subtree``).
    """
    id: str
    label: str
    parent_id: Optional[str]
    metadata: NodeMetadata
    children_ids: Tuple[str, ...] = ()
    kind: str = NodeKind.TOPIC
    collapsed: bool = False
    position: Optional[Position] = None

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


@dataclass(frozen=True)
class ForestState:
    """Complete state of one mind map.

    Instances are treated as immutable: store operations build a new state
    and never edit the dicts of an existing one, so a state object doubles
    as its own history snapshot.
    """
    root_ids: Tuple[str, ...] = ()
    nodes: Dict[str, Node] = field(default_factory=dict)
    deleted_nodes: Dict[str, Node] = field(default_factory=dict)
    selected_node_id: Optional[str] = None
    focus_branch_id: Optional[str] = None


# ----------------------------
# Element ownership tag
# ----------------------------

TAG_OWNER_KEY = "owner_node_id"
TAG_ROLE_KEY = "role"


@dataclass(frozen=True)
class ElementTag:
    """Ownership tag linking a scene element back to its semantic node."""
    owner_node_id: str
    role: str

    def to_dict(self) -> Dict[str, Any]:
        return {TAG_OWNER_KEY: self.owner_node_id, TAG_ROLE_KEY: self.role}

    @classmethod
    def from_dict(cls, d: Any) -> Optional["ElementTag"]:
        """Build a tag from a custom-data payload, or ``None`` if it is not one."""
        if not isinstance(d, dict):
            return None
        owner = d.get(TAG_OWNER_KEY)
        role = d.get(TAG_ROLE_KEY)
        if not isinstance(owner, str) or not owner or role not in ElementRole.ALL:
            return None
        return cls(owner, role)


def shape_element_id(node_id: str) -> str:
    return f"shape-{node_id}"


def label_element_id(node_id: str) -> str:
    return f"label-{node_id}"


def connector_element_id(parent_id: str, node_id: str) -> str:
    return f"arrow-{parent_id}-{node_id}"


MANAGED_ELEMENT_ID_PREFIXES = ("shape-", "arrow-", "label-")
