"""
sync package

Scene reconciliation: element classification, frame scheduling and the
bidirectional store <-> scene reconciler.
"""

from sync.classify import (
    collapse_to_topmost,
    element_tag,
    has_managed_element_id,
    is_managed_element,
    is_unmanaged_element,
    managed_ids,
    normalize_label_text,
    resolve_label_node_id,
    resolve_managed_shape_node_id,
    resolve_selected_managed_node_id,
)
from sync.reconciler import SceneReconciler
from sync.scheduler import ManualScheduler, QtFrameScheduler

__all__ = [
    "collapse_to_topmost",
    "element_tag",
    "has_managed_element_id",
    "is_managed_element",
    "is_unmanaged_element",
    "managed_ids",
    "normalize_label_text",
    "resolve_label_node_id",
    "resolve_managed_shape_node_id",
    "resolve_selected_managed_node_id",
    "SceneReconciler",
    "ManualScheduler",
    "QtFrameScheduler",
]
