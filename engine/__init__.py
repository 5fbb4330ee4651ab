"""
engine package

Pure functions turning the forest into positions and element descriptors.
"""

from engine.layout import PositionMap, compute_layout, normalize_root_ids
from engine.projector import ElementDescriptor, estimate_text_width, fingerprint, project

__all__ = [
    "PositionMap",
    "compute_layout",
    "normalize_root_ids",
    "ElementDescriptor",
    "estimate_text_width",
    "fingerprint",
    "project",
]
