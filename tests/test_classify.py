"""Tests for managed/unmanaged element classification and node resolution."""
from __future__ import annotations

from models import Node, NodeMetadata
from scene.elements import SceneElement, index_by_id
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

SHAPE_TAG = {"owner_node_id": "node-a", "role": "shape"}
LABEL_TAG = {"owner_node_id": "node-a", "role": "label"}


def shape(element_id="shape-a", custom_data=SHAPE_TAG):
    return SceneElement(id=element_id, type="rectangle", custom_data=custom_data)


def text(element_id, container_id=None, custom_data=None, value=""):
    return SceneElement(id=element_id, type="text", container_id=container_id,
                        custom_data=custom_data, text=value)


# ─────────────────────────────────────────────────────────
# Tags
# ─────────────────────────────────────────────────────────


class TestIsManagedElement:
    def test_valid_tag(self):
        assert is_managed_element(shape()) is True

    def test_missing_or_foreign_custom_data(self):
        assert is_managed_element(shape(custom_data=None)) is False
        assert is_managed_element(shape(custom_data={"foo": "bar"})) is False

    def test_invalid_role(self):
        assert is_managed_element(shape(custom_data={"owner_node_id": "n", "role": "sticker"})) is False

    def test_empty_owner(self):
        assert is_managed_element(shape(custom_data={"owner_node_id": "", "role": "shape"})) is False

    def test_none(self):
        assert is_managed_element(None) is False

    def test_element_tag(self):
        tag = element_tag(shape())
        assert (tag.owner_node_id, tag.role) == ("node-a", "shape")
        assert element_tag(shape(custom_data=None)) is None


class TestManagedIds:
    def test_id_prefixes(self):
        assert has_managed_element_id("shape-n1")
        assert has_managed_element_id("label-n1")
        assert has_managed_element_id("arrow-n1-n2")
        assert not has_managed_element_id("free-abc")
        assert not has_managed_element_id(None)

    def test_managed_ids_only_counts_tagged(self):
        elements = [shape(), shape("shape-b", custom_data=None)]
        assert managed_ids(elements) == {"shape-a"}

    def test_shape_node_id_from_tag_or_id(self):
        assert resolve_managed_shape_node_id(shape()) == "node-a"
        assert resolve_managed_shape_node_id(shape("shape-n7", custom_data=None)) == "n7"
        assert resolve_managed_shape_node_id(shape("shape-", custom_data=None)) is None
        assert resolve_managed_shape_node_id(text("label-a", custom_data=LABEL_TAG)) is None


# ─────────────────────────────────────────────────────────
# Resolution
# ─────────────────────────────────────────────────────────


class TestResolveSelectedManagedNodeId:
    def test_bound_text_maps_to_container(self):
        by_id = index_by_id([shape(), text("label-a", container_id="shape-a")])
        assert resolve_selected_managed_node_id(["label-a"], by_id) == "node-a"

    def test_unmanaged_selection(self):
        by_id = index_by_id([text("free-text", custom_data={"foo": "bar"})])
        assert resolve_selected_managed_node_id(["free-text"], by_id) is None

    def test_first_managed_match_wins(self):
        other = shape("shape-b", custom_data={"owner_node_id": "node-b", "role": "shape"})
        by_id = index_by_id([text("free"), shape(), other])
        assert resolve_selected_managed_node_id(["free", "shape-b", "shape-a"], by_id) == "node-b"

    def test_unknown_ids(self):
        assert resolve_selected_managed_node_id(["ghost"], {}) is None


class TestResolveLabelNodeId:
    def test_tagged_label(self):
        label = text("label-a", custom_data=LABEL_TAG)
        assert resolve_label_node_id(label, index_by_id([label])) == "node-a"

    def test_container_bound_text(self):
        label = text("label-a", container_id="shape-a")
        assert resolve_label_node_id(label, index_by_id([shape(), label])) == "node-a"

    def test_non_text(self):
        s = shape()
        assert resolve_label_node_id(s, index_by_id([s])) is None

    def test_free_text(self):
        free = text("free", container_id="free-box")
        box = shape("free-box", custom_data=None)
        assert resolve_label_node_id(free, index_by_id([free, box])) is None


class TestNormalizeLabelText:
    def test_whitespace_only_becomes_empty(self):
        assert normalize_label_text("   \n\t") == ""
        assert normalize_label_text(None) == ""

    def test_other_text_is_kept_exactly(self):
        assert normalize_label_text("  Idea ") == "  Idea "


# ─────────────────────────────────────────────────────────
# Freeform preservation
# ─────────────────────────────────────────────────────────


class TestIsUnmanagedElement:
    def test_plain_freeform(self):
        assert is_unmanaged_element(shape("free-1", custom_data=None), {"shape-a"}) is True

    def test_tagged(self):
        assert is_unmanaged_element(shape(), set()) is False

    def test_reused_managed_id(self):
        assert is_unmanaged_element(shape("shape-a", custom_data=None), {"shape-a"}) is False

    def test_remembered_id(self):
        el = shape("shape-old", custom_data=None)
        assert is_unmanaged_element(el, set(), {"shape-old"}) is False

    def test_text_bound_to_managed_container(self):
        assert is_unmanaged_element(text("t", container_id="shape-a"), {"shape-a"}) is False

    def test_connector_bound_to_managed(self):
        arrow = SceneElement(id="free-arrow", type="arrow", end_binding="shape-a")
        assert is_unmanaged_element(arrow, {"shape-a"}) is False

    def test_connector_between_freeform(self):
        arrow = SceneElement(id="free-arrow", type="arrow", start_binding="free-1", end_binding="free-2")
        assert is_unmanaged_element(arrow, {"shape-a"}) is True


class TestCollapseToTopmost:
    META = NodeMetadata(created_at=0.0, updated_at=0.0)

    def nodes(self):
        def n(node_id, parent_id=None):
            return Node(id=node_id, label=node_id, parent_id=parent_id, metadata=self.META)
        return {x.id: x for x in (n("r"), n("c", "r"), n("g", "c"), n("s", "r"))}

    def test_drops_descendants(self):
        assert collapse_to_topmost(["g", "c", "s"], self.nodes()) == ["c", "s"]

    def test_root_swallows_everything(self):
        assert collapse_to_topmost(["c", "r", "g"], self.nodes()) == ["r"]

    def test_duplicates_removed(self):
        assert collapse_to_topmost(["s", "s"], self.nodes()) == ["s"]
