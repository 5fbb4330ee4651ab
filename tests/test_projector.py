"""Tests for projecting the forest into element descriptors."""
from __future__ import annotations

import pytest

from engine.layout import compute_layout
from engine.projector import estimate_text_width, fingerprint, project
from models import DescriptorKind, ElementRole, Node, NodeKind, NodeMetadata, Position
from settings import AppSettings

META = NodeMetadata(created_at=0.0, updated_at=0.0)


def node(node_id, parent_id=None, children=(), label=None, **kwargs):
    return Node(id=node_id, label=node_id if label is None else label, parent_id=parent_id,
                metadata=META, children_ids=tuple(children), **kwargs)


def table(*items):
    return {n.id: n for n in items}


@pytest.fixture()
def forest():
    return table(
        node("r", children=["c"], label="Root"),
        node("c", parent_id="r", label="A fairly long child label", kind=NodeKind.TASK),
    )


def run(nodes, settings, roots=("r",)):
    return project(list(roots), nodes, compute_layout(list(roots), nodes, settings.layout), settings)


# ─────────────────────────────────────────────────────────
# Width estimate
# ─────────────────────────────────────────────────────────


class TestEstimateTextWidth:
    def test_short_labels_use_minimum(self, app_settings):
        assert estimate_text_width("Root", app_settings.projection) == 160.0
        assert estimate_text_width("", app_settings.projection) == 160.0

    def test_long_labels_grow(self, app_settings):
        label = "x" * 20
        assert estimate_text_width(label, app_settings.projection) == pytest.approx(20 * 18 * 0.6 + 32)


# ─────────────────────────────────────────────────────────
# Descriptors
# ─────────────────────────────────────────────────────────


class TestProject:
    def test_ids_kinds_and_order(self, forest, app_settings):
        descriptors = run(forest, app_settings)
        assert [d.id for d in descriptors] == ["shape-r", "shape-c", "arrow-r-c"]
        assert [d.kind for d in descriptors] == [
            DescriptorKind.SHAPE, DescriptorKind.SHAPE, DescriptorKind.CONNECTOR,
        ]

    def test_tags(self, forest, app_settings):
        by_id = {d.id: d for d in run(forest, app_settings)}
        assert by_id["shape-r"].tag.owner_node_id == "r"
        assert by_id["shape-r"].tag.role == ElementRole.SHAPE
        assert by_id["arrow-r-c"].tag.owner_node_id == "c"
        assert by_id["arrow-r-c"].tag.role == ElementRole.CONNECTOR

    def test_shape_geometry(self, forest, app_settings):
        by_id = {d.id: d for d in run(forest, app_settings)}
        child = by_id["shape-c"]
        assert (child.x, child.y) == (280.0, 0.0)
        assert child.width == pytest.approx(estimate_text_width("A fairly long child label", app_settings.projection))
        assert child.height == 44.0
        assert child.label == "A fairly long child label"

    def test_connector_runs_from_parent_edge_to_child(self, forest, app_settings):
        by_id = {d.id: d for d in run(forest, app_settings)}
        arrow = by_id["arrow-r-c"]
        assert arrow.x == 160.0
        assert arrow.y == 22.0
        assert arrow.points == ((0.0, 0.0), (120.0, 0.0))
        assert arrow.start_element_id == "shape-r"
        assert arrow.end_element_id == "shape-c"
        assert arrow.label is None
        assert arrow.style["end_arrowhead"] == "arrow"

    def test_root_and_kind_styles(self, forest, app_settings):
        by_id = {d.id: d for d in run(forest, app_settings)}
        assert by_id["shape-r"].style["background_color"] == app_settings.styles.root.background
        assert by_id["shape-c"].style["background_color"] == app_settings.styles.task.background
        assert by_id["shape-c"].style["stroke_width"] == app_settings.projection.stroke_width

    def test_blank_label_becomes_space(self, app_settings):
        nodes = table(node("r", label=""))
        assert run(nodes, app_settings)[0].label == " "

    def test_collapsed_children_not_projected(self, app_settings):
        nodes = table(
            node("r", children=["c"], collapsed=True),
            node("c", parent_id="r"),
        )
        assert [d.id for d in run(nodes, app_settings)] == ["shape-r"]

    def test_unpositioned_nodes_are_skipped(self, forest, app_settings):
        descriptors = project(["r"], forest, {"r": Position(0, 0)}, app_settings)
        assert [d.id for d in descriptors] == ["shape-r"]

    def test_manual_position_moves_shape(self, app_settings):
        nodes = table(node("r", position=Position(420, 180)))
        shape = run(nodes, app_settings)[0]
        assert (shape.x, shape.y) == (420, 180)

    def test_to_dict_is_plain_data(self, forest, app_settings):
        d = run(forest, app_settings)[2].to_dict()
        assert d["points"] == [[0.0, 0.0], [120.0, 0.0]]
        assert d["tag"] == {"owner_node_id": "c", "role": "connector"}


class TestFingerprint:
    def test_stable_for_equal_input(self, forest, app_settings):
        assert fingerprint(run(forest, app_settings)) == fingerprint(run(forest, app_settings))

    def test_changes_with_labels(self, forest, app_settings):
        before = fingerprint(run(forest, app_settings))
        forest["r"] = node("r", children=["c"], label="Renamed")
        assert fingerprint(run(forest, app_settings)) != before

    def test_extra_state_participates(self, forest, app_settings):
        descriptors = run(forest, app_settings)
        assert fingerprint(descriptors, ["shape-r"]) != fingerprint(descriptors, [])
