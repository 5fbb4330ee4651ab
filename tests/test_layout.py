"""Tests for the offset-based tree layout."""
from __future__ import annotations

from dataclasses import replace

from engine.layout import compute_layout, normalize_root_ids, visible_children
from models import Node, NodeMetadata, Position
from settings import LayoutSettings

META = NodeMetadata(created_at=0.0, updated_at=0.0)
SETTINGS = LayoutSettings(horizontal_gap=280.0, vertical_gap=80.0, node_height=44.0)
ROW = 124.0


def node(node_id, parent_id=None, children=(), **kwargs):
    return Node(id=node_id, label=node_id, parent_id=parent_id, metadata=META,
                children_ids=tuple(children), **kwargs)


def table(*items):
    return {n.id: n for n in items}


# ─────────────────────────────────────────────────────────
# Root normalization
# ─────────────────────────────────────────────────────────


class TestNormalizeRootIds:
    def test_keeps_listed_order(self):
        nodes = table(node("a"), node("b"))
        assert normalize_root_ids(["b", "a"], nodes) == ["b", "a"]

    def test_accepts_single_string(self):
        nodes = table(node("a"))
        assert normalize_root_ids("a", nodes) == ["a"]

    def test_appends_unlisted_parentless_nodes(self):
        nodes = table(node("a"), node("b"))
        assert normalize_root_ids(["a"], nodes) == ["a", "b"]

    def test_drops_duplicates_missing_and_non_roots(self):
        nodes = table(node("a", children=["c"]), node("c", parent_id="a"))
        assert normalize_root_ids(["a", "a", "ghost", "c", ""], nodes) == ["a"]

    def test_none_means_all_parentless(self):
        nodes = table(node("a"), node("b"))
        assert normalize_root_ids(None, nodes) == ["a", "b"]


# ─────────────────────────────────────────────────────────
# Positions
# ─────────────────────────────────────────────────────────


class TestComputeLayout:
    def test_empty_forest(self):
        assert compute_layout([], {}, SETTINGS) == {}

    def test_single_root_at_origin(self):
        positions = compute_layout(["a"], table(node("a")), SETTINGS)
        assert positions == {"a": Position(0.0, 0.0)}

    def test_children_stack_and_parent_is_centered(self):
        nodes = table(
            node("r", children=["c1", "c2", "c3"]),
            node("c1", parent_id="r"),
            node("c2", parent_id="r"),
            node("c3", parent_id="r"),
        )
        positions = compute_layout(["r"], nodes, SETTINGS)
        assert positions["c1"] == Position(280.0, 0.0)
        assert positions["c2"] == Position(280.0, ROW)
        assert positions["c3"] == Position(280.0, 2 * ROW)
        assert positions["r"] == Position(0.0, ROW)

    def test_depth_sets_column(self):
        nodes = table(
            node("r", children=["c"]),
            node("c", parent_id="r", children=["g"]),
            node("g", parent_id="c"),
        )
        positions = compute_layout(["r"], nodes, SETTINGS)
        assert positions["g"].x == 560.0
        assert positions["r"].y == positions["c"].y == positions["g"].y == 0.0

    def test_distinct_roots_share_one_cursor(self):
        nodes = table(
            node("a", children=["a1", "a2"]),
            node("a1", parent_id="a"),
            node("a2", parent_id="a"),
            node("b"),
        )
        positions = compute_layout(["a", "b"], nodes, SETTINGS)
        assert positions["b"] == Position(0.0, 2 * ROW)
        assert positions["a"].y != positions["b"].y

    def test_collapsed_parent_hides_children(self):
        nodes = table(
            node("r", children=["c"], collapsed=True),
            node("c", parent_id="r"),
            node("other"),
        )
        positions = compute_layout(["r", "other"], nodes, SETTINGS)
        assert "c" not in positions
        # A collapsed branch takes a single row
        assert positions["other"].y == ROW

    def test_manual_position_is_used_verbatim(self):
        nodes = table(node("a", position=Position(420, 180)))
        assert compute_layout(["a"], nodes, SETTINGS)["a"] == Position(420, 180)

    def test_override_does_not_move_children(self):
        nodes = table(
            node("r", children=["c"], position=Position(-500, -500)),
            node("c", parent_id="r"),
        )
        positions = compute_layout(["r"], nodes, SETTINGS)
        assert positions["c"] == Position(280.0, 0.0)

    def test_unlisted_root_still_laid_out(self):
        nodes = table(node("a"), node("b"))
        positions = compute_layout(["a"], nodes, SETTINGS)
        assert positions["b"] == Position(0.0, ROW)

    def test_string_root_ids(self):
        positions = compute_layout("a", table(node("a")), SETTINGS)
        assert "a" in positions

    def test_missing_children_are_skipped(self):
        nodes = table(node("r", children=["ghost", "c"]), node("c", parent_id="r"))
        positions = compute_layout(["r"], nodes, SETTINGS)
        assert set(positions) == {"r", "c"}

    def test_child_listed_twice_is_placed_once(self):
        nodes = table(node("r", children=["c", "c"]), node("c", parent_id="r"), node("z"))
        positions = compute_layout(["r", "z"], nodes, SETTINGS)
        assert positions["z"].y == ROW

    def test_unreachable_nodes_are_omitted(self):
        nodes = table(node("r"), node("orphan", parent_id="gone"))
        assert "orphan" not in compute_layout(["r"], nodes, SETTINGS)

    def test_defaults_come_from_settings(self, isolated_settings):
        isolated_settings.settings.layout.horizontal_gap = 100.0
        nodes = table(node("r", children=["c"]), node("c", parent_id="r"))
        assert compute_layout(["r"], nodes)["c"].x == 100.0


class TestVisibleChildren:
    def test_collapsed(self):
        nodes = table(node("r", children=["c"], collapsed=True), node("c", parent_id="r"))
        assert visible_children(nodes["r"], nodes) == []

    def test_live_only(self):
        nodes = table(node("r", children=["c", "ghost"]), node("c", parent_id="r"))
        assert visible_children(nodes["r"], nodes) == ["c"]

    def test_expanding_restores_children(self):
        r = node("r", children=["c"], collapsed=True)
        nodes = table(replace(r, collapsed=False), node("c", parent_id="r"))
        assert visible_children(nodes["r"], nodes) == ["c"]
