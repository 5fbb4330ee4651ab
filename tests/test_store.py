"""Tests for TreeStore: CRUD, soft delete/restore under structural drift,
selection rules and snapshot undo/redo.
"""
from __future__ import annotations

from dataclasses import replace

import pytest

from models import ForestState, NodeKind, NodeNotFoundError, Position
from tree.store import TreeStore, get_store, reset_store
from tree.subtree import ancestor_chain, build_children_index, collect_subtree


def _build(store: TreeStore):
    """Root with a child and a grandchild; returns their ids."""
    root = store.create_root("Root")
    child = store.add_child(root, "Child")
    grandchild = store.add_child(child, "Grandchild")
    return root, child, grandchild


# ─────────────────────────────────────────────────────────
# Creation
# ─────────────────────────────────────────────────────────


class TestCreateRoot:
    def test_appends_and_selects(self, store):
        a = store.create_root("A")
        b = store.create_root("B")
        state = store.get_state()
        assert state.root_ids == (a, b)
        assert state.selected_node_id == b
        assert state.nodes[a].parent_id is None
        assert state.nodes[a].kind == NodeKind.TOPIC
        assert state.nodes[a].collapsed is False

    def test_default_label(self, store):
        root = store.create_root()
        assert store.get_state().nodes[root].label == "Central Topic"

    def test_ids_are_unique(self, store):
        ids = {store.create_root(str(i)) for i in range(20)}
        assert len(ids) == 20

    def test_ensure_root_only_when_empty(self, store):
        first = store.ensure_root("Main")
        assert first is not None
        assert store.ensure_root("Again") is None
        assert store.get_state().root_ids == (first,)


class TestAddChild:
    def test_appends_child_and_selects_it(self, store):
        root = store.create_root("Root")
        c1 = store.add_child(root, "one")
        c2 = store.add_child(root, "two")
        state = store.get_state()
        assert state.nodes[root].children_ids == (c1, c2)
        assert state.nodes[c2].parent_id == root
        assert state.selected_node_id == c2

    def test_expands_collapsed_parent(self, store):
        root = store.create_root("Root")
        store.add_child(root)
        store.toggle_collapse(root)
        assert store.get_state().nodes[root].collapsed is True
        store.add_child(root)
        assert store.get_state().nodes[root].collapsed is False

    def test_missing_parent_raises(self, store):
        with pytest.raises(NodeNotFoundError) as excinfo:
            store.add_child("nope")
        assert excinfo.value.node_id == "nope"

    def test_missing_parent_is_a_key_error(self, store):
        with pytest.raises(KeyError):
            store.add_child("nope")
        assert not store.can_undo


class TestAddSibling:
    def test_inserts_right_after_sibling(self, store):
        root = store.create_root("Root")
        a = store.add_child(root, "a")
        b = store.add_child(root, "b")
        new = store.add_sibling(a, "between")
        state = store.get_state()
        assert state.nodes[root].children_ids == (a, new, b)
        assert state.nodes[new].parent_id == root
        assert state.selected_node_id == new

    def test_root_returns_same_id_without_history(self, store):
        root = store.create_root("Root")
        store.clear_history()
        before = store.get_state()
        assert store.add_sibling(root) == root
        assert store.get_state() is before
        assert not store.can_undo

    def test_unknown_id_returns_same_id(self, store):
        assert store.add_sibling("ghost") == "ghost"

    def test_sibling_missing_from_parent_list_is_appended(self, store):
        root = store.create_root("Root")
        a = store.add_child(root, "a")
        b = store.add_child(root, "b")
        state = store.get_state()
        nodes = dict(state.nodes)
        nodes[root] = replace(nodes[root], children_ids=(b,))
        store.set_state(replace(state, nodes=nodes))

        new = store.add_sibling(a)
        assert store.get_state().nodes[root].children_ids == (b, new)


# ─────────────────────────────────────────────────────────
# Edits
# ─────────────────────────────────────────────────────────


class TestEdits:
    def test_update_label_touches_metadata(self, store):
        root = store.create_root("Root")
        before = store.get_state().nodes[root].metadata.updated_at
        store.update_label(root, "Renamed")
        node = store.get_state().nodes[root]
        assert node.label == "Renamed"
        assert node.metadata.updated_at > before
        assert node.metadata.created_at < node.metadata.updated_at

    def test_update_label_unchanged_is_noop(self, store):
        root = store.create_root("Root")
        store.clear_history()
        store.update_label(root, "Root")
        assert not store.can_undo

    def test_update_label_is_exact(self, store):
        root = store.create_root("Root")
        store.update_label(root, "Root ")
        assert store.get_state().nodes[root].label == "Root "

    def test_toggle_collapse_requires_children(self, store):
        root = store.create_root("Root")
        store.clear_history()
        store.toggle_collapse(root)
        assert store.get_state().nodes[root].collapsed is False
        assert not store.can_undo

    def test_toggle_collapse_flips(self, store):
        root = store.create_root("Root")
        store.add_child(root)
        store.toggle_collapse(root)
        store.toggle_collapse(root)
        assert store.get_state().nodes[root].collapsed is False

    def test_set_node_kind(self, store):
        root = store.create_root("Root")
        store.set_node_kind(root, NodeKind.TASK)
        assert store.get_state().nodes[root].kind == NodeKind.TASK

    def test_set_node_kind_unknown_is_noop(self, store):
        root = store.create_root("Root")
        store.clear_history()
        store.set_node_kind(root, "bogus")
        assert store.get_state().nodes[root].kind == NodeKind.TOPIC
        assert not store.can_undo

    def test_set_node_position(self, store):
        root = store.create_root("Root")
        store.set_node_position(root, Position(10, 20))
        assert store.get_state().nodes[root].position == Position(10, 20)
        store.clear_history()
        store.set_node_position(root, Position(10, 20))
        assert not store.can_undo

    def test_stale_ids_are_silent(self, store):
        store.create_root("Root")
        store.clear_history()
        before = store.get_state()
        store.update_label("ghost", "x")
        store.toggle_collapse("ghost")
        store.set_node_kind("ghost", NodeKind.TASK)
        store.set_node_position("ghost", Position(1, 1))
        store.delete_node("ghost")
        store.restore_node("ghost")
        assert store.get_state() is before
        assert not store.can_undo


class TestViewState:
    def test_select_node_pushes_no_history(self, store):
        root = store.create_root("Root")
        store.clear_history()
        store.select_node(None)
        store.select_node(root)
        assert store.get_state().selected_node_id == root
        assert not store.can_undo

    def test_focus_branch(self, store):
        root = store.create_root("Root")
        store.clear_history()
        store.set_focus_branch(root)
        assert store.get_state().focus_branch_id == root
        store.set_focus_branch("ghost")
        assert store.get_state().focus_branch_id == root
        store.set_focus_branch(None)
        assert store.get_state().focus_branch_id is None
        assert not store.can_undo


# ─────────────────────────────────────────────────────────
# Soft delete and restore
# ─────────────────────────────────────────────────────────


class TestDeleteNode:
    def test_removes_subtree_into_deleted(self, store):
        root, child, grandchild = _build(store)
        store.delete_node(child)
        state = store.get_state()
        assert root in state.nodes
        assert child not in state.nodes[root].children_ids
        assert child not in state.nodes and grandchild not in state.nodes
        assert child in state.deleted_nodes and grandchild in state.deleted_nodes

    def test_removes_descendants_when_children_list_is_stale(self, store):
        root = store.create_root("Root")
        child = store.add_child(root, "Child")
        state = store.get_state()
        nodes = dict(state.nodes)
        nodes[root] = replace(nodes[root], children_ids=())
        store.set_state(replace(state, nodes=nodes))

        store.delete_node(root)
        state = store.get_state()
        assert root not in state.nodes and child not in state.nodes
        assert root in state.deleted_nodes and child in state.deleted_nodes
        assert state.root_ids == ()

    def test_removes_descendants_when_parent_reference_is_stale(self, store):
        root = store.create_root("Root")
        child = store.add_child(root, "Child")
        state = store.get_state()
        nodes = dict(state.nodes)
        nodes[child] = replace(nodes[child], parent_id="elsewhere")
        store.set_state(replace(state, nodes=nodes))

        store.delete_node(root)
        assert child in store.get_state().deleted_nodes

    def test_selection_moves_to_parent(self, store):
        root, child, grandchild = _build(store)
        store.select_node(grandchild)
        store.delete_node(child)
        assert store.get_state().selected_node_id == root

    def test_selection_outside_subtree_is_kept(self, store):
        root, child, grandchild = _build(store)
        other = store.add_child(root, "Other")
        store.select_node(other)
        store.delete_node(child)
        assert store.get_state().selected_node_id == other

    def test_deleting_selected_root_selects_last_remaining_root(self, store):
        a = store.create_root("A")
        b = store.create_root("B")
        c = store.create_root("C")
        store.select_node(b)
        store.delete_node(b)
        state = store.get_state()
        assert state.root_ids == (a, c)
        assert state.selected_node_id == c

    def test_deleting_last_root_clears_selection(self, store):
        root = store.create_root("Root")
        store.delete_node(root)
        assert store.get_state().selected_node_id is None


class TestRestoreNode:
    def test_restores_subtree_and_reattaches(self, store):
        root, child, grandchild = _build(store)
        store.delete_node(child)
        store.restore_node(child)
        state = store.get_state()
        assert child in state.nodes and grandchild in state.nodes
        assert child in state.nodes[root].children_ids
        assert state.deleted_nodes == {}

    def test_restores_root(self, store):
        a = store.create_root("A")
        b = store.create_root("B")
        store.delete_node(a)
        store.restore_node(a)
        assert store.get_state().root_ids == (b, a)

    def test_restore_under_deleted_parent_keeps_node_unattached(self, store):
        root, child, grandchild = _build(store)
        store.delete_node(child)
        # Grandchild alone: its parent is still deleted
        store.restore_node(grandchild)
        state = store.get_state()
        assert grandchild in state.nodes
        assert child in state.deleted_nodes
        assert grandchild not in state.root_ids


# ─────────────────────────────────────────────────────────
# Undo / redo
# ─────────────────────────────────────────────────────────


class TestHistory:
    def test_undo_restores_exact_snapshot(self, store):
        root = store.create_root("Root")
        before = store.get_state()
        store.add_child(root, "Child")
        after = store.get_state()

        store.undo()
        assert store.get_state() is before
        store.redo()
        assert store.get_state() is after

    def test_undo_of_delete_brings_back_subtree(self, store):
        root, child, grandchild = _build(store)
        store.delete_node(child)
        store.undo()
        state = store.get_state()
        assert child in state.nodes and grandchild in state.nodes
        assert state.deleted_nodes == {}

    def test_new_mutation_clears_redo(self, store):
        root = store.create_root("Root")
        store.update_label(root, "One")
        store.undo()
        assert store.can_redo
        store.update_label(root, "Two")
        assert not store.can_redo

    def test_empty_stacks_are_noops(self, store):
        before = store.get_state()
        store.undo()
        store.redo()
        assert store.get_state() is before

    def test_history_limit_drops_oldest(self, clock):
        store = TreeStore(history_limit=3, clock=clock)
        root = store.create_root("Root")
        for label in ("a", "b", "c", "d"):
            store.update_label(root, label)
        undos = 0
        while store.can_undo:
            store.undo()
            undos += 1
        assert undos == 3
        assert store.get_state().nodes[root].label == "a"

    def test_default_limit_comes_from_settings(self, isolated_settings):
        isolated_settings.settings.history.limit = 2
        store = TreeStore()
        root = store.create_root("Root")
        store.update_label(root, "a")
        store.update_label(root, "b")
        store.undo()
        store.undo()
        assert not store.can_undo


# ─────────────────────────────────────────────────────────
# Container API
# ─────────────────────────────────────────────────────────


class TestContainer:
    def test_subscribe_and_unsubscribe(self, store):
        seen = []
        unsubscribe = store.subscribe(seen.append)
        store.create_root("Root")
        unsubscribe()
        store.create_root("Other")
        assert len(seen) == 1
        assert isinstance(seen[0], ForestState)

    def test_set_state_notifies_without_history(self, store):
        seen = []
        store.subscribe(seen.append)
        store.set_state(ForestState())
        assert len(seen) == 1
        assert not store.can_undo

    def test_singleton(self):
        reset_store()
        assert get_store() is get_store()
        first = get_store()
        reset_store()
        assert get_store() is not first


class TestSubtree:
    def test_union_of_both_sources(self, store):
        root, child, grandchild = _build(store)
        state = store.get_state()
        assert set(collect_subtree(root, state.nodes)) == {root, child, grandchild}
        assert collect_subtree(root, state.nodes)[0] == root

    def test_missing_ids_are_skipped(self, store):
        root = store.create_root("Root")
        state = store.get_state()
        nodes = dict(state.nodes)
        nodes[root] = replace(nodes[root], children_ids=("ghost",))
        assert collect_subtree(root, nodes) == [root]

    def test_children_index(self, store):
        root, child, grandchild = _build(store)
        index = build_children_index(store.get_state().nodes)
        assert index[root] == [child]
        assert index[child] == [grandchild]

    def test_ancestor_chain_nearest_first(self, store):
        root, child, grandchild = _build(store)
        assert ancestor_chain(grandchild, store.get_state().nodes) == [child, root]
