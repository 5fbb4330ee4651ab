"""
main.py

MindSync - Mind Map Canvas

PyQt6 application keeping a mind map tree and a freeform canvas in sync:
- Keyboard-driven node editing (Tab, Enter, Delete, Space, Escape, F2)
- Nodes laid out automatically, draggable to override their position
- Freeform shapes, lines and text alongside the map
- Undo/redo of every tree change
- Canvas elements copied and pasted as JSON through the clipboard
- Zoom to a focused branch

Usage:
    python main.py

Dependencies:
    pip install PyQt6 platformdirs tomli-w jsonschema

Environment:
    MINDSYNC_TRACE=1 (or "all") enables trace output
"""

from __future__ import annotations

import json
import sys
import traceback
from typing import Optional

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QAction, QActionGroup, QKeySequence
from PyQt6.QtWidgets import QApplication, QComboBox, QLabel, QMainWindow, QMessageBox, QToolBar

from canvas import MindmapScene, MindmapView, Mode, has_shortcut_modifier, key_name
from models import ElementSchemaError, ForestState, NodeKind, shape_element_id
from settings import SettingsManager, get_settings
from shortcuts import ShortcutDispatcher
from sync import QtFrameScheduler, SceneReconciler
from tree import TreeStore, collect_subtree, get_store
from debug_trace import trace, trace_exception, close_log

NODE_KIND_LABELS = {
    NodeKind.TOPIC: "Topic",
    NodeKind.TASK: "Task",
    NodeKind.REFERENCE: "Reference",
}


class MainWindow(QMainWindow):
    """Main application window.

    Args:
        settings_manager: The SettingsManager instance for application settings.
        store: Tree store to edit; defaults to the process-wide store.
    """

    def __init__(self, settings_manager: SettingsManager, store: Optional[TreeStore] = None):
        super().__init__()
        self.settings_manager = settings_manager
        settings = settings_manager.settings
        self.setWindowTitle("MindSync - Mind Map Canvas")

        self.store = store if store is not None else get_store()
        if self.store.ensure_root(settings.root_label) is not None:
            self.store.clear_history()

        # Scene and view
        self.scene = MindmapScene()
        self.view = MindmapView(self.scene)
        self.setCentralWidget(self.view)

        # Sync engine
        self.reconciler = SceneReconciler(
            self.store, self.scene, QtFrameScheduler(settings.sync.frame_ms), settings,
        )
        self.dispatcher = ShortcutDispatcher(self.store, self.reconciler)
        self.view.key_handler = self._on_canvas_key

        self._focused_branch: Optional[str] = None
        self._build_menus()
        self._build_toolbar()
        self.scene.set_mode_finished_callback(lambda: self.set_mode(Mode.SELECT))

        self._unsubscribe = self.store.subscribe(self._on_store_changed)
        self.reconciler.attach()
        self._on_store_changed(self.store.get_state())

        self.statusBar().showMessage("Select a node and press Tab / Enter to create, F2 to rename.")

    def _build_menus(self):
        """Build the application menu bar."""
        menubar = self.menuBar()

        # File menu
        file_menu = menubar.addMenu("&File")

        new_map = QAction("&New Map", self)
        new_map.setShortcut(QKeySequence.StandardKey.New)
        new_map.triggered.connect(self.new_map)
        file_menu.addAction(new_map)

        file_menu.addSeparator()

        exit_act = QAction("E&xit", self)
        exit_act.setShortcut(QKeySequence.StandardKey.Quit)
        exit_act.triggered.connect(self.close)
        file_menu.addAction(exit_act)

        # Edit menu
        edit_menu = menubar.addMenu("&Edit")

        self.undo_act = QAction("&Undo", self)
        self.undo_act.setShortcut(QKeySequence.StandardKey.Undo)
        self.undo_act.triggered.connect(self.store.undo)
        edit_menu.addAction(self.undo_act)

        self.redo_act = QAction("&Redo", self)
        self.redo_act.setShortcut(QKeySequence.StandardKey.Redo)
        self.redo_act.triggered.connect(self.store.redo)
        edit_menu.addAction(self.redo_act)

        edit_menu.addSeparator()

        copy_act = QAction("&Copy Elements", self)
        copy_act.setShortcut(QKeySequence("Ctrl+Shift+C"))
        copy_act.triggered.connect(self.copy_elements)
        edit_menu.addAction(copy_act)

        paste_act = QAction("&Paste Elements", self)
        paste_act.setShortcut(QKeySequence("Ctrl+Shift+V"))
        paste_act.triggered.connect(self.paste_elements)
        edit_menu.addAction(paste_act)

        delete_elements = QAction("Delete Selected Elements", self)
        delete_elements.setShortcut(QKeySequence("Shift+Delete"))
        delete_elements.triggered.connect(self.scene.delete_selected)
        edit_menu.addAction(delete_elements)

        # Node menu (keys are handled on the canvas; shown here for discovery)
        node_menu = menubar.addMenu("&Node")

        self.add_child_act = QAction("Add Child\tTab", self)
        self.add_child_act.triggered.connect(lambda: self._perform_on_selection("Tab"))
        node_menu.addAction(self.add_child_act)

        self.add_sibling_act = QAction("Add Sibling\tEnter", self)
        self.add_sibling_act.triggered.connect(lambda: self._perform_on_selection("Enter"))
        node_menu.addAction(self.add_sibling_act)

        self.rename_act = QAction("Rename\tF2", self)
        self.rename_act.triggered.connect(lambda: self._perform_on_selection("F2"))
        node_menu.addAction(self.rename_act)

        self.collapse_act = QAction("Collapse / Expand\tSpace", self)
        self.collapse_act.triggered.connect(lambda: self._perform_on_selection(" "))
        node_menu.addAction(self.collapse_act)

        self.delete_node_act = QAction("Delete Node\tDelete", self)
        self.delete_node_act.triggered.connect(lambda: self._perform_on_selection("Delete"))
        node_menu.addAction(self.delete_node_act)

        node_menu.addSeparator()

        add_root = QAction("New Root Topic", self)
        add_root.triggered.connect(lambda: self.store.create_root(self.settings_manager.settings.root_label))
        node_menu.addAction(add_root)

        # View menu
        view_menu = menubar.addMenu("&View")

        zoom_fit = QAction("Zoom to &Fit", self)
        zoom_fit.setShortcut(QKeySequence("Ctrl+0"))
        zoom_fit.triggered.connect(self.view.zoom_fit)
        view_menu.addAction(zoom_fit)

        zoom_in = QAction("Zoom &In", self)
        zoom_in.setShortcut(QKeySequence.StandardKey.ZoomIn)
        zoom_in.triggered.connect(self.view.zoom_in)
        view_menu.addAction(zoom_in)

        zoom_out = QAction("Zoom &Out", self)
        zoom_out.setShortcut(QKeySequence.StandardKey.ZoomOut)
        zoom_out.triggered.connect(self.view.zoom_out)
        view_menu.addAction(zoom_out)

        zoom_reset = QAction("&Actual Size", self)
        zoom_reset.setShortcut(QKeySequence("Ctrl+1"))
        zoom_reset.triggered.connect(self.view.zoom_reset)
        view_menu.addAction(zoom_reset)

        view_menu.addSeparator()

        self.focus_act = QAction("Focus &Branch", self)
        self.focus_act.setShortcut(QKeySequence("Ctrl+B"))
        self.focus_act.triggered.connect(self.focus_selected_branch)
        view_menu.addAction(self.focus_act)

        clear_focus = QAction("&Clear Focus", self)
        clear_focus.setShortcut(QKeySequence("Ctrl+Shift+B"))
        clear_focus.triggered.connect(lambda: self.store.set_focus_branch(None))
        view_menu.addAction(clear_focus)

    def _build_toolbar(self):
        """Build the drawing mode and node toolbar."""
        tb = QToolBar("Tools", self)
        tb.setMovable(False)
        self.addToolBar(tb)

        self.mode_group = QActionGroup(self)
        self.mode_group.setExclusive(True)
        self.mode_actions = {}

        def add_mode_action(text: str, mode: str, shortcut: str):
            act = QAction(text, self)
            act.setCheckable(True)
            act.setShortcut(QKeySequence(shortcut))
            act.triggered.connect(lambda checked, m=mode: self.set_mode(m))
            self.mode_group.addAction(act)
            tb.addAction(act)
            self.mode_actions[mode] = act

        add_mode_action("Select", Mode.SELECT, "V")
        add_mode_action("Rectangle", Mode.RECT, "R")
        add_mode_action("Ellipse", Mode.ELLIPSE, "O")
        add_mode_action("Line", Mode.LINE, "L")
        add_mode_action("Text", Mode.TEXT, "T")
        self.mode_actions[Mode.SELECT].setChecked(True)

        tb.addSeparator()

        self.node_label = QLabel("")
        tb.addWidget(self.node_label)

        self.kind_combo = QComboBox()
        for kind in NodeKind.ALL:
            self.kind_combo.addItem(NODE_KIND_LABELS[kind], kind)
        self.kind_combo.currentIndexChanged.connect(self._on_kind_selected)
        tb.addWidget(self.kind_combo)

        tb.addAction(self.collapse_act)
        tb.addAction(self.delete_node_act)

        tb.addSeparator()
        tb.addAction(self.undo_act)
        tb.addAction(self.redo_act)

    # ---- modes ----

    def set_mode(self, mode: str):
        """Switch the canvas interaction mode."""
        self.scene.set_mode(mode)
        act = self.mode_actions.get(mode)
        if act is not None and not act.isChecked():
            act.setChecked(True)
        self.view.setDragMode(
            MindmapView.DragMode.RubberBandDrag if mode == Mode.SELECT else MindmapView.DragMode.NoDrag
        )

    # ---- keyboard ----

    def _on_canvas_key(self, event) -> bool:
        name = key_name(event)
        modifier = has_shortcut_modifier(event)
        if self.dispatcher.handle_key(name, has_modifier=modifier):
            return True
        # No node selected: Delete erases the selected freeform elements
        if name in ("Delete", "Backspace") and not modifier:
            return self.scene.delete_selected() > 0
        return False

    def _perform_on_selection(self, key: str):
        if not self.dispatcher.handle_key(key):
            self.statusBar().showMessage("Select a node first.", 3000)

    # ---- store reactions ----

    def _on_store_changed(self, state: ForestState):
        self.undo_act.setEnabled(self.store.can_undo)
        self.redo_act.setEnabled(self.store.can_redo)

        node = state.nodes.get(state.selected_node_id) if state.selected_node_id else None
        has_node = node is not None
        for act in (self.add_child_act, self.add_sibling_act, self.rename_act, self.collapse_act, self.focus_act):
            act.setEnabled(has_node)
        self.delete_node_act.setEnabled(has_node and not node.is_root)
        self.collapse_act.setEnabled(has_node and bool(node.children_ids))
        self.kind_combo.setEnabled(has_node)

        self.node_label.setText((node.label or "(empty)") if has_node else "")
        if has_node:
            self.kind_combo.blockSignals(True)
            self.kind_combo.setCurrentIndex(max(0, self.kind_combo.findData(node.kind)))
            self.kind_combo.blockSignals(False)

        if state.focus_branch_id != self._focused_branch:
            self._focused_branch = state.focus_branch_id
            self._show_focus(state)

    def _show_focus(self, state: ForestState):
        """Zoom to the focused branch, or to everything when focus is cleared."""
        if state.focus_branch_id is None or state.focus_branch_id not in state.nodes:
            self.view.zoom_fit()
            self.statusBar().showMessage("Focus cleared.", 3000)
            return
        ids = {shape_element_id(i) for i in collect_subtree(state.focus_branch_id, state.nodes)}
        elements = [el for el in self.scene.get_scene_elements() if el.id in ids and not el.is_deleted]
        self.scene.scroll_to_content(elements, fit=True)
        label = state.nodes[state.focus_branch_id].label or "(empty)"
        self.statusBar().showMessage(f"Focused on branch: {label}", 3000)

    def focus_selected_branch(self):
        """Focus the view on the selected node's branch."""
        node_id = self.dispatcher.selected_node_id()
        if node_id is None:
            self.statusBar().showMessage("Select a node first.", 3000)
            return
        self.store.set_focus_branch(node_id)

    # ---- clipboard ----

    def copy_elements(self):
        """Copy the selected canvas elements to the clipboard as JSON."""
        payload = self.scene.copy_payload()
        if not payload:
            self.statusBar().showMessage("Nothing selected to copy.", 3000)
            return
        QApplication.clipboard().setText(json.dumps(payload, indent=2))
        self.statusBar().showMessage(f"Copied {len(payload)} element(s).", 3000)

    def paste_elements(self):
        """Paste clipboard JSON as freeform canvas elements."""
        text = QApplication.clipboard().text().strip()
        if not text:
            return
        try:
            items = self.scene.paste_payload(json.loads(text))
        except (json.JSONDecodeError, ElementSchemaError) as e:
            trace(f"paste rejected: {e}", "MAIN")
            QMessageBox.warning(self, "Paste failed", f"Clipboard does not hold canvas elements:\n{e}")
            return
        self.statusBar().showMessage(f"Pasted {len(items)} element(s).", 3000)

    def _on_kind_selected(self, index: int):
        node_id = self.dispatcher.selected_node_id()
        if node_id is None:
            return
        self.store.set_node_kind(node_id, self.kind_combo.itemData(index))
        self.view.setFocus(Qt.FocusReason.OtherFocusReason)

    def new_map(self):
        """Discard the current map and start over with a single root."""
        trace("New map", "MAIN")
        self.store.set_state(ForestState())
        self.store.ensure_root(self.settings_manager.settings.root_label)
        self.store.clear_history()
        self._on_store_changed(self.store.get_state())

    def closeEvent(self, event):
        self.reconciler.detach()
        self._unsubscribe()
        super().closeEvent(event)


def excepthook(exc_type, exc_value, exc_tb):
    """Trace uncaught exceptions before handing them to the default hook."""
    trace("UNCAUGHT EXCEPTION:", "CRASH")
    trace("".join(traceback.format_exception(exc_type, exc_value, exc_tb)), "CRASH")
    close_log()
    sys.__excepthook__(exc_type, exc_value, exc_tb)


def main():
    """Application entry point."""
    sys.excepthook = excepthook
    trace("Application starting", "MAIN")
    app = QApplication(sys.argv)

    # Load settings (use singleton to ensure single instance)
    trace("Loading settings", "MAIN")
    settings_manager = get_settings()

    # Ensure settings file has all sections
    settings_manager.ensure_file_complete()

    # Save settings on application quit
    def save_on_quit():
        trace("Saving settings on quit", "MAIN")
        settings_manager.save()
        close_log()

    app.aboutToQuit.connect(save_on_quit)

    trace("Creating MainWindow", "MAIN")
    w = MainWindow(settings_manager)
    w.resize(1400, 900)
    trace("Showing MainWindow", "MAIN")
    w.show()
    w.view.setFocus(Qt.FocusReason.OtherFocusReason)
    trace("Entering event loop", "MAIN")
    sys.exit(app.exec())


if __name__ == "__main__":
    try:
        main()
    except Exception as e:
        trace(f"FATAL: {type(e).__name__}: {e}", "CRASH")
        trace_exception("Fatal exception")
        close_log()
        raise
