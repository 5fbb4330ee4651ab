"""
settings.py

Persistent settings management for MindSync.

Handles cross-platform settings storage using TOML format with platformdirs
for proper user config directory detection.

Settings file location:
    - Windows: %APPDATA%/mindsync/settings.toml
    - macOS: ~/Library/Application Support/mindsync/settings.toml
    - Linux: ~/.config/mindsync/settings.toml

Default values are documented in comments throughout this file.
If settings.toml is corrupted, these defaults will be used.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import platformdirs

# TOML reading - use tomllib for Python 3.11+, tomli for earlier versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

APP_NAME = "mindsync"

# Global settings manager instance (singleton)
_settings_manager: Optional["SettingsManager"] = None


def get_settings() -> "SettingsManager":
    """Get the global settings manager instance.

    Returns:
        The singleton SettingsManager instance.
    """
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager()
    return _settings_manager


# =============================================================================
# Layout Settings
# =============================================================================

@dataclass
class LayoutSettings:
    """Tree layout spacing.

    Defaults:
        horizontal_gap: 280.0
        vertical_gap: 80.0
        node_height: 44.0
    """
    horizontal_gap: float = 280.0  # Default: 280 px between depth columns
    vertical_gap: float = 80.0     # Default: 80 px between stacked leaves
    node_height: float = 44.0      # Default: 44 px estimated node height


# =============================================================================
# Projection Settings
# =============================================================================

@dataclass
class ProjectionSettings:
    """Element projection sizing.

    Defaults:
        node_min_width: 160.0
        font_size: 18
        char_width_ratio: 0.6
        label_padding: 32.0
        connector_gap: 4.0
        stroke_width: 2
    """
    node_min_width: float = 160.0   # Default: 160 px
    font_size: int = 18             # Default: 18 px
    char_width_ratio: float = 0.6   # Default: 0.6 (average glyph width / font size)
    label_padding: float = 32.0     # Default: 32 px horizontal padding
    connector_gap: float = 4.0      # Default: 4 px between arrow tip and shape
    stroke_width: int = 2           # Default: 2 px


# =============================================================================
# Style Settings
# =============================================================================

@dataclass
class NodeStyle:
    """Fill and stroke colors for one node kind."""
    background: str = "#a5d8ff"
    stroke: str = "#1c7ed6"


@dataclass
class StyleSettings:
    """Node and connector colors.

    Defaults:
        topic: #a5d8ff / #1c7ed6
        task: #d3f9d8 / #2f9e44
        reference: #ffec99 / #f08c00
        root: #e7f5ff / #1971c2
        connector_color: #868e96
    """
    topic: NodeStyle = field(default_factory=lambda: NodeStyle("#a5d8ff", "#1c7ed6"))
    task: NodeStyle = field(default_factory=lambda: NodeStyle("#d3f9d8", "#2f9e44"))
    reference: NodeStyle = field(default_factory=lambda: NodeStyle("#ffec99", "#f08c00"))
    root: NodeStyle = field(default_factory=lambda: NodeStyle("#e7f5ff", "#1971c2"))
    connector_color: str = "#868e96"  # Default: gray

    def for_kind(self, kind: str) -> NodeStyle:
        """Return the style for a node kind, falling back to topic."""
        style = getattr(self, kind, None) if kind in ("topic", "task", "reference") else None
        return style if isinstance(style, NodeStyle) else self.topic


# =============================================================================
# Sync Settings
# =============================================================================

@dataclass
class SyncSettings:
    """Scene reconciliation timing and tolerances.

    Defaults:
        position_epsilon: 0.5
        frame_ms: 16
        edit_start_frames: 2
    """
    position_epsilon: float = 0.5   # Default: 0.5 units (below host jitter)
    frame_ms: int = 16              # Default: 16 ms per frame
    edit_start_frames: int = 2      # Default: 2 frames before editing a new node


@dataclass
class HistorySettings:
    """Undo history settings.

    Defaults:
        limit: 250
    """
    limit: int = 250  # Default: 250 snapshots


# =============================================================================
# Canvas Settings
# =============================================================================

@dataclass
class CanvasSettings:
    """Qt canvas behavior.

    Defaults:
        wheel_factor: 1.15
        background_color: "#1a1a2e"
        text_color: "#1e293b"
        selection_color: "#0078d7"
        fit_margin: 40.0
    """
    wheel_factor: float = 1.15            # Default: 1.15 (15% per scroll step)
    background_color: str = "#1a1a2e"     # Default: dark navy
    text_color: str = "#1e293b"           # Default: slate-800
    selection_color: str = "#0078d7"      # Default: blue
    fit_margin: float = 40.0              # Default: 40 px around fitted content


# =============================================================================
# Main App Settings
# =============================================================================

@dataclass
class AppSettings:
    """Application settings with default values.

    Attributes:
        root_label: Label of the root created for an empty map.
        layout: Layout engine spacing.
        projection: Element sizing.
        styles: Node and connector colors.
        sync: Reconciler timing.
        history: Undo history.
        canvas: Qt canvas behavior.
    """
    root_label: str = "Central Topic"  # Default: "Central Topic"

    layout: LayoutSettings = field(default_factory=LayoutSettings)
    projection: ProjectionSettings = field(default_factory=ProjectionSettings)
    styles: StyleSettings = field(default_factory=StyleSettings)
    sync: SyncSettings = field(default_factory=SyncSettings)
    history: HistorySettings = field(default_factory=HistorySettings)
    canvas: CanvasSettings = field(default_factory=CanvasSettings)


# =============================================================================
# Settings Manager
# =============================================================================

class SettingsManager:
    """Manages loading, saving, and accessing application settings.

    Settings are stored in a TOML file at the platform-appropriate location.
    If the settings file doesn't exist, defaults are used and the file is
    created on first save.

    Args:
        app_name: Application name used for the config directory.
        settings_dir: Explicit directory, overriding the platform default.
    """

    def __init__(self, app_name: str = APP_NAME, settings_dir: Optional[Path] = None):
        self.settings_dir = Path(settings_dir) if settings_dir else Path(platformdirs.user_config_dir(app_name))
        self.settings_file = self.settings_dir / "settings.toml"
        self.settings = self.load()
        self._needs_save = not self.settings_file.exists()  # Save if file didn't exist

    def ensure_file_complete(self) -> None:
        """Ensure settings file exists with all sections. Call once at startup."""
        if self._needs_save or not self.settings_file.exists():
            self.save()
            self._needs_save = False

    def load(self) -> AppSettings:
        """Load settings from the TOML file.

        Returns:
            AppSettings instance with values from file or defaults if file
            doesn't exist or is invalid.
        """
        if not self.settings_file.exists():
            return AppSettings()

        try:
            with open(self.settings_file, "rb") as f:
                data = tomllib.load(f)

            return self._parse_toml(data)
        except (OSError, tomllib.TOMLDecodeError, TypeError, ValueError):
            # If file is corrupted or invalid, return defaults
            return AppSettings()

    def _parse_toml(self, data: Dict[str, Any]) -> AppSettings:
        """Parse TOML data into AppSettings.

        Args:
            data: Parsed TOML dictionary.

        Returns:
            AppSettings instance populated from TOML data.
        """
        settings = AppSettings()

        general = data.get("general", {})
        settings.root_label = general.get("root_label", settings.root_label)

        lay = data.get("layout", {})
        settings.layout.horizontal_gap = float(lay.get("horizontal_gap", settings.layout.horizontal_gap))
        settings.layout.vertical_gap = float(lay.get("vertical_gap", settings.layout.vertical_gap))
        settings.layout.node_height = float(lay.get("node_height", settings.layout.node_height))

        proj = data.get("projection", {})
        settings.projection.node_min_width = float(proj.get("node_min_width", settings.projection.node_min_width))
        settings.projection.font_size = int(proj.get("font_size", settings.projection.font_size))
        settings.projection.char_width_ratio = float(proj.get("char_width_ratio", settings.projection.char_width_ratio))
        settings.projection.label_padding = float(proj.get("label_padding", settings.projection.label_padding))
        settings.projection.connector_gap = float(proj.get("connector_gap", settings.projection.connector_gap))
        settings.projection.stroke_width = int(proj.get("stroke_width", settings.projection.stroke_width))

        styles = data.get("styles", {})
        for name in ("topic", "task", "reference", "root"):
            if name in styles:
                st = styles[name]
                current = getattr(settings.styles, name)
                current.background = st.get("background", current.background)
                current.stroke = st.get("stroke", current.stroke)
        settings.styles.connector_color = styles.get("connector_color", settings.styles.connector_color)

        sync = data.get("sync", {})
        settings.sync.position_epsilon = float(sync.get("position_epsilon", settings.sync.position_epsilon))
        settings.sync.frame_ms = int(sync.get("frame_ms", settings.sync.frame_ms))
        settings.sync.edit_start_frames = int(sync.get("edit_start_frames", settings.sync.edit_start_frames))

        history = data.get("history", {})
        settings.history.limit = int(history.get("limit", settings.history.limit))

        canvas = data.get("canvas", {})
        settings.canvas.wheel_factor = float(canvas.get("wheel_factor", settings.canvas.wheel_factor))
        settings.canvas.background_color = canvas.get("background_color", settings.canvas.background_color)
        settings.canvas.text_color = canvas.get("text_color", settings.canvas.text_color)
        settings.canvas.selection_color = canvas.get("selection_color", settings.canvas.selection_color)
        settings.canvas.fit_margin = float(canvas.get("fit_margin", settings.canvas.fit_margin))

        return settings

    def save(self) -> None:
        """Save current settings to the TOML file.

        Creates the settings directory if it doesn't exist.
        """
        self.settings_dir.mkdir(parents=True, exist_ok=True)

        data = self._to_toml_dict()

        with open(self.settings_file, "wb") as f:
            tomli_w.dump(data, f)

    def _to_toml_dict(self) -> Dict[str, Any]:
        """Convert settings to a TOML-compatible dictionary structure.

        Returns:
            Dictionary organized by TOML sections.
        """
        s = self.settings
        return {
            "general": {
                "root_label": s.root_label,
            },
            "layout": {
                "horizontal_gap": s.layout.horizontal_gap,
                "vertical_gap": s.layout.vertical_gap,
                "node_height": s.layout.node_height,
            },
            "projection": {
                "node_min_width": s.projection.node_min_width,
                "font_size": s.projection.font_size,
                "char_width_ratio": s.projection.char_width_ratio,
                "label_padding": s.projection.label_padding,
                "connector_gap": s.projection.connector_gap,
                "stroke_width": s.projection.stroke_width,
            },
            "styles": {
                "topic": {"background": s.styles.topic.background, "stroke": s.styles.topic.stroke},
                "task": {"background": s.styles.task.background, "stroke": s.styles.task.stroke},
                "reference": {"background": s.styles.reference.background, "stroke": s.styles.reference.stroke},
                "root": {"background": s.styles.root.background, "stroke": s.styles.root.stroke},
                "connector_color": s.styles.connector_color,
            },
            "sync": {
                "position_epsilon": s.sync.position_epsilon,
                "frame_ms": s.sync.frame_ms,
                "edit_start_frames": s.sync.edit_start_frames,
            },
            "history": {
                "limit": s.history.limit,
            },
            "canvas": {
                "wheel_factor": s.canvas.wheel_factor,
                "background_color": s.canvas.background_color,
                "text_color": s.canvas.text_color,
                "selection_color": s.canvas.selection_color,
                "fit_margin": s.canvas.fit_margin,
            },
        }

    def to_toml(self) -> str:
        """Convert current settings to a TOML-formatted string.

        Returns:
            TOML representation of the current settings.
        """
        data = self._to_toml_dict()
        return tomli_w.dumps(data)

    def get_settings_path(self) -> Path:
        """Get the path to the settings file.

        Returns:
            Path object pointing to the settings file location.
        """
        return self.settings_file
