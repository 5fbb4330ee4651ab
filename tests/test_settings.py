"""Tests for TOML settings persistence."""
from __future__ import annotations

import settings as settings_module
from settings import AppSettings, SettingsManager, get_settings


class TestSettingsManager:
    def test_defaults_without_file(self, tmp_path):
        sm = SettingsManager(settings_dir=tmp_path)
        assert sm.settings == AppSettings()
        assert not sm.get_settings_path().exists()

    def test_ensure_file_complete_writes_all_sections(self, tmp_path):
        sm = SettingsManager(settings_dir=tmp_path)
        sm.ensure_file_complete()
        text = sm.get_settings_path().read_text(encoding="utf-8")
        for section in ("[general]", "[layout]", "[projection]", "[sync]", "[history]", "[canvas]"):
            assert section in text

    def test_round_trip(self, tmp_path):
        sm = SettingsManager(settings_dir=tmp_path)
        sm.settings.root_label = "Project"
        sm.settings.layout.horizontal_gap = 300.0
        sm.settings.sync.position_epsilon = 1.5
        sm.settings.history.limit = 40
        sm.settings.styles.task.background = "#ffffff"
        sm.settings.canvas.fit_margin = 12.0
        sm.save()

        loaded = SettingsManager(settings_dir=tmp_path).settings
        assert loaded.root_label == "Project"
        assert loaded.layout.horizontal_gap == 300.0
        assert loaded.sync.position_epsilon == 1.5
        assert loaded.history.limit == 40
        assert loaded.styles.task.background == "#ffffff"
        assert loaded.canvas.fit_margin == 12.0

    def test_partial_file_keeps_other_defaults(self, tmp_path):
        (tmp_path / "settings.toml").write_text("[layout]\nvertical_gap = 10\n", encoding="utf-8")
        loaded = SettingsManager(settings_dir=tmp_path).settings
        assert loaded.layout.vertical_gap == 10.0
        assert loaded.layout.horizontal_gap == AppSettings().layout.horizontal_gap
        assert loaded.history.limit == 250

    def test_corrupted_file_falls_back_to_defaults(self, tmp_path):
        (tmp_path / "settings.toml").write_text("this is [not toml", encoding="utf-8")
        assert SettingsManager(settings_dir=tmp_path).settings == AppSettings()

    def test_bad_value_falls_back_to_defaults(self, tmp_path):
        (tmp_path / "settings.toml").write_text('[history]\nlimit = "lots"\n', encoding="utf-8")
        assert SettingsManager(settings_dir=tmp_path).settings == AppSettings()

    def test_to_toml(self, tmp_path):
        sm = SettingsManager(settings_dir=tmp_path)
        assert 'root_label = "Central Topic"' in sm.to_toml()


class TestStyles:
    def test_for_kind(self):
        styles = AppSettings().styles
        assert styles.for_kind("task") is styles.task
        assert styles.for_kind("reference") is styles.reference
        assert styles.for_kind("bogus") is styles.topic


class TestGetSettings:
    def test_returns_patched_singleton(self, isolated_settings):
        assert get_settings() is isolated_settings

    def test_created_lazily(self, tmp_path, monkeypatch):
        monkeypatch.setattr(settings_module, "_settings_manager", None)
        monkeypatch.setattr(settings_module.platformdirs, "user_config_dir", lambda name: str(tmp_path / name))
        first = get_settings()
        assert first is get_settings()
        assert first.settings_dir == tmp_path / "mindsync"
