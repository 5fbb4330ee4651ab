"""Shared fixtures: isolated settings, a fresh store, a headless Qt platform."""
from __future__ import annotations

import os

import pytest

# Qt tests run without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import settings as settings_module
from settings import AppSettings, SettingsManager
from tree.store import TreeStore, reset_store


class FakeClock:
    """Monotonic clock advancing one second per call."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        self.now += 1.0
        return self.now


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point the settings singleton at a throwaway directory."""
    manager = SettingsManager(settings_dir=tmp_path / "config")
    monkeypatch.setattr(settings_module, "_settings_manager", manager)
    yield manager
    reset_store()


@pytest.fixture()
def app_settings() -> AppSettings:
    return AppSettings()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(clock) -> TreeStore:
    return TreeStore(history_limit=250, clock=clock)
