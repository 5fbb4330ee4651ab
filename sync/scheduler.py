"""
sync/scheduler.py

Frame-deferred callback scheduling.

The reconciler never relies on a UI framework's commit timing directly;
it asks a scheduler to run a callback a number of frames later.  The Qt
application uses ``QtFrameScheduler``; headless hosts and tests use
``ManualScheduler`` and advance frames explicitly.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Tuple

from PyQt6.QtCore import QTimer

from settings import get_settings


class QtFrameScheduler:
    """Schedules callbacks on the Qt event loop, ``frame_ms`` per frame."""

    def __init__(self, frame_ms: Optional[int] = None):
        if frame_ms is None:
            frame_ms = get_settings().settings.sync.frame_ms
        self.frame_ms = frame_ms

    def schedule(self, callback: Callable[[], None], frames: int = 1) -> None:
        QTimer.singleShot(max(0, frames) * self.frame_ms, callback)


class ManualScheduler:
    """Deterministic scheduler driven by ``advance()``.

    A callback scheduled for *n* frames runs during the *n*-th following
    call to ``advance(1)``.  Callbacks scheduled while a frame is running
    wait for a later frame.
    """

    def __init__(self):
        self._tick = 0
        self._seq = 0
        self._queue: List[Tuple[int, int, Callable[[], None]]] = []

    @property
    def pending(self) -> int:
        return len(self._queue)

    def schedule(self, callback: Callable[[], None], frames: int = 1) -> None:
        self._seq += 1
        self._queue.append((self._tick + max(1, frames), self._seq, callback))

    def advance(self, frames: int = 1) -> None:
        """Run *frames* frames worth of due callbacks."""
        for _ in range(frames):
            self._tick += 1
            due = sorted(e for e in self._queue if e[0] <= self._tick)
            if not due:
                continue
            self._queue = [e for e in self._queue if e[0] > self._tick]
            for _, _, callback in due:
                callback()

    def run_all(self, max_frames: int = 100) -> None:
        """Advance until the queue drains (bounded to catch feedback loops)."""
        for _ in range(max_frames):
            if not self._queue:
                return
            self.advance(1)
        raise RuntimeError(f"scheduler still busy after {max_frames} frames")
