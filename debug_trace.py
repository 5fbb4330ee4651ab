"""
debug_trace.py

Trace output for following the store <-> scene sync loop.

MINDSYNC_TRACE selects what is traced:
    unset or empty   tracing off
    "1"              every category except the per-notification ones
    "all"            every category
    "PUSH,SYNC"      only the listed categories
MINDSYNC_TRACE_FILE mirrors the output to a file.

Lines go to the ``mindsync.trace`` logger, so an application that
configures logging itself can route them anywhere.
"""

import logging
import os
import sys
import traceback
from typing import FrozenSet, Optional

# Categories that fire on every scene notification (very verbose)
NOISY_CATEGORIES = frozenset({"ECHO"})

logger = logging.getLogger("mindsync.trace")
logger.propagate = False
logger.setLevel(logging.DEBUG)

_FORMAT = logging.Formatter("[%(asctime)s.%(msecs)03d] [%(category)s] %(message)s", datefmt="%H:%M:%S")

_enabled = False
_trace_noisy = False
_only: Optional[FrozenSet[str]] = None
_stream_handler: Optional[logging.Handler] = None
_file_handler: Optional[logging.Handler] = None


def configure(selection: Optional[str], log_file: Optional[str] = None) -> None:
    """(Re)configure tracing from a MINDSYNC_TRACE style *selection*."""
    global _enabled, _trace_noisy, _only, _stream_handler

    close_log()
    selection = (selection or "").strip()
    _enabled = bool(selection)
    _trace_noisy = selection.lower() == "all"
    _only = None
    if _enabled and selection not in ("1", "true") and not _trace_noisy:
        _only = frozenset(part.strip().upper() for part in selection.split(",") if part.strip())

    # Always bound to the current sys.stderr
    if _stream_handler is not None:
        logger.removeHandler(_stream_handler)
        _stream_handler = None
    if _enabled:
        _stream_handler = logging.StreamHandler(sys.stderr)
        _stream_handler.setFormatter(_FORMAT)
        logger.addHandler(_stream_handler)

    if _enabled and log_file:
        _open_log_file(log_file)


def _open_log_file(path: str) -> None:
    global _file_handler
    try:
        handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    except OSError:
        return
    handler.setFormatter(_FORMAT)
    logger.addHandler(handler)
    _file_handler = handler


def is_enabled(category: str) -> bool:
    """True if messages of *category* are currently traced."""
    if not _enabled:
        return False
    if _only is not None:
        return category in _only
    return _trace_noisy or category not in NOISY_CATEGORIES


def trace(msg: str, category: str = "INFO"):
    """Emit a trace line tagged with *category*."""
    if not is_enabled(category):
        return
    logger.debug(msg, extra={"category": category})


def trace_exception(msg: str = "Exception"):
    """Trace the exception currently being handled."""
    if not _enabled:
        return
    logger.debug(f"{msg}: {traceback.format_exc()}", extra={"category": "ERROR"})


def close_log():
    """Close the trace file, if one is open."""
    global _file_handler
    if _file_handler is not None:
        logger.removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None


configure(os.environ.get("MINDSYNC_TRACE"), os.environ.get("MINDSYNC_TRACE_FILE"))
