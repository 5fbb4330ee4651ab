"""
shortcuts package

Keyboard shortcut policy and its dispatcher.
"""

from shortcuts.policy import KEY_ACTIONS, resolve_action
from shortcuts.dispatcher import ShortcutDispatcher

__all__ = [
    "KEY_ACTIONS",
    "resolve_action",
    "ShortcutDispatcher",
]
