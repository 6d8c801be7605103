"""
Action Hub Registry — name → action table.

Populated once at startup, read-only while serving requests, so lookups
need no locking. Registering a name twice replaces the earlier entry; that
is how a renamed destination and its legacy alias coexist.
"""
from __future__ import annotations
import logging

from hub.action import Action
from hub.errors import ActionNotFound

log = logging.getLogger(__name__)


class ActionRegistry:
    """Process-wide table of registered actions."""

    def __init__(self):
        self._actions: dict[str, Action] = {}

    def register(self, action: Action) -> None:
        """Add an action keyed by its name. Last write wins."""
        if not action.name:
            raise ValueError(f"{type(action).__name__} has no name")
        if action.name in self._actions:
            log.info("replacing registered action %s", action.name)
        self._actions[action.name] = action

    def lookup(self, name: str) -> Action:
        action = self._actions.get(name)
        if action is None:
            raise ActionNotFound(name)
        return action

    def actions(self) -> list[Action]:
        return list(self._actions.values())

    def __contains__(self, name: str) -> bool:
        return name in self._actions

    def __len__(self) -> int:
        return len(self._actions)

