"""Run a sequence of actions, cleaning up after every one that succeeded."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rdump.actions import Action

log = logging.getLogger(__name__)


class Runner:
    """An ordered list of actions, run once.

    Every action whose ``perform`` returned is cleaned up, newest first,
    whether or not a later action failed.  The first ``perform`` error is
    what ``run`` raises; cleanup errors are only logged.
    """

    def __init__(self) -> None:
        self.actions: list["Action"] = []
        self._consumed = False

    def __len__(self) -> int:
        return len(self.actions)

    def push(self, action: "Action") -> None:
        """Add an action to be performed after those already added."""
        self.actions.append(action)

    def append(self, other: "Runner") -> None:
        """Move all of ``other``'s actions onto the end of this runner."""
        self.actions.extend(other.actions)
        other.actions = []

    def run(self, pretend: bool = False) -> None:
        if self._consumed:
            raise RuntimeError("Runner has already been run")
        self._consumed = True
        actions, self.actions = self.actions, []

        if pretend:
            for action in actions:
                print(f"would: {action.describe()}")
            return

        performed: list["Action"] = []
        try:
            for action in actions:
                log.debug("perform: %s", action.describe())
                try:
                    action.perform()
                except Exception:
                    log.error("Error with action: %s", action.describe())
                    raise
                performed.append(action)
        finally:
            self._run_cleanups(performed)

    @staticmethod
    def _run_cleanups(performed: list["Action"]) -> None:
        while performed:
            action = performed.pop()
            try:
                action.cleanup()
            except Exception:
                log.exception("Cleanup error: %s", action.describe())
