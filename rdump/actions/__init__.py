"""Backup actions.

Actions are assembled into a sequence by a Runner.  Some of them set up
state (an LVM snapshot, a mount) that has to be torn down again; the runner
makes sure that happens for every action that got performed, even when a
later one fails.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Action(Protocol):
    def perform(self) -> None:
        """Do the work. Raise on failure."""
        raise NotImplementedError

    def cleanup(self) -> None:
        """Undo whatever perform set up; a no-op when there is nothing."""
        raise NotImplementedError

    def describe(self) -> str:
        """One line describing what perform would do."""
        raise NotImplementedError


class Message:
    """Print a banner naming the block of actions that follows."""

    def __init__(self, text: str):
        self.text = text

    def perform(self) -> None:
        print("-" * 60)
        print(f"    running: {self.text}")
        print("-" * 60)

    def cleanup(self) -> None:
        pass

    def describe(self) -> str:
        return f"    running: {self.text}"


from rdump.actions.borg import BorgBackup  # noqa: E402
from rdump.actions.runner import Runner  # noqa: E402
from rdump.actions.snaps import (  # noqa: E402
    LvmRsure,
    LvmSnapshot,
    MountSnap,
    SimpleRsure,
    Stamp,
)
from rdump.actions.zfs import Rsync, ZfsSnapshot  # noqa: E402

__all__ = [
    "Action",
    "BorgBackup",
    "LvmRsure",
    "LvmSnapshot",
    "Message",
    "MountSnap",
    "Rsync",
    "Runner",
    "SimpleRsure",
    "Stamp",
    "ZfsSnapshot",
]
