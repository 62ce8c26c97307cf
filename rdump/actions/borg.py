"""Archive a directory with borg."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rdump.executor import LocalExecutor

if TYPE_CHECKING:
    from rdump.executor import Executor

log = logging.getLogger(__name__)


class BorgBackup:
    """Run ``borg create`` through a wrapper script.

    The script is expected to set BORG_REPO and the passphrase before
    exec'ing borg with the arguments it is given.
    """

    def __init__(
        self,
        snap: str,
        script: str,
        name: str,
        executor: "Executor | None" = None,
    ):
        self.snap = snap      # directory to archive
        self.script = script
        self.name = name      # archive name
        self.executor = executor or LocalExecutor()

    def command(self) -> list[str]:
        return [
            self.script, "create", "--exclude-caches", "-x", "--stat",
            "--progress", f"::{self.name}", self.snap,
        ]

    def perform(self) -> None:
        log.info("Running borg backup of %s as %s", self.snap, self.name)
        self.executor.run_noio(self.command())

    def cleanup(self) -> None:
        pass

    def describe(self) -> str:
        return f"Borg backup of {self.snap} to {self.name}"
