"""Actions for mirroring ordinary filesystems onto ZFS."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rdump.executor import LocalExecutor

if TYPE_CHECKING:
    from rdump.executor import Executor

log = logging.getLogger(__name__)


class Rsync:
    """rsync a mounted snapshot onto a ZFS volume."""

    def __init__(
        self,
        src: str,
        dest: str,
        acls: bool = False,
        verbose: bool = False,
        executor: "Executor | None" = None,
    ):
        self.src = src
        self.dest = dest
        self.acls = acls
        self.verbose = verbose
        self.executor = executor or LocalExecutor()

    def command(self) -> list[str]:
        cmd = ["rsync", "-aHx", "--delete"]
        if self.verbose:
            cmd.append("-i")
        if self.acls:
            cmd.append("-AX")
        cmd += [f"{self.src}/.", f"{self.dest}/."]
        return cmd

    def perform(self) -> None:
        log.info("Rsyncing from %s to %s", self.src, self.dest)
        self.executor.run_noio(self.command())

    def cleanup(self) -> None:
        pass

    def describe(self) -> str:
        return f"Rsync from {self.src} to {self.dest}"


class ZfsSnapshot:
    def __init__(
        self,
        volume: str,
        snap: str,
        executor: "Executor | None" = None,
    ):
        self.volume = volume
        self.snap = snap
        self.executor = executor or LocalExecutor()

    def perform(self) -> None:
        name = f"{self.volume}@{self.snap}"
        log.info("Zfs snapshot %s", name)
        self.executor.run_noio(["zfs", "snapshot", name])

    def cleanup(self) -> None:
        pass

    def describe(self) -> str:
        return f"Zfs snapshot {self.volume}@{self.snap}"
