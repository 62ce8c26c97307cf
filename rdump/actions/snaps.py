"""Actions that prepare a volume for backup: stamps, LVM snapshots, scans."""
from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

from rdump.executor import LocalExecutor

if TYPE_CHECKING:
    from rdump.executor import Executor

log = logging.getLogger(__name__)

SURE_FILE = "2sure.dat.gz"


class Stamp:
    """Touch a marker file in the volume being backed up.

    Backup tools can compare against its mtime to catch files modified
    between the snapshot and an incremental backup.  It is left in place.
    """

    def __init__(self, path: str, executor: "Executor | None" = None):
        self.path = os.fspath(path)
        self.executor = executor or LocalExecutor()

    def perform(self) -> None:
        log.info("Writing backup stamp: %s", self.path)
        self.executor.run_noio(["touch", self.path])

    def cleanup(self) -> None:
        pass

    def describe(self) -> str:
        return f"Backup stamp file: {self.path}"


class LvmSnapshot:
    def __init__(
        self,
        vg: str,
        lv: str,
        snap: str,
        size: str = "5g",
        executor: "Executor | None" = None,
    ):
        self.vg = vg
        self.lv = lv
        self.snap = snap
        self.size = size
        self.executor = executor or LocalExecutor()

    def perform(self) -> None:
        log.info("LVM2 snapshot of %s/%s to %s", self.vg, self.lv, self.snap)
        self.executor.run_noio([
            "lvcreate", "-L", self.size, "-s", "-n", self.snap,
            f"{self.vg}/{self.lv}",
        ])

    def cleanup(self) -> None:
        log.info("Cleanup lvm snapshot %s/%s", self.vg, self.snap)
        self.executor.run_noio(["lvremove", "-f", f"{self.vg}/{self.snap}"])

    def describe(self) -> str:
        return f"LVM2 snapshot of {self.vg}/{self.lv} to {self.snap}"


class MountSnap:
    def __init__(
        self,
        device: str,
        mount: str,
        is_xfs: bool = False,
        executor: "Executor | None" = None,
    ):
        self.device = device
        self.mount = mount
        self.is_xfs = is_xfs
        self.executor = executor or LocalExecutor()

    def perform(self) -> None:
        log.info("Mount LVM2 snapshot %s to %s", self.device, self.mount)
        self.executor.run_noio(["mkdir", "-p", self.mount])
        # An xfs snapshot shares its origin's UUID, which xfs refuses to
        # mount twice.
        opts = "nouuid,noatime" if self.is_xfs else "noatime"
        self.executor.run_noio(["mount", self.device, "-o", opts, self.mount])

    def cleanup(self) -> None:
        log.info("Unmount lvm2 snapshot at %s", self.mount)
        self.executor.run_noio(["umount", self.mount])

    def describe(self) -> str:
        return f"Mount LVM2 snapshot {self.device} to {self.mount}"


def _rsure_command(rsure: str, mount: str, surefile: str, name: str) -> list[str]:
    mode = "update" if os.path.isfile(surefile) else "scan"
    return [rsure, mode, "-f", surefile, "--tag", f"name={name}", mount]


class SimpleRsure:
    """Integrity scan of a live mount."""

    def __init__(
        self,
        mount: str,
        name: str,
        rsure: str = "rsure",
        executor: "Executor | None" = None,
    ):
        self.mount = mount
        self.name = name
        self.rsure = rsure
        self.executor = executor or LocalExecutor()

    @property
    def surefile(self) -> str:
        return os.path.join(self.mount, SURE_FILE)

    def perform(self) -> None:
        log.info("Rsure scan of %s to %s", self.mount, self.surefile)
        self.executor.run_noio(
            _rsure_command(self.rsure, self.mount, self.surefile, self.name)
        )

    def cleanup(self) -> None:
        pass

    def describe(self) -> str:
        return f"Simple Rsure scan of {self.mount}"


class LvmRsure:
    """Integrity scan of a mounted snapshot, copied back to the live mount.

    The snapshot disappears after the run, so the updated store is copied
    to ``base_mount`` where the next snapshot will pick it up.
    """

    def __init__(
        self,
        base_mount: str,
        mount: str,
        name: str,
        rsure: str = "rsure",
        executor: "Executor | None" = None,
    ):
        self.base_mount = base_mount
        self.mount = mount
        self.name = name
        self.rsure = rsure
        self.executor = executor or LocalExecutor()

    @property
    def surefile(self) -> str:
        return os.path.join(self.mount, SURE_FILE)

    def perform(self) -> None:
        log.info("Rsure scan of %s to %s", self.mount, self.surefile)
        self.executor.run_noio(
            _rsure_command(self.rsure, self.mount, self.surefile, self.name)
        )
        log.info("Copy rsure file %s to %s", self.surefile, self.base_mount)
        self.executor.run_noio(["cp", "-p", self.surefile, self.base_mount])

    def cleanup(self) -> None:
        pass

    def describe(self) -> str:
        return f"LVM2-based Rsure scan of {self.mount}"
