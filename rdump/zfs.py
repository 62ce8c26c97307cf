"""ZFS inventory: parse `zfs list` output and answer questions about it."""
from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import TYPE_CHECKING, Iterable

from rdump.errors import CloneError, NotMountedError, ParseError, RdumpError
from rdump.executor import LocalExecutor, SSHExecutor
from rdump.models import Filesystem

if TYPE_CHECKING:
    from rdump.executor import Executor

log = logging.getLogger(__name__)

LIST_CMD = ["zfs", "list", "-H", "-t", "all", "-o", "name,mountpoint"]

_UNITS = ["B  ", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB", "ZiB", "YiB"]


def parse_listing(output: str) -> list[Filesystem]:
    """Build filesystems from ``zfs list -H -t all -o name,mountpoint`` output.

    zfs lists every snapshot of a volume directly after the volume itself, in
    creation order.  A snapshot line that does not belong to the volume
    started most recently means the listing is not in that shape, which is
    fatal rather than something to guess around.
    """
    filesystems: list[Filesystem] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        fields = line.split("\t", 1)
        if len(fields) != 2:
            raise ParseError("zfs line doesn't have two fields", line)
        name, mount = fields
        volume, at, snap = name.partition("@")
        if not at:
            filesystems.append(Filesystem(name=name, mount=mount))
            continue
        if not filesystems:
            raise ParseError("Snapshot listed before any volume", line)
        current = filesystems[-1]
        if current.name != volume:
            raise ParseError(
                f"Snapshot does not follow its volume (current volume {current.name!r})",
                line,
            )
        current.snapshots.append(snap)
    return filesystems


def local_properties(output: str) -> list[tuple[str, str]]:
    """Return the explicitly set properties from ``zfs get -Hp all`` output.

    Only ``local`` and ``received`` origins are kept, and ``mountpoint`` is
    always dropped so a replica never mounts over its source.
    """
    props = []
    for line in output.splitlines():
        if not line.strip():
            continue
        fields = line.split("\t")
        if len(fields) != 4:
            raise ParseError("zfs get line doesn't have 4 fields", line)
        _name, prop, value, origin = fields
        if prop == "mountpoint":
            continue
        if origin in ("local", "received"):
            props.append((prop, value))
    return props


def parse_size_estimate(output: str) -> int:
    """Return the byte count from ``zfs send -nP`` output, or 0."""
    for line in output.splitlines():
        fields = line.split("\t")
        if len(fields) < 2 or fields[0] != "size":
            continue
        try:
            return int(fields[1])
        except ValueError:
            log.debug("Unparsable size estimate line: %r", line)
            return 0
    return 0


def humanize_size(size: int) -> str:
    """Format a byte count with base-2 units, e.g. ' 1.500KiB'."""
    value = float(size)
    unit = 0
    while value > 1024.0 and unit < len(_UNITS) - 1:
        value /= 1024.0
        unit += 1
    precision = 3 if value < 10.0 else 2
    return f"{value:6.{precision}f}{_UNITS[unit]}"


def find_mount(name: str, mounts: str = "/proc/mounts") -> str:
    """Return where a ZFS volume is mounted, according to the mount table.

    Linux can mount ZFS volumes outside their ``mountpoint`` property (the
    root filesystem in particular), so the kernel's view is authoritative.
    """
    with open(mounts) as f:
        for line in f:
            fields = line.split(" ")
            if len(fields) < 3 or fields[2] != "zfs":
                continue
            if fields[0] == name:
                return fields[1]
    raise NotMountedError(name)


class Inventory:
    """The volumes and snapshots of one ZFS system, as of construction.

    The inventory is never refreshed; callers that need current state build
    a new one.
    """

    def __init__(
        self,
        prefix: str,
        filesystems: Iterable[Filesystem],
        executor: "Executor | None" = None,
        host: str | None = None,
    ):
        self.prefix = prefix
        self.pattern = re.compile(rf"^{re.escape(prefix)}(\d{{4}})-([-\d]+)$")
        self.filesystems = tuple(filesystems)
        self.host = host
        self.executor = executor if executor is not None else LocalExecutor()

    @classmethod
    def load(
        cls,
        prefix: str,
        executor: "Executor | None" = None,
        host: str | None = None,
    ) -> "Inventory":
        """Query zfs (locally, or on ``host`` over ssh+sudo) and parse it."""
        if executor is None:
            if host is not None:
                executor = SSHExecutor.from_target(host, sudo=True)
            else:
                executor = LocalExecutor()
        output = executor.run(LIST_CMD)
        filesystems = parse_listing(output)
        log.debug("ZFS on %s: %d volumes", executor.label, len(filesystems))
        return cls(prefix, filesystems, executor=executor, host=host)

    @property
    def is_remote(self) -> bool:
        return self.host is not None

    def find(self, name: str) -> Filesystem:
        for fs in self.filesystems:
            if fs.name == name:
                return fs
        raise CloneError(f"Volume not found in zfs: {name!r}")

    def filtered(self, under: str) -> list[Filesystem]:
        """Return ``under`` and all of its descendants, in listing order."""
        return [
            fs for fs in self.filesystems
            if fs.name == under or fs.name.startswith(under + "/")
        ]

    def snap_number(self, snap: str) -> int | None:
        """Return the index of a snapshot name made with our prefix."""
        m = self.pattern.match(snap)
        return int(m.group(1)) if m else None

    def next_under(self, under: str) -> int:
        """Return the next unused snapshot index in a subtree."""
        next_index = 0
        for fs in self.filtered(under):
            for snap in fs.snapshots:
                num = self.snap_number(snap)
                if num is not None and num + 1 > next_index:
                    next_index = num + 1
        return next_index

    def snap_name(self, index: int, now: datetime | None = None) -> str:
        now = now or datetime.now()
        return f"{self.prefix}{index:04d}-{now:%Y%m%d%H%M}"

    def take_snapshot(self, fs: str, index: int, perform: bool = True) -> str:
        """Make a recursive snapshot of ``fs`` with the given index."""
        if self.is_remote:
            raise RdumpError("Only local snapshots are supported")
        name = f"{fs}@{self.snap_name(index)}"
        print(f"{'Make' if perform else 'Would make'} snapshot: {name}")
        if perform:
            self.executor.run_noio(["zfs", "snapshot", "-r", name])
        return name

    def take_named_snapshot(self, fs: str, name: str) -> None:
        if self.is_remote:
            raise RdumpError("Only local snapshots are supported")
        self.executor.run_noio(["zfs", "snapshot", f"{fs}@{name}"])

    def find_mount(self, name: str) -> str:
        return find_mount(name)
