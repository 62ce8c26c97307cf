"""Data models for rdump."""
from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Filesystem:
    """A ZFS volume and its snapshot names, oldest first."""
    name: str  # e.g. tank/home/user
    mount: str
    snapshots: list[str] = field(default_factory=list)

    @property
    def earliest(self) -> str | None:
        return self.snapshots[0] if self.snapshots else None

    @property
    def latest(self) -> str | None:
        return self.snapshots[-1] if self.snapshots else None


@dataclass(frozen=True)
class Transfer:
    """One zfs send/receive step.

    A transfer without ``from_snap`` is a full send of ``to_snap``; otherwise
    it is an incremental (-I) send covering every snapshot after
    ``from_snap`` up to and including ``to_snap``.
    """
    source: str
    dest: str
    to_snap: str
    from_snap: str | None = None

    @property
    def full(self) -> bool:
        return self.from_snap is None

    def __str__(self) -> str:
        if self.full:
            return f"full {self.source}@{self.to_snap} -> {self.dest}"
        return (
            f"incremental {self.source}@{self.from_snap}..@{self.to_snap}"
            f" -> {self.dest}"
        )


@dataclass
class SimpleTarget:
    """A volume backed up directly from its live mount."""
    name: str
    mount: str
    actions: list[str] = field(default_factory=list)


@dataclass
class LvmTarget:
    """A logical volume backed up through a temporary LVM snapshot."""
    name: str
    mount: str
    snap: str      # where the snapshot gets mounted
    vg: str
    lv: str
    lv_snap: str   # name of the snapshot logical volume
    fs: str        # filesystem type, e.g. ext4 or xfs
    actions: list[str] = field(default_factory=list)

    @property
    def snap_device(self) -> str:
        return f"/dev/{self.vg}/{self.lv_snap}"


@dataclass
class ConfigFile:
    borg: str
    rsure: str = "rsure"
    simple: list[SimpleTarget] = field(default_factory=list)
    lvm: list[LvmTarget] = field(default_factory=list)
