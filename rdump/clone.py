"""Clone a ZFS volume tree onto another, incrementally where possible."""
from __future__ import annotations

import dataclasses
import logging
import os
import re
import shlex
from typing import TYPE_CHECKING, Iterable

import yaml

from rdump import transfer as xfer
from rdump.errors import (
    CloneError,
    ConfigError,
    DivergedHistoryError,
    EmptyDestinationError,
)
from rdump.models import Filesystem, Transfer
from rdump.zfs import humanize_size, local_properties

if TYPE_CHECKING:
    from rdump.zfs import Inventory

log = logging.getLogger(__name__)

# ANSI color codes (respect NO_COLOR convention: https://no-color.org)
if os.environ.get("NO_COLOR") is not None:
    GREEN = RESET = ""
else:
    GREEN = "\033[32m"
    RESET = "\033[0m"


class Exclusions:
    """Regular expressions matched (anywhere) against source volume names.

    Excluding a parent does not exclude its children, and a child whose
    parent was excluded will not have that parent created for it.
    """

    def __init__(self, patterns: Iterable[str] = ()):
        self.patterns = []
        for pattern in patterns:
            try:
                self.patterns.append(re.compile(pattern))
            except re.error as e:
                raise ConfigError(f"Invalid exclude regex {pattern!r}: {e}")

    def is_excluded(self, name: str) -> bool:
        return any(p.search(name) for p in self.patterns)


def plan_existing(src: Filesystem, dest: Filesystem) -> list[Transfer]:
    """Plan the transfer that brings an existing replica up to date.

    Returns an empty list when the replica already has the newest source
    snapshot.
    """
    if not dest.snapshots:
        raise EmptyDestinationError(dest.name)
    last_dest = dest.latest
    if last_dest not in src.snapshots:
        raise DivergedHistoryError(src.name, dest.name, last_dest)
    if last_dest == src.latest:
        return []
    return [Transfer(src.name, dest.name, src.latest, from_snap=last_dest)]


def plan_fresh(src: Filesystem, dest_name: str) -> list[Transfer]:
    """Plan seeding a new replica: full send of the oldest, then the rest."""
    if not src.snapshots:
        raise CloneError(f"Source volume has no snapshots: {src.name}")
    transfers = [Transfer(src.name, dest_name, src.earliest)]
    if src.earliest != src.latest:
        transfers.append(
            Transfer(src.name, dest_name, src.latest, from_snap=src.earliest)
        )
    return transfers


def make_volume(
    src: Filesystem,
    dest_name: str,
    source_inv: "Inventory",
    dest_inv: "Inventory",
) -> list[str]:
    """Create ``dest_name`` carrying over the source's explicit properties.

    Compression, acltype, xattr, atime and the like have to be in place
    before the first receive for the replica to match its source.
    """
    output = source_inv.executor.run(["zfs", "get", "-Hp", "all", src.name])
    options = []
    for prop, value in local_properties(output):
        options += ["-o", f"{prop}={value}"]
    cmd = ["zfs", "create"] + options + [dest_name]
    print(f"  [create ({dest_inv.executor.label})] {shlex.join(cmd)}")
    dest_inv.executor.run_noio(cmd)
    return options


def _dump(title: str, fs: Filesystem) -> None:
    print(f"{title}:")
    print(yaml.safe_dump(dataclasses.asdict(fs), sort_keys=False), end="")


def clone(
    source_inv: "Inventory",
    source: str,
    dest: str,
    dest_inv: "Inventory",
    perform: bool = False,
    excludes: Iterable[str] | Exclusions = (),
) -> list[Transfer]:
    """
    Replicate every volume under ``source`` to the same place under ``dest``.

    Volumes are handled one at a time in listing order; the first error
    stops the whole run, leaving later volumes untouched.  Without
    ``perform`` only the plan and size estimates are printed.

    Returns the transfers that were planned (and, with ``perform``, run).
    """
    if not isinstance(excludes, Exclusions):
        excludes = Exclusions(excludes)

    # Key destinations by their path below `dest` ("" for `dest` itself).
    dest_map = {fs.name[len(dest):]: fs for fs in dest_inv.filtered(dest)}

    planned: list[Transfer] = []
    for src in source_inv.filtered(source):
        if excludes.is_excluded(src.name):
            log.debug("Excluded: %s", src.name)
            continue
        # Bookmarks show up in the listing as volumes named vol#mark.
        if "#" in src.name:
            continue

        suffix = src.name[len(source):]
        existing = dest_map.get(suffix)

        print(f"\n{'='*60}")
        if existing is not None:
            print(f"Clone existing: {src.name} -> {existing.name}")
            transfers = plan_existing(src, existing)
            dest_fs = existing
            if not transfers:
                print(f"  {GREEN}Destination is up to date{RESET}")
        else:
            dest_fs = Filesystem(name=dest + suffix, mount="*INVALID*")
            print(f"Clone fresh: {src.name} -> {dest_fs.name}")
            transfers = plan_fresh(src, dest_fs.name)
            if perform:
                make_volume(src, dest_fs.name, source_inv, dest_inv)

        for t in transfers:
            size = xfer.estimate_size(source_inv.executor, t)
            print(f"  {t}")
            print(f"  Estimate: {humanize_size(size)}")
            if perform:
                xfer.execute(t, size, source_inv.executor, dest_inv.executor)
                print(f"  {GREEN}Transfer complete.{RESET}")

        if not perform:
            _dump("Clone from", src)
            _dump("Clone to", dest_fs)

        planned.extend(transfers)

    return planned
