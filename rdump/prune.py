"""Hanoi pruning: thin old snapshots on a replica exponentially."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from rdump.zfs import Inventory

log = logging.getLogger(__name__)

# The most recent snapshots are never pruned.
PRUNE_KEEP = 10


def hanoi_victims(
    snapshots: list[str],
    snap_number: Callable[[str], "int | None"],
    keep: int = PRUNE_KEEP,
) -> list[str]:
    """
    Choose which snapshots to prune, returned oldest first.

    Only snapshots with an index (``snap_number`` not None) take part.  The
    ``keep`` newest are always kept.  Walking the rest from newest to
    oldest, a snapshot survives only if no newer one outside the window
    had the same number of set bits in its index, so one snapshot per
    popcount remains and the retained history thins out exponentially.
    """
    numbered = [
        (snap, num) for snap in snapshots
        if (num := snap_number(snap)) is not None
    ]
    numbered.reverse()

    seen: set[int] = set()
    victims = []
    for position, (snap, num) in enumerate(numbered):
        if position < keep:
            continue
        bits = bin(num).count("1")
        if bits in seen:
            victims.append(snap)
        seen.add(bits)

    victims.reverse()
    return victims


def prune_snapshot(
    inventory: "Inventory",
    volume: str,
    snap: str,
    really: bool = False,
) -> None:
    """Destroy one snapshot, leaving a bookmark of the same name behind."""
    if not really:
        print(f"would prune: {volume}@{snap}")
        return

    print(f"prune: {volume}@{snap}")
    rc = inventory.executor.status(
        ["zfs", "bookmark", f"{volume}@{snap}", f"{volume}#{snap}"]
    )
    if rc != 0:
        log.warning("Error creating bookmark %s#%s (exit %d)", volume, snap, rc)
    inventory.executor.run_noio(["zfs", "destroy", f"{volume}@{snap}"])


def prune_hanoi(
    inventory: "Inventory",
    fs_name: str,
    really: bool = False,
    keep: int = PRUNE_KEEP,
) -> list[str]:
    """Prune ``fs_name`` per the Hanoi schedule; returns the snapshots chosen."""
    fs = inventory.find(fs_name)
    victims = hanoi_victims(fs.snapshots, inventory.snap_number, keep)
    if not victims:
        print(f"{fs_name}: nothing to prune.")
        return victims

    for snap in victims:
        prune_snapshot(inventory, fs_name, snap, really=really)
    return victims
