"""CLI entry point for rdump."""
from __future__ import annotations

import argparse
import logging
import sys

from rdump.config import DEFAULT_CONFIG, build_runner, load_config
from rdump.errors import RdumpError
from rdump.executor import LocalExecutor
from rdump.log import setup_logging
from rdump.prune import PRUNE_KEEP
from rdump.sudo import Sudo

log = logging.getLogger(__name__)

DEFAULT_PREFIX = "rdump"


def cmd_backup(args) -> int:
    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 1
    runner = build_runner(
        config, args.names, executor=LocalExecutor(sudo=args.sudo),
    )
    runner.run(pretend=args.pretend)
    return 0


def cmd_clone(args) -> int:
    from rdump.clone import clone
    from rdump.zfs import Inventory

    source_inv = Inventory.load(args.prefix, LocalExecutor(sudo=args.sudo))
    dest_inv = Inventory.load(
        args.prefix,
        None if args.dest_host else LocalExecutor(sudo=args.sudo),
        host=args.dest_host,
    )
    transfers = clone(
        source_inv, args.source, args.dest, dest_inv,
        perform=args.perform, excludes=args.exclude,
    )
    verb = "Sent" if args.perform else "Would send"
    print(f"\n{verb} {len(transfers)} transfer(s).")
    return 0


def cmd_prune(args) -> int:
    from rdump.prune import prune_hanoi
    from rdump.zfs import Inventory

    inventory = Inventory.load(args.prefix, LocalExecutor(sudo=args.sudo))
    prune_hanoi(inventory, args.volume, really=args.really, keep=args.keep)
    return 0


def cmd_snapshot(args) -> int:
    from rdump.zfs import Inventory

    inventory = Inventory.load(args.prefix, LocalExecutor(sudo=args.sudo))
    index = inventory.next_under(args.volume)
    inventory.take_snapshot(args.volume, index, perform=args.perform)
    return 0


def is_dry_run(args) -> bool:
    """True when the command changes nothing and needs no root.

    A clone dry run still estimates sizes with `zfs send -nP`, which does.
    """
    if args.command == "backup":
        return args.pretend
    if args.command == "prune":
        return not args.really
    if args.command == "snapshot":
        return not args.perform
    return False


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(
        prog="rdump",
        description="Sequence snapshot backups and replicate ZFS volume trees",
    )
    parser.add_argument("-c", "--config", default=DEFAULT_CONFIG,
                        help=f"Path to YAML config file (default {DEFAULT_CONFIG})")
    parser.add_argument("--sudo", action="store_true",
                        help="Run privileged commands through sudo, keeping it alive")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Show debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_backup = sub.add_parser("backup", help="Run the configured backups")
    p_backup.add_argument("--pretend", "--dry-run", "-n", action="store_true",
                          help="Show what would happen without making changes")
    p_backup.add_argument("names", nargs="*", metavar="NAME",
                          help="Backups to run (default: all)")
    p_backup.set_defaults(func=cmd_backup)

    def add_prefix(p):
        p.add_argument("--prefix", default=DEFAULT_PREFIX,
                       help=f"Snapshot name prefix (default {DEFAULT_PREFIX!r})")

    p_clone = sub.add_parser("clone", help="Replicate a ZFS volume tree")
    p_clone.add_argument("source", help="Source volume (its children follow)")
    p_clone.add_argument("dest", help="Destination volume")
    p_clone.add_argument("--dest-host", metavar="[USER@]HOST[:PORT]",
                         help="Receive on this host over ssh (runs zfs via sudo)")
    p_clone.add_argument("--exclude", action="append", default=[], metavar="REGEX",
                         help="Skip source volumes matching REGEX (repeatable)")
    p_clone.add_argument("--perform", action="store_true",
                         help="Actually create volumes and transfer data")
    add_prefix(p_clone)
    p_clone.set_defaults(func=cmd_clone)

    p_prune = sub.add_parser("prune", help="Hanoi-prune snapshots of a volume")
    p_prune.add_argument("volume")
    p_prune.add_argument("--really", action="store_true",
                         help="Destroy the snapshots instead of listing them")
    p_prune.add_argument("--keep", type=int, default=PRUNE_KEEP,
                         help=f"Recent snapshots always kept (default {PRUNE_KEEP})")
    add_prefix(p_prune)
    p_prune.set_defaults(func=cmd_prune)

    p_snapshot = sub.add_parser("snapshot",
        help="Take the next numbered recursive snapshot of a volume")
    p_snapshot.add_argument("volume")
    p_snapshot.add_argument("--perform", action="store_true",
                            help="Actually take the snapshot")
    add_prefix(p_snapshot)
    p_snapshot.set_defaults(func=cmd_snapshot)

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        with Sudo.start(args.sudo and not is_dry_run(args)) as sudo:
            # Already root, or nothing privileged to do.
            args.sudo = sudo.enabled
            rc = args.func(args)
    except RdumpError as e:
        log.error("%s", e)
        rc = 1
    sys.exit(rc)


if __name__ == "__main__":
    main()
