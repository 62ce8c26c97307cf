"""Load the YAML backup configuration and turn it into a Runner."""
from __future__ import annotations

import enum
import os
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterable

import yaml

from rdump import actions
from rdump.actions import Runner
from rdump.errors import ConfigError
from rdump.executor import LocalExecutor
from rdump.models import ConfigFile, LvmTarget, SimpleTarget

if TYPE_CHECKING:
    from rdump.executor import Executor

DEFAULT_CONFIG = "rdump.yaml"
STAMP_FILE = "snapstamp"

# Steps a target may list under `actions`; an empty list means all of them.
# LVM targets are always snapshotted and mounted.
KNOWN_ACTIONS = ("stamp", "rsure", "borg")


class Phase(enum.IntEnum):
    """Groups of actions, run in this order across all targets."""
    TIMESTAMP = 1
    SNAPSHOT = 2
    MOUNT = 3
    RSURE = 4
    BORG = 5


PHASE_TITLES = {
    Phase.TIMESTAMP: "Timestamps",
    Phase.SNAPSHOT: "Snapshots",
    Phase.MOUNT: "Mount",
    Phase.RSURE: "Rsure",
    Phase.BORG: "Borg",
}


def _require_str(raw: dict, key: str, where: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{where}.{key} is required")
    return value


def _actions(raw: dict, where: str) -> list[str]:
    value = raw.get("actions", [])
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"{where}.actions must be a list")
    for name in value:
        if name not in KNOWN_ACTIONS:
            raise ConfigError(
                f"{where}.actions: unknown action {name!r} "
                f"(expected one of {', '.join(KNOWN_ACTIONS)})"
            )
    return list(value)


def load_config(path: str) -> ConfigFile:
    with open(path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ConfigError(f"Config must be a YAML mapping: {path}")

    # --- config ---
    cfg_raw = raw.get("config")
    if not isinstance(cfg_raw, dict):
        raise ConfigError("'config' section is required")
    borg = _require_str(cfg_raw, "borg", "config")
    rsure = cfg_raw.get("rsure", "rsure")
    if not isinstance(rsure, str) or not rsure:
        raise ConfigError("config.rsure must be a non-empty string")

    names: set[str] = set()

    def check_name(name: str, where: str) -> None:
        if name in names:
            raise ConfigError(f"{where}: duplicate name {name!r}")
        names.add(name)

    # --- simple ---
    simple = []
    for i, entry in enumerate(raw.get("simple") or []):
        where = f"simple[{i}]"
        if not isinstance(entry, dict):
            raise ConfigError(f"{where} must be a mapping")
        target = SimpleTarget(
            name=_require_str(entry, "name", where),
            mount=_require_str(entry, "mount", where),
            actions=_actions(entry, where),
        )
        check_name(target.name, where)
        simple.append(target)

    # --- lvm ---
    lvm = []
    for i, entry in enumerate(raw.get("lvm") or []):
        where = f"lvm[{i}]"
        if not isinstance(entry, dict):
            raise ConfigError(f"{where} must be a mapping")
        target = LvmTarget(
            name=_require_str(entry, "name", where),
            mount=_require_str(entry, "mount", where),
            snap=_require_str(entry, "snap", where),
            vg=_require_str(entry, "vg", where),
            lv=_require_str(entry, "lv", where),
            lv_snap=_require_str(entry, "lv_snap", where),
            fs=_require_str(entry, "fs", where),
            actions=_actions(entry, where),
        )
        check_name(target.name, where)
        lvm.append(target)

    return ConfigFile(borg=borg, rsure=rsure, simple=simple, lvm=lvm)


def _wants(target_actions: list[str], name: str) -> bool:
    return not target_actions or name in target_actions


def _add_simple(
    runners: dict[Phase, Runner],
    target: SimpleTarget,
    config: ConfigFile,
    stamp: str,
    executor: "Executor",
) -> None:
    if _wants(target.actions, "stamp"):
        runners[Phase.TIMESTAMP].push(
            actions.Stamp(
                os.path.join(target.mount, STAMP_FILE), executor=executor,
            )
        )
    if _wants(target.actions, "rsure"):
        runners[Phase.RSURE].push(
            actions.SimpleRsure(
                target.mount, stamp, rsure=config.rsure, executor=executor,
            )
        )
    if _wants(target.actions, "borg"):
        runners[Phase.BORG].push(
            actions.BorgBackup(
                target.mount, config.borg, f"{target.name}-{stamp}",
                executor=executor,
            )
        )


def _add_lvm(
    runners: dict[Phase, Runner],
    target: LvmTarget,
    config: ConfigFile,
    stamp: str,
    executor: "Executor",
) -> None:
    if _wants(target.actions, "stamp"):
        runners[Phase.TIMESTAMP].push(
            actions.Stamp(
                os.path.join(target.mount, STAMP_FILE), executor=executor,
            )
        )
    runners[Phase.SNAPSHOT].push(
        actions.LvmSnapshot(
            target.vg, target.lv, target.lv_snap, executor=executor,
        )
    )
    runners[Phase.MOUNT].push(
        actions.MountSnap(
            target.snap_device, target.snap, target.fs == "xfs",
            executor=executor,
        )
    )
    if _wants(target.actions, "rsure"):
        runners[Phase.RSURE].push(
            actions.LvmRsure(
                target.mount, target.snap, stamp, rsure=config.rsure,
                executor=executor,
            )
        )
    if _wants(target.actions, "borg"):
        runners[Phase.BORG].push(
            actions.BorgBackup(
                target.snap, config.borg, f"{target.name}-{stamp}",
                executor=executor,
            )
        )


def build_runner(
    config: ConfigFile,
    names: Iterable[str] = (),
    now: datetime | None = None,
    executor: "Executor | None" = None,
) -> Runner:
    """
    Build one Runner backing up the named targets (all when ``names`` is empty).

    Each phase collects its actions from every selected target, so all
    stamps are written before any snapshot is taken, all snapshots exist
    before any is mounted, and so on.
    """
    wanted = set(names)
    known = {t.name for t in config.simple} | {t.name for t in config.lvm}
    unknown = wanted - known
    if unknown:
        raise ConfigError(f"Unknown backup name(s): {', '.join(sorted(unknown))}")

    now = now or datetime.now(timezone.utc)
    executor = executor or LocalExecutor()
    stamp = now.strftime("%Y%m%dT%H%M%S")

    runners: dict[Phase, Runner] = {}
    for phase in Phase:
        runners[phase] = Runner()
        runners[phase].push(actions.Message(PHASE_TITLES[phase]))

    for target in config.simple:
        if not wanted or target.name in wanted:
            _add_simple(runners, target, config, stamp, executor)
    for target in config.lvm:
        if not wanted or target.name in wanted:
            _add_lvm(runners, target, config, stamp, executor)

    runner = Runner()
    for phase in Phase:
        runner.append(runners[phase])
    runner.push(actions.Message("Finished, cleaning up"))
    return runner
