"""MockExecutor and shared fixtures for testing."""
from __future__ import annotations

import io
import shlex
import subprocess
from unittest.mock import MagicMock

import pytest

from rdump.models import Filesystem
from rdump.zfs import Inventory


class MockExecutor:
    """
    Executor that returns pre-scripted responses for commands.

    responses: dict mapping tuple(cmd) -> stdout string, an exception to
    raise, or (for status()) an int exit code.
    If the command isn't found, raises KeyError (to catch unexpected calls in tests).

    popen() never spawns anything; it returns a fake process whose exit code
    comes from popen_rc (keyed by tuple(cmd), default 0).
    """

    def __init__(
        self,
        responses: dict | None = None,
        label: str = "mock",
        popen_rc: dict | None = None,
        verbose: bool = False,
    ):
        self.responses: dict = responses or {}
        self.popen_rc: dict = popen_rc or {}
        self.verbose = verbose
        self._label = label
        self.calls: list[list[str]] = []  # record of all commands run
        self.popen_calls: list[list[str]] = []
        self.procs: list[MagicMock] = []

    @property
    def label(self) -> str:
        return self._label

    def _lookup(self, cmd: list[str]):
        self.calls.append(list(cmd))
        if self.verbose:
            print(f"  [mock] {shlex.join(cmd)}")
        key = tuple(cmd)
        if key not in self.responses:
            raise KeyError(f"MockExecutor: unexpected command: {cmd}")
        result = self.responses[key]
        if isinstance(result, Exception):
            raise result
        return result

    def run(self, cmd: list[str]) -> str:
        return self._lookup(cmd)

    def run_noio(self, cmd: list[str]) -> None:
        self._lookup(cmd)

    def status(self, cmd: list[str]) -> int:
        return self._lookup(cmd)

    def popen(self, cmd: list[str], **kwargs) -> subprocess.Popen:
        self.calls.append(list(cmd))
        self.popen_calls.append(list(cmd))
        if self.verbose:
            print(f"  [mock.popen] {shlex.join(cmd)}")

        rc = self.popen_rc.get(tuple(cmd), 0)
        proc = MagicMock(spec=subprocess.Popen)
        proc.args = list(cmd)
        proc.stdin = kwargs.get("stdin")
        proc.stdout = io.BytesIO(b"")
        proc.returncode = rc
        proc.wait.return_value = rc
        # Reported as still running so failure handling has to reap it.
        proc.poll.return_value = None
        self.procs.append(proc)
        return proc


class RecordingAction:
    """Action that logs perform/cleanup calls into a shared journal."""

    def __init__(self, name, journal, fail_perform=False, fail_cleanup=False):
        self.name = name
        self.journal = journal
        self.fail_perform = fail_perform
        self.fail_cleanup = fail_cleanup

    def perform(self):
        self.journal.append(("perform", self.name))
        if self.fail_perform:
            raise RuntimeError(f"perform {self.name} failed")

    def cleanup(self):
        self.journal.append(("cleanup", self.name))
        if self.fail_cleanup:
            raise RuntimeError(f"cleanup {self.name} failed")

    def describe(self):
        return f"action {self.name}"


def listing(*lines: tuple[str, str]) -> str:
    """Render (name, mountpoint) pairs as `zfs list -H` output."""
    return "".join(f"{name}\t{mount}\n" for name, mount in lines)


def make_inventory(
    volumes: dict[str, list[str]],
    prefix: str = "rd",
    executor: MockExecutor | None = None,
    host: str | None = None,
) -> Inventory:
    """Build an Inventory from {volume: [snapshots]} without running zfs."""
    filesystems = [
        Filesystem(name=name, mount=f"/{name}", snapshots=list(snaps))
        for name, snaps in volumes.items()
    ]
    return Inventory(prefix, filesystems, executor=executor or MockExecutor(), host=host)


def hanoi_names(prefix: str, count: int, stamp: str = "202601011200") -> list[str]:
    """Snapshot names <prefix>0000-stamp .. <prefix>NNNN-stamp, oldest first."""
    return [f"{prefix}{i:04d}-{stamp}" for i in range(count)]


@pytest.fixture
def journal():
    return []
