"""Executor protocol and implementations (local, SSH)."""
from __future__ import annotations

import shlex
import subprocess
from typing import Protocol, runtime_checkable

from rdump.errors import RdumpError


class ExecutorError(RdumpError):
    """Raised when a command exits with a non-zero status."""
    def __init__(
        self,
        cmd: list[str],
        returncode: int,
        stderr: str = "",
        stage: str | None = None,
    ):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        self.stage = stage
        where = f"{stage} stage " if stage else ""
        message = f"{where}command {shlex.join(cmd)!r} exited {returncode}"
        if stderr.strip():
            message += f": {stderr.strip()}"
        super().__init__(message[0].upper() + message[1:])


@runtime_checkable
class Executor(Protocol):
    @property
    def label(self) -> str:
        """Short label for display (e.g. 'local', 'ssh://host')."""
        raise NotImplementedError

    def run(self, cmd: list[str]) -> str:
        """Run a command, return stdout. Raise ExecutorError on failure."""
        raise NotImplementedError

    def run_noio(self, cmd: list[str]) -> None:
        """Run a command with stdin from /dev/null and stderr inherited."""
        raise NotImplementedError

    def status(self, cmd: list[str]) -> int:
        """Run a command and return its exit status without checking it."""
        raise NotImplementedError

    def popen(self, cmd: list[str], **kwargs) -> subprocess.Popen:
        """Launch a command as a Popen object for piping."""
        raise NotImplementedError


class LocalExecutor:
    """Run commands on the local machine.

    When ``sudo`` is set every command is prefixed with ``sudo``; pair this
    with :class:`rdump.sudo.Sudo` so the credential does not expire mid-run.
    """

    def __init__(self, sudo: bool = False):
        self.sudo = sudo

    @property
    def label(self) -> str:
        return "local+sudo" if self.sudo else "local"

    def _wrap(self, cmd: list[str]) -> list[str]:
        return ["sudo"] + cmd if self.sudo else list(cmd)

    def run(self, cmd: list[str]) -> str:
        full_cmd = self._wrap(cmd)
        result = subprocess.run(
            full_cmd,
            capture_output=True,
            text=True,
            check=False,
        )
        if result.returncode != 0:
            raise ExecutorError(full_cmd, result.returncode, result.stderr)
        return result.stdout

    def run_noio(self, cmd: list[str]) -> None:
        full_cmd = self._wrap(cmd)
        result = subprocess.run(full_cmd, stdin=subprocess.DEVNULL, check=False)
        if result.returncode != 0:
            raise ExecutorError(full_cmd, result.returncode)

    def status(self, cmd: list[str]) -> int:
        return subprocess.run(
            self._wrap(cmd), stdin=subprocess.DEVNULL, check=False
        ).returncode

    def popen(self, cmd: list[str], **kwargs) -> subprocess.Popen:
        return subprocess.Popen(self._wrap(cmd), text=False, **kwargs)


class SSHExecutor:
    """Run commands on a remote host via SSH."""

    def __init__(
        self,
        host: str,
        user: str | None = None,
        port: int = 22,
        sudo: bool = False,
    ):
        self.host = host
        self.user = user
        self.port = port
        self.sudo = sudo

    @classmethod
    def from_target(cls, target: str, sudo: bool = False) -> "SSHExecutor":
        """Build from a ``[user@]host[:port]`` string."""
        user, _, rest = target.rpartition("@")
        host, _, port = rest.partition(":")
        return cls(host=host, user=user or None, port=int(port or 22), sudo=sudo)

    @property
    def label(self) -> str:
        dest = f"{self.user}@{self.host}" if self.user else self.host
        return f"ssh://{dest}:{self.port}"

    def _ssh_prefix(self) -> list[str]:
        dest = f"{self.user}@{self.host}" if self.user else self.host
        return [
            "ssh",
            "-o", "BatchMode=yes",
            "-o", "StrictHostKeyChecking=accept-new",
            "-p", str(self.port),
            dest,
        ]

    def _wrap(self, cmd: list[str]) -> list[str]:
        remote = ["sudo"] + cmd if self.sudo else cmd
        return self._ssh_prefix() + [shlex.join(remote)]

    def run(self, cmd: list[str]) -> str:
        full_cmd = self._wrap(cmd)
        result = subprocess.run(
            full_cmd,
            capture_output=True,
            text=True,
            check=False,
        )
        if result.returncode != 0:
            raise ExecutorError(full_cmd, result.returncode, result.stderr)
        return result.stdout

    def run_noio(self, cmd: list[str]) -> None:
        full_cmd = self._wrap(cmd)
        result = subprocess.run(full_cmd, stdin=subprocess.DEVNULL, check=False)
        if result.returncode != 0:
            raise ExecutorError(full_cmd, result.returncode)

    def status(self, cmd: list[str]) -> int:
        return subprocess.run(
            self._wrap(cmd), stdin=subprocess.DEVNULL, check=False
        ).returncode

    def popen(self, cmd: list[str], **kwargs) -> subprocess.Popen:
        return subprocess.Popen(self._wrap(cmd), text=False, **kwargs)
