"""Keep a sudo credential alive for the length of a long run.

Most of what rdump does needs root.  Rather than run everything as root,
commands can be run through sudo; a background thread re-runs ``sudo true``
every minute so the cached credential does not time out (and prompt again)
halfway through a multi-hour transfer.
"""
from __future__ import annotations

import logging
import os
import subprocess
import threading

from rdump.executor import ExecutorError

log = logging.getLogger(__name__)

KEEPALIVE_INTERVAL = 60.0


def poke_sudo() -> None:
    """Run ``sudo true``; may prompt for a password the first time."""
    rc = subprocess.run(["sudo", "true"], check=False).returncode
    if rc != 0:
        raise ExecutorError(["sudo", "true"], rc)


class Sudo:
    """Handle for the keep-alive thread; ``stop()`` ends it."""

    def __init__(self, enabled: bool, interval: float = KEEPALIVE_INTERVAL):
        self.enabled = enabled
        self.interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @classmethod
    def start(cls, enable: bool, interval: float = KEEPALIVE_INTERVAL) -> "Sudo":
        """Start keeping sudo alive, unless disabled or already root."""
        sudo = cls(enable and os.geteuid() != 0, interval)
        if sudo.enabled:
            poke_sudo()
            sudo._thread = threading.Thread(
                target=sudo._keepalive, name="sudo-keepalive", daemon=True,
            )
            sudo._thread.start()
        return sudo

    def _keepalive(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                poke_sudo()
            except Exception:
                log.exception("Error running background sudo")
                break

    def stop(self) -> None:
        """Stop future pokes; does not revoke the cached credential."""
        self._stop.set()
        if self._thread is not None:
            log.debug("Stopping sudo keep-alive")
            self._thread.join()
            self._thread = None

    def __enter__(self) -> "Sudo":
        return self

    def __exit__(self, *exc) -> None:
        self.stop()
