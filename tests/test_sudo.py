"""Tests for rdump.sudo keep-alive."""
from __future__ import annotations

import threading

import pytest

from rdump import sudo as sudo_mod
from rdump.executor import ExecutorError
from rdump.sudo import Sudo


class Pokes:
    def __init__(self):
        self.count = 0
        self.event = threading.Event()

    def __call__(self):
        self.count += 1
        self.event.set()


@pytest.fixture
def pokes(monkeypatch):
    recorder = Pokes()
    monkeypatch.setattr(sudo_mod, "poke_sudo", recorder)
    return recorder


def test_disabled_does_nothing(pokes):
    sudo = Sudo.start(False)
    assert not sudo.enabled
    assert pokes.count == 0
    sudo.stop()


def test_root_needs_no_sudo(pokes, monkeypatch):
    monkeypatch.setattr(sudo_mod.os, "geteuid", lambda: 0)
    sudo = Sudo.start(True)
    assert not sudo.enabled
    assert pokes.count == 0
    sudo.stop()


def test_keepalive_pokes_until_stopped(pokes, monkeypatch):
    monkeypatch.setattr(sudo_mod.os, "geteuid", lambda: 1000)
    with Sudo.start(True, interval=0.01) as sudo:
        assert sudo.enabled
        pokes.event.clear()
        assert pokes.event.wait(5)
    assert sudo._thread is None
    # The initial poke plus at least one from the thread.
    assert pokes.count >= 2


def test_initial_poke_failure_raises(monkeypatch):
    def failing():
        raise ExecutorError(["sudo", "true"], 1)

    monkeypatch.setattr(sudo_mod, "poke_sudo", failing)
    monkeypatch.setattr(sudo_mod.os, "geteuid", lambda: 1000)
    with pytest.raises(ExecutorError, match="sudo true"):
        Sudo.start(True)


def test_poke_sudo_checks_status(monkeypatch):
    class Result:
        returncode = 1

    monkeypatch.setattr(sudo_mod.subprocess, "run", lambda *a, **k: Result())
    with pytest.raises(ExecutorError):
        sudo_mod.poke_sudo()
