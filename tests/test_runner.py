"""Tests for rdump.actions.runner."""
from __future__ import annotations

import logging

import pytest

from rdump.actions import Message, Runner
from tests.conftest import RecordingAction


def _runner(journal, count, **failures):
    runner = Runner()
    for i in range(1, count + 1):
        runner.push(RecordingAction(
            str(i), journal,
            fail_perform=(i == failures.get("perform_at")),
            fail_cleanup=(i in failures.get("cleanup_fails", ())),
        ))
    return runner


def test_all_succeed_cleans_up_in_reverse(journal):
    _runner(journal, 3).run()
    assert journal == [
        ("perform", "1"), ("perform", "2"), ("perform", "3"),
        ("cleanup", "3"), ("cleanup", "2"), ("cleanup", "1"),
    ]


@pytest.mark.parametrize("fail_at", [1, 2, 3, 4, 5])
def test_failure_cleans_up_only_performed_actions(journal, fail_at):
    runner = _runner(journal, 5, perform_at=fail_at)
    with pytest.raises(RuntimeError, match=f"perform {fail_at} failed"):
        runner.run()

    performed = [name for op, name in journal if op == "perform"]
    cleaned = [name for op, name in journal if op == "cleanup"]
    assert performed == [str(i) for i in range(1, fail_at + 1)]
    assert cleaned == [str(i) for i in range(fail_at - 1, 0, -1)]


def test_cleanup_failure_does_not_stop_pass_or_replace_error(journal, caplog):
    runner = _runner(journal, 4, perform_at=4, cleanup_fails=(2,))
    with caplog.at_level(logging.ERROR, logger="rdump"):
        with pytest.raises(RuntimeError, match="perform 4 failed"):
            runner.run()
    cleaned = [name for op, name in journal if op == "cleanup"]
    assert cleaned == ["3", "2", "1"]
    assert "Cleanup error" in caplog.text


def test_cleanup_failure_after_success_is_not_raised(journal):
    _runner(journal, 2, cleanup_fails=(1, 2)).run()
    assert [op for op, _ in journal].count("cleanup") == 2


def test_pretend_describes_without_running(journal, capsys):
    _runner(journal, 3).run(pretend=True)
    assert journal == []
    out = capsys.readouterr().out.splitlines()
    assert out == ["would: action 1", "would: action 2", "would: action 3"]


def test_empty_runner(capsys):
    Runner().run()
    Runner().run(pretend=True)
    assert capsys.readouterr().out == ""


def test_run_consumes_runner(journal):
    runner = _runner(journal, 1)
    runner.run()
    with pytest.raises(RuntimeError, match="already been run"):
        runner.run()
    assert journal == [("perform", "1"), ("cleanup", "1")]


def test_append_preserves_order_and_empties_other(journal):
    first = _runner(journal, 2)
    second = Runner()
    second.push(RecordingAction("a", journal))
    second.push(RecordingAction("b", journal))
    first.append(second)

    assert len(first) == 4
    assert len(second) == 0
    first.run(pretend=True)
    assert journal == []

    journal.clear()
    first = _runner(journal, 1)
    first.append(second)  # already drained
    assert len(first) == 1


def test_message_action(capsys):
    msg = Message("Snapshots")
    assert msg.describe() == "    running: Snapshots"
    msg.perform()
    msg.cleanup()
    out = capsys.readouterr().out
    assert "running: Snapshots" in out
    assert out.count("-" * 60) == 2
