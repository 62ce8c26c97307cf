"""The zfs send | pv | zfs receive pipeline."""
from __future__ import annotations

import logging
import shlex
import subprocess
from typing import TYPE_CHECKING

from rdump.executor import ExecutorError, LocalExecutor
from rdump.zfs import parse_size_estimate

if TYPE_CHECKING:
    from rdump.executor import Executor
    from rdump.models import Transfer

log = logging.getLogger(__name__)

STAGES = ("send", "monitor", "receive")


def send_command(
    source: str,
    to_snap: str,
    from_snap: str | None = None,
    estimate: bool = False,
) -> list[str]:
    """Build ``zfs send``; with ``estimate`` only a size report is produced."""
    cmd = ["zfs", "send"]
    if estimate:
        cmd.append("-nP")
    if from_snap is not None:
        cmd += ["-I", f"@{from_snap}"]
    cmd.append(f"{source}@{to_snap}")
    return cmd


def receive_command(dest: str) -> list[str]:
    # The replica keeps its own (inherited) mountpoint.
    return ["zfs", "receive", "-vF", "-x", "mountpoint", dest]


def monitor_command(size: int) -> list[str]:
    return ["pv", "-s", str(size)]


def estimate_size(executor: "Executor", transfer: "Transfer") -> int:
    """Ask zfs how many bytes a transfer will move.

    The number only feeds the progress display, so anything unparsable
    counts as 0.
    """
    output = executor.run(send_command(
        transfer.source, transfer.to_snap, transfer.from_snap, estimate=True,
    ))
    return parse_size_estimate(output)


def _reap(procs: list[subprocess.Popen]) -> None:
    """Terminate and wait for pipeline stages that are still running."""
    for proc in procs:
        if proc.poll() is None:
            proc.terminate()
    for proc in procs:
        proc.wait()


def run_pipeline(
    send_cmd: list[str],
    recv_cmd: list[str],
    size: int,
    src_executor: "Executor",
    dst_executor: "Executor",
    monitor_executor: "Executor | None" = None,
) -> None:
    """
    Run send | pv -s size | receive as three concurrent processes.

    All three stages are started before any is waited on; they are then
    reaped in pipeline order.  The first stage to exit non-zero is raised as
    an ExecutorError carrying the stage name, after any stage still running
    has been terminated so that a failure never leaves a stray pv or receive
    behind.
    """
    if monitor_executor is None:
        monitor_executor = LocalExecutor()
    monitor_cmd = monitor_command(size)
    log.debug("[send (%s)] %s", src_executor.label, shlex.join(send_cmd))
    log.debug("[monitor] %s", shlex.join(monitor_cmd))
    log.debug("[receive (%s)] %s", dst_executor.label, shlex.join(recv_cmd))

    cmds = dict(zip(STAGES, (send_cmd, monitor_cmd, recv_cmd)))
    procs: list[subprocess.Popen] = []
    stage = STAGES[0]
    try:
        send_proc = src_executor.popen(send_cmd, stdout=subprocess.PIPE)
        procs.append(send_proc)
        stage = STAGES[1]
        pv_proc = monitor_executor.popen(
            monitor_cmd, stdin=send_proc.stdout, stdout=subprocess.PIPE,
        )
        procs.append(pv_proc)
        stage = STAGES[2]
        recv_proc = dst_executor.popen(recv_cmd, stdin=pv_proc.stdout)
        procs.append(recv_proc)
    except OSError as e:
        for proc in procs:
            proc.kill()
        _reap(procs)
        raise ExecutorError(cmds[stage], 1, str(e), stage=stage) from e

    # Drop our copies of the pipe ends so each writer sees SIGPIPE if its
    # reader goes away.
    send_proc.stdout.close()
    pv_proc.stdout.close()

    for index, (stage, proc) in enumerate(zip(STAGES, procs)):
        rc = proc.wait()
        if rc != 0:
            _reap(procs[index + 1:])
            raise ExecutorError(cmds[stage], rc, stage=stage)


def execute(
    transfer: "Transfer",
    size: int,
    src_executor: "Executor",
    dst_executor: "Executor",
) -> None:
    run_pipeline(
        send_command(transfer.source, transfer.to_snap, transfer.from_snap),
        receive_command(transfer.dest),
        size,
        src_executor,
        dst_executor,
    )
