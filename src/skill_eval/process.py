"""Subprocess trees with timeouts and cooperative cancellation."""

from __future__ import annotations

import os
import signal
import subprocess
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Mapping, Sequence


class EvaluationTimeout(Exception):
    """Raised when an evaluation exceeds its wall-clock ceiling."""


@dataclass
class CommandResult:
    returncode: int
    output: str
    duration_seconds: float = 0.0
    timed_out: bool = False
    cancelled: bool = False

    @property
    def success(self) -> bool:
        return self.returncode == 0 and not self.timed_out and not self.cancelled


def terminate_tree(proc: subprocess.Popen, grace_seconds: float = 10.0) -> None:
    """SIGTERM the process group, then SIGKILL it if still alive after the grace period.

    Processes are started in their own session, so the group id equals the pid.
    """
    if proc.poll() is not None:
        return
    try:
        os.killpg(proc.pid, signal.SIGTERM)
    except ProcessLookupError:
        return
    try:
        proc.wait(timeout=grace_seconds)
    except subprocess.TimeoutExpired:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            return
        proc.wait()


class CancellationToken:
    """Deadline shared by every subprocess one evaluation spawns.

    Processes register while running. ``cancel()`` (called by the watchdog
    when the deadline passes) terminates every registered process tree.
    """

    def __init__(self, timeout_seconds: float | None = None, grace_seconds: float = 10.0):
        self.timeout_seconds = timeout_seconds
        self.grace_seconds = grace_seconds
        self.deadline = time.monotonic() + timeout_seconds if timeout_seconds else None
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._processes: set[subprocess.Popen] = set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> float | None:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def cancel(self) -> None:
        self._event.set()
        with self._lock:
            procs = list(self._processes)
        for proc in procs:
            terminate_tree(proc, self.grace_seconds)

    def register(self, proc: subprocess.Popen) -> None:
        with self._lock:
            self._processes.add(proc)
        # cancel() may have run between the caller's check and the add
        if self._event.is_set():
            terminate_tree(proc, self.grace_seconds)

    def unregister(self, proc: subprocess.Popen) -> None:
        with self._lock:
            self._processes.discard(proc)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise EvaluationTimeout(f"Evaluation exceeded {self.timeout_seconds}s")

    @contextmanager
    def watchdog(self) -> Iterator[CancellationToken]:
        """Cancel this token when its deadline passes."""
        remaining = self.remaining()
        if remaining is None:
            yield self
            return
        timer = threading.Timer(remaining, self.cancel)
        timer.daemon = True
        timer.start()
        try:
            yield self
        finally:
            timer.cancel()


def run_command(
    command: Sequence[str],
    cwd: str | Path | None = None,
    timeout: float | None = None,
    env: Mapping[str, str] | None = None,
    token: CancellationToken | None = None,
    grace_seconds: float = 10.0,
    merge_stderr: bool = True,
) -> CommandResult:
    """Run a command, merging stderr into stdout unless ``merge_stderr`` is false.

    With ``merge_stderr=False`` stderr is discarded and only stdout is captured.

    The effective timeout is the smaller of ``timeout`` and the token's
    remaining time. On expiry the whole process group is terminated.
    """
    if token is not None and token.cancelled:
        return CommandResult(returncode=-1, output="", cancelled=True)

    effective = timeout
    if token is not None and token.remaining() is not None:
        remaining = token.remaining()
        effective = remaining if effective is None else min(effective, remaining)

    child_env = os.environ.copy()
    if env:
        child_env.update(env)

    start = time.time()
    try:
        proc = subprocess.Popen(
            list(command),
            cwd=cwd,
            env=child_env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT if merge_stderr else subprocess.DEVNULL,
            text=True,
            errors="replace",
            start_new_session=True,
        )
    except OSError as e:
        return CommandResult(
            returncode=127,
            output=f"Error starting {command[0]}: {e}",
            duration_seconds=time.time() - start,
        )

    if token is not None:
        token.register(proc)
    timed_out = False
    try:
        try:
            output, _ = proc.communicate(timeout=effective)
        except subprocess.TimeoutExpired:
            timed_out = True
            terminate_tree(proc, grace_seconds)
            output, _ = proc.communicate()
    finally:
        if token is not None:
            token.unregister(proc)

    cancelled = token is not None and token.cancelled
    return CommandResult(
        returncode=proc.returncode,
        output=output or "",
        duration_seconds=time.time() - start,
        timed_out=timed_out and not cancelled,
        cancelled=cancelled,
    )
