# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_icebox

import os
import shlex
import signal
import subprocess
import threading
import time
from enum import Enum
from typing import Callable

from coreason_icebox.collector import StreamCollector
from coreason_icebox.exceptions import IceboxSetupError
from coreason_icebox.models import ProcessSpec, RunResult
from coreason_icebox.utils.logger import logger

_POSIX = os.name == "posix"


class RunState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    NATURALLY_EXITED = "naturally_exited"
    TIMED_OUT_AND_KILLED = "timed_out_and_killed"
    FINALIZED = "finalized"


class Watchdog:
    """Cancelable one-shot timer guarding a running process.

    ``action`` returns True when it actually terminated something. Firing and
    cancellation are serialized, so once ``cancel()`` returns the action has
    either completed or will never run. Cancelling twice, or after firing, is
    a no-op.
    """

    def __init__(self, timeout: float, action: Callable[[], bool]):
        self.timeout = timeout
        self.fired = False
        self._action = action
        self._lock = threading.Lock()
        self._cancelled = False
        self._timer = threading.Timer(timeout, self._fire)
        self._timer.daemon = True

    def start(self) -> None:
        self._timer.start()

    def _fire(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self.fired = self._action()

    def cancel(self) -> None:
        self._timer.cancel()
        with self._lock:
            self._cancelled = True


class ProcessRunner:
    """Executes exactly one invocation of a ProcessSpec and captures its output."""

    def __init__(self, spec: ProcessSpec, timeout: float | None = None, kill_grace_period: float = 2.0):
        self.spec = spec
        self.timeout = timeout
        self.kill_grace_period = kill_grace_period
        self.state = RunState.NOT_STARTED
        self.timed_out = False
        self._process: subprocess.Popen[bytes] | None = None
        self._collectors: list[StreamCollector] = []

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    def run(self) -> RunResult:
        """Spawns the child, drains both pipes and waits for exit or timeout.

        On POSIX the child leads its own process group, so timeouts and
        interrupts also reach any processes it spawned that still hold the pipes.

        Returns:
            RunResult: Exit status and the captured stdout/stderr bytes.

        Raises:
            RuntimeError: If this runner has already been used.
            IceboxSetupError: If the process cannot be spawned.
        """
        if self.state is not RunState.NOT_STARTED:
            raise RuntimeError("A ProcessRunner executes exactly one invocation")

        argv = self.spec.argv()
        logger.info(f"Running `{shlex.join(argv)}` in {self.spec.cwd}")
        start_time = time.monotonic()
        try:
            process = subprocess.Popen(
                argv,
                cwd=self.spec.cwd,
                env=self.spec.env,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=_POSIX,
            )
        except OSError as e:
            logger.error(f"failed to launch {argv[0]}\nError: {e}")
            raise IceboxSetupError(f"Failed to launch {argv[0]}: {e}") from e

        # Collectors must be draining before anything below blocks
        assert process.stdout is not None and process.stderr is not None
        out_collector = StreamCollector(process.stdout, "stdout")
        err_collector = StreamCollector(process.stderr, "stderr")
        self._collectors = [out_collector, err_collector]
        self._process = process
        self.state = RunState.RUNNING

        watchdog: Watchdog | None = None
        if self.timeout is not None:
            watchdog = Watchdog(self.timeout, self._on_timeout)
            watchdog.start()

        try:
            stdout_data = out_collector.read()
            stderr_data = err_collector.read()
            exit_status = process.wait()
        finally:
            if watchdog is not None:
                watchdog.cancel()
            if process.poll() is None:
                self._kill(process)
            self._process = None

        self.timed_out = watchdog is not None and watchdog.fired
        self.state = RunState.TIMED_OUT_AND_KILLED if self.timed_out else RunState.NATURALLY_EXITED
        duration = time.monotonic() - start_time
        logger.info(f"Process exited with status {exit_status} after {duration:.3f}s")

        result = RunResult(
            exit_status=exit_status,
            stdout_data=stdout_data,
            stderr_data=stderr_data,
            timed_out=self.timed_out,
            duration=duration,
        )
        self.state = RunState.FINALIZED
        return result

    def interrupt(self) -> None:
        """Sends an interrupt to the running child's process group, killing it if it does not exit in time."""
        process = self._process
        if process is None or self._finished(process):
            return
        logger.warning(f"Interrupting process {process.pid}")
        self._stop(process, getattr(signal, "SIGINT", None))

    def _on_timeout(self) -> bool:
        process = self._process
        if process is None or self._finished(process):
            return False
        logger.error(f"Exceeded timeout ({self.timeout} seconds), killing process {process.pid}")
        self._stop(process, getattr(signal, "SIGTERM", None))
        return True

    def _finished(self, process: "subprocess.Popen[bytes]") -> bool:
        # The leader can exit while a descendant still holds the pipes open
        return process.poll() is not None and self._wait_drained(0)

    def _wait_drained(self, timeout: float) -> bool:
        deadline = time.monotonic() + timeout
        return all(c.wait(max(0.0, deadline - time.monotonic())) for c in self._collectors)

    def _stop(self, process: "subprocess.Popen[bytes]", sig: int | None) -> None:
        if sig is None or not _POSIX:
            # No graceful interrupt delivery here; terminate() is already unconditional
            process.terminate()
            process.wait()
            return

        deadline = time.monotonic() + self.kill_grace_period
        _signal_group(process, sig)
        try:
            process.wait(timeout=self.kill_grace_period)
        except subprocess.TimeoutExpired:
            logger.warning(f"Process {process.pid} still running after {self.kill_grace_period}s, killing")
        else:
            if self._wait_drained(deadline - time.monotonic()):
                return
            logger.warning(f"Descendants of process {process.pid} still hold its output open, killing")
        self._kill(process)

    @staticmethod
    def _kill(process: "subprocess.Popen[bytes]") -> None:
        if _POSIX:
            _signal_group(process, signal.SIGKILL)
        else:
            process.kill()
        process.wait()


def _signal_group(process: "subprocess.Popen[bytes]", sig: int) -> None:
    try:
        os.killpg(process.pid, sig)
    except ProcessLookupError:
        # Whole group already gone
        pass
