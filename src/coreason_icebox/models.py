# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_icebox

import re
from pathlib import Path
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field


class ProcessSpec(BaseModel):
    """The about-to-launch process, handed to configure hooks for mutation.

    Attributes:
        executable: Absolute path of the program to run.
        arguments: Arguments passed after the executable.
        cwd: Working directory of the child (the sandbox root).
        env: Full child environment. ``None`` inherits the parent environment.
    """

    executable: Path
    arguments: list[str] = Field(default_factory=list)
    cwd: Path
    env: dict[str, str] | None = None

    def argv(self) -> list[str]:
        return [str(self.executable), *self.arguments]


class LineTester:
    """Consumes captured output line by line, failing with AssertionError on mismatch."""

    def __init__(self, content: str):
        self.lines = content.split("\n")

    def equals(self, expected: str) -> None:
        first = self._remove_first()
        if first != expected:
            raise AssertionError(f"{first!r} != {expected!r}")

    def matches(self, pattern: str) -> None:
        first = self._remove_first()
        if re.search(pattern, first) is None:
            raise AssertionError(f"`{first}` should match {pattern}")

    def empty(self) -> None:
        self.equals("")

    def any(self) -> None:
        self._remove_first()

    def equals_in_any_order(self, expected: set[str]) -> None:
        remaining = set(expected)
        while remaining:
            first = self._remove_first()
            if first not in remaining:
                raise AssertionError(f"Unexpected line: {first}")
            remaining.remove(first)

    def done(self) -> None:
        if self.lines:
            raise AssertionError(f"Lines remaining: {self.lines}")

    def _remove_first(self) -> str:
        if not self.lines:
            raise AssertionError("No lines left")
        return self.lines.pop(0)


class RunResult(BaseModel):
    """Represents the outcome of one child process run inside an icebox.

    Attributes:
        exit_status: Exit status of the process. Negative when killed by a signal.
        stdout_data: Raw bytes written to stdout.
        stderr_data: Raw bytes written to stderr.
        timed_out: Whether the watchdog killed the process.
        duration: Wall-clock duration of the run in seconds.
    """

    model_config = ConfigDict(frozen=True)

    exit_status: int
    stdout_data: bytes
    stderr_data: bytes
    timed_out: bool = False
    duration: float = 0.0

    @property
    def stdout(self) -> str | None:
        """UTF-8 view of stdout, or None if it is not valid UTF-8."""
        return _decode(self.stdout_data)

    @property
    def stderr(self) -> str | None:
        """UTF-8 view of stderr, or None if it is not valid UTF-8."""
        return _decode(self.stderr_data)

    def assert_stdout(self, test: Callable[[LineTester], None]) -> None:
        test(LineTester(self.stdout or ""))

    def assert_stderr(self, test: Callable[[LineTester], None]) -> None:
        test(LineTester(self.stderr or ""))

    def assert_success(self) -> None:
        if self.timed_out:
            raise AssertionError("Process was killed after exceeding its timeout")
        if self.exit_status != 0:
            raise AssertionError(f"Expected exit status 0, got {self.exit_status}\nstderr:\n{self.stderr}")

    def assert_failure(self, expected: int | None = None) -> None:
        if expected is None:
            if self.exit_status == 0:
                raise AssertionError("Expected a non-zero exit status, got 0")
        else:
            if self.exit_status != expected:
                raise AssertionError(f"Expected exit status {expected}, got {self.exit_status}")


def _decode(data: bytes) -> str | None:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None
