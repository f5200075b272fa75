# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_icebox

from pathlib import Path

import pytest
from pydantic import ValidationError

from coreason_icebox.models import LineTester, ProcessSpec, RunResult


def test_run_result_creation() -> None:
    result = RunResult(exit_status=0, stdout_data=b"hello\n", stderr_data=b"", duration=0.5)
    assert result.exit_status == 0
    assert result.stdout == "hello\n"
    assert result.stderr == ""
    assert result.timed_out is False
    assert result.duration == 0.5


def test_run_result_invalid_utf8_has_no_text_view() -> None:
    result = RunResult(exit_status=0, stdout_data=b"\xff\xfe", stderr_data=b"\xc3")
    assert result.stdout is None
    assert result.stderr is None
    assert result.stdout_data == b"\xff\xfe"


def test_run_result_is_frozen() -> None:
    result = RunResult(exit_status=0, stdout_data=b"", stderr_data=b"")
    with pytest.raises(ValidationError):
        result.exit_status = 1  # type: ignore[misc]


def test_run_result_validation_failures() -> None:
    with pytest.raises(ValidationError) as excinfo:
        RunResult(exit_status=0, stdout_data=b"")  # type: ignore[call-arg]
    assert "stderr_data" in str(excinfo.value)


def test_assert_success_and_failure() -> None:
    ok = RunResult(exit_status=0, stdout_data=b"", stderr_data=b"")
    failed = RunResult(exit_status=2, stdout_data=b"", stderr_data=b"boom")
    timed_out = RunResult(exit_status=-15, stdout_data=b"", stderr_data=b"", timed_out=True)

    ok.assert_success()
    failed.assert_failure()
    failed.assert_failure(2)

    with pytest.raises(AssertionError, match="got 2"):
        failed.assert_success()
    with pytest.raises(AssertionError, match="non-zero"):
        ok.assert_failure()
    with pytest.raises(AssertionError, match="Expected exit status 1"):
        failed.assert_failure(1)
    with pytest.raises(AssertionError, match="timeout"):
        timed_out.assert_success()


def test_assert_stdout_uses_line_tester() -> None:
    result = RunResult(exit_status=0, stdout_data=b"Compiling\nBuilt in 0.4s\n", stderr_data=b"warn\n")

    def check(t: LineTester) -> None:
        t.equals("Compiling")
        t.matches(r"^Built in [0-9.]+s$")
        t.empty()
        t.done()

    result.assert_stdout(check)
    result.assert_stderr(lambda t: (t.equals("warn"), t.empty(), t.done()))


def test_line_tester_any_order() -> None:
    tester = LineTester("b\na\nc")
    tester.equals_in_any_order({"a", "b"})
    tester.equals("c")
    tester.done()


def test_line_tester_any_order_unexpected_line() -> None:
    tester = LineTester("a\nz")
    with pytest.raises(AssertionError, match="Unexpected line: z"):
        tester.equals_in_any_order({"a", "b"})


def test_line_tester_failures() -> None:
    tester = LineTester("one")
    with pytest.raises(AssertionError):
        tester.equals("two")
    with pytest.raises(AssertionError, match="No lines left"):
        tester.any()

    tester = LineTester("abc\nleft")
    with pytest.raises(AssertionError, match="should match"):
        tester.matches(r"^\d+$")
    with pytest.raises(AssertionError, match="Lines remaining"):
        tester.done()


def test_process_spec_argv() -> None:
    spec = ProcessSpec(executable=Path("/bin/cat"), arguments=["a", "b"], cwd=Path("/tmp"))
    assert spec.argv() == ["/bin/cat", "a", "b"]
    assert spec.env is None

    spec.arguments.append("c")
    assert spec.argv()[-1] == "c"
