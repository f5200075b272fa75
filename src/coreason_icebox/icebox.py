# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_icebox

import inspect
import os
import shutil
import warnings
from contextlib import contextmanager
from functools import partial
from pathlib import Path
from typing import Callable, ContextManager, Iterator

import anyio

from coreason_icebox.config import IceboxConfig
from coreason_icebox.exceptions import IceboxSetupError, RunTimeoutWarning
from coreason_icebox.guard import PathGuard, StrPath
from coreason_icebox.models import ProcessSpec, RunResult
from coreason_icebox.provisioner import SandboxProvisioner, Template, box_path
from coreason_icebox.runner import ProcessRunner
from coreason_icebox.utils.logger import logger

ProcessConfiguration = Callable[[ProcessSpec], None]


def _caller_labels() -> list[str]:
    """Identity labels of the test that is building the icebox.

    Uses the pytest node id when running under pytest, otherwise the file and
    function of the first frame outside this package.
    """
    current = os.environ.get("PYTEST_CURRENT_TEST")
    if current:
        node_id = current.rsplit(" ", 1)[0]
        file_part, _, test_part = node_id.partition("::")
        return [Path(file_part).stem, test_part or "unknown"]

    frame = inspect.currentframe()
    while frame is not None and frame.f_globals.get("__name__", "").startswith("coreason_icebox"):
        frame = frame.f_back
    if frame is None:  # pragma: no cover
        return ["unknown"]
    return [Path(frame.f_code.co_filename).stem, frame.f_code.co_name]


def _validate_executable(path: Path) -> None:
    if not path.is_file() or not os.access(path, os.X_OK):
        logger.error(f"executable {path} does not exist or is not executable")
        raise IceboxSetupError(f"Executable {path} does not exist or is not executable")


class Icebox:
    """A disposable working directory that one executable is run inside.

    The sandbox root is provisioned once, at construction, from ``template``.
    Files can then be staged with the path-guarded helpers and the executable
    run any number of times, one run at a time.

    Example:
        config = IceboxConfig(executable="/bin/cat", template_location=templates)
        box = Icebox(config, template="simple")
        result = box.run("file.txt")
        assert result.stdout == "hello\\n"
    """

    def __init__(self, config: IceboxConfig, template: Template | None = None, context: str | None = None):
        """Provisions the sandbox root.

        Args:
            config: Executable and environment configuration.
            template: Template to copy into the root; ``None`` or ``"empty"`` for an empty root.
            context: Label identifying the caller. Derived from the calling test if omitted.

        Raises:
            IceboxSetupError: If the executable is unusable or the root cannot be provisioned.
        """
        self.config = config
        self.executable = config.resolved_executable()
        _validate_executable(self.executable)

        labels = [context] if context is not None else _caller_labels()
        self.path = box_path(config.box_location.absolute(), self.executable, *labels)
        if config.print_location:
            logger.info(f"{self.path}")

        SandboxProvisioner(config.template_location).provision(self.path, template)
        self.guard = PathGuard(self.path)
        self._runner: ProcessRunner | None = None

    def __enter__(self) -> "Icebox":
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        if self.config.clean_up:
            self.clean_up()

    # Set up

    def create_file(self, path: StrPath, contents: str | bytes) -> Path:
        return self.guard.create_file(path, contents)

    def create_directory(self, path: StrPath) -> Path:
        return self.guard.create_directory(path)

    def remove_item(self, path: StrPath) -> None:
        self.guard.remove_item(path)

    def file_contents(self, path: StrPath) -> str | None:
        return self.guard.file_contents(path)

    def file_bytes(self, path: StrPath) -> bytes | None:
        return self.guard.file_bytes(path)

    def file_exists(self, path: StrPath) -> bool:
        return self.guard.file_exists(path)

    def list_directory(self, path: StrPath = ".") -> list[str]:
        return self.guard.list_directory(path)

    @contextmanager
    def inside(self) -> Iterator[Path]:
        """Temporarily makes the sandbox root the current working directory."""
        previous = os.getcwd()
        os.chdir(self.path)
        try:
            yield self.path
        finally:
            os.chdir(previous)

    # Run

    def run(
        self,
        *arguments: StrPath,
        configure: ProcessConfiguration | None = None,
        timeout: float | None = None,
    ) -> RunResult:
        """Runs the executable inside the sandbox root.

        Args:
            *arguments: Arguments passed to the executable.
            configure: Hook applied to the ProcessSpec after the config-level hook.
            timeout: Seconds before the process is killed. Defaults to ``config.default_timeout``.

        Returns:
            RunResult: The exit status and captured output. A timeout sets
            ``timed_out=True`` and emits a RunTimeoutWarning. Add
            ``filterwarnings = ["error::coreason_icebox.RunTimeoutWarning"]`` to the
            pytest configuration to turn it into a test failure.

        Raises:
            IceboxSetupError: If the sandbox root is gone or the process cannot be launched.
        """
        if not self.path.is_dir():
            logger.error(f"icebox directory {self.path} no longer exists")
            raise IceboxSetupError(f"Icebox directory {self.path} no longer exists")

        spec = ProcessSpec(
            executable=self.executable,
            arguments=[os.fspath(arg) for arg in arguments],
            cwd=self.path,
        )
        if self.config.configure is not None:
            self.config.configure(spec)
        if configure is not None:
            configure(spec)

        runner = ProcessRunner(
            spec,
            timeout=timeout if timeout is not None else self.config.default_timeout,
            kill_grace_period=self.config.kill_grace_period,
        )
        self._runner = runner
        try:
            result = runner.run()
        finally:
            self._runner = None

        if self.config.clean_up:
            self.clean_up()

        if result.timed_out:
            warnings.warn(
                f"Exceeded timeout ({runner.timeout} seconds), killed process",
                RunTimeoutWarning,
                stacklevel=2,
            )

        return result

    def run_success(self, *arguments: StrPath, **kwargs: object) -> RunResult:
        """Runs and asserts a zero exit status."""
        result = self.run(*arguments, **kwargs)  # type: ignore[arg-type]
        result.assert_success()
        return result

    def run_failure(self, *arguments: StrPath, expected: int | None = None, **kwargs: object) -> RunResult:
        """Runs and asserts a non-zero exit status (``expected`` exactly, if given)."""
        result = self.run(*arguments, **kwargs)  # type: ignore[arg-type]
        result.assert_failure(expected)
        return result

    def interrupt(self) -> None:
        runner = self._runner
        if runner is not None:
            runner.interrupt()

    # Clean up

    def clean_up(self) -> None:
        """Deletes the sandbox root. A root that is already gone is left alone."""
        try:
            shutil.rmtree(self.path)
        except FileNotFoundError:
            return
        except OSError as e:
            logger.error(f"failed to clean up icebox directory {self.path}\nError: {e}")
            raise IceboxSetupError(f"Failed to clean up icebox directory {self.path}: {e}") from e
        logger.debug(f"Removed icebox directory {self.path}")


class AsyncIcebox:
    """Async facade over Icebox.

    Runs are executed in a worker thread via anyio, so event-loop based tests
    can drive the executable without blocking the loop.
    """

    def __init__(self, config: IceboxConfig, template: Template | None = None, context: str | None = None):
        self.box = Icebox(config, template, context)

    @property
    def path(self) -> Path:
        return self.box.path

    async def __aenter__(self) -> "AsyncIcebox":
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.box.__exit__(exc_type, exc_val, exc_tb)

    async def run(
        self,
        *arguments: StrPath,
        configure: ProcessConfiguration | None = None,
        timeout: float | None = None,
    ) -> RunResult:
        return await anyio.to_thread.run_sync(partial(self.box.run, *arguments, configure=configure, timeout=timeout))

    async def run_success(self, *arguments: StrPath, **kwargs: object) -> RunResult:
        return await anyio.to_thread.run_sync(partial(self.box.run_success, *arguments, **kwargs))

    async def run_failure(self, *arguments: StrPath, expected: int | None = None, **kwargs: object) -> RunResult:
        return await anyio.to_thread.run_sync(partial(self.box.run_failure, *arguments, expected=expected, **kwargs))

    def interrupt(self) -> None:
        self.box.interrupt()

    def create_file(self, path: StrPath, contents: str | bytes) -> Path:
        return self.box.create_file(path, contents)

    def create_directory(self, path: StrPath) -> Path:
        return self.box.create_directory(path)

    def remove_item(self, path: StrPath) -> None:
        self.box.remove_item(path)

    def file_contents(self, path: StrPath) -> str | None:
        return self.box.file_contents(path)

    def file_bytes(self, path: StrPath) -> bytes | None:
        return self.box.file_bytes(path)

    def file_exists(self, path: StrPath) -> bool:
        return self.box.file_exists(path)

    def list_directory(self, path: StrPath = ".") -> list[str]:
        return self.box.list_directory(path)

    def inside(self) -> ContextManager[Path]:
        return self.box.inside()


    async def clean_up(self) -> None:
        await anyio.to_thread.run_sync(self.box.clean_up)
