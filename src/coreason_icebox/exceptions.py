# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_icebox

"""Exception taxonomy for icebox setup and containment failures."""

from pathlib import Path


class IceboxError(Exception):
    """Base exception for all icebox errors."""


class IceboxSetupError(IceboxError):
    """Raised when the sandbox fixture cannot be built or manipulated.

    Covers provisioning, template lookup and copy, directory creation and
    deletion, executable validation and file writes inside the box. A test
    cannot meaningfully continue after one of these.
    """


class PathEscapeError(IceboxSetupError):
    """Raised when a requested path resolves outside the sandbox root."""

    def __init__(self, root: Path, requested: str | Path) -> None:
        self.root = root
        self.requested = requested
        super().__init__(f"Attempted to access {requested!s} outside of icebox directory {root}")


class RunTimeoutWarning(UserWarning):
    """Emitted when a run exceeds its timeout and the child is killed."""
