# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_icebox

"""
coreason-icebox
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .config import IceboxConfig
from .exceptions import IceboxError, IceboxSetupError, PathEscapeError, RunTimeoutWarning
from .icebox import AsyncIcebox, Icebox
from .models import LineTester, ProcessSpec, RunResult
from .runner import ProcessRunner, RunState

__all__ = [
    "Icebox",
    "AsyncIcebox",
    "IceboxConfig",
    "RunResult",
    "ProcessSpec",
    "LineTester",
    "ProcessRunner",
    "RunState",
    "IceboxError",
    "IceboxSetupError",
    "PathEscapeError",
    "RunTimeoutWarning",
]
