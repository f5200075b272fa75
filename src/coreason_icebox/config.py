# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_icebox

import tempfile
from pathlib import Path
from typing import Any, Callable

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class IceboxConfig(BaseSettings):
    """
    Configuration shared by every Icebox built for one executable.

    Values can be passed directly or picked up from ``ICEBOX_*`` environment
    variables (e.g. ``ICEBOX_EXECUTABLE``, ``ICEBOX_CLEAN_UP``).
    """

    executable: Path
    build_location: Path = Field(default_factory=lambda: Path.cwd() / "build")
    template_location: Path = Field(default_factory=lambda: Path.cwd() / "tests" / "templates")
    box_location: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()) / "icebox")

    clean_up: bool = False
    print_location: bool = True

    default_timeout: float | None = None
    kill_grace_period: float = 2.0  # seconds before SIGKILL

    # Called with the ProcessSpec right before every launch
    configure: Callable[[Any], None] | None = Field(default=None, exclude=True)

    model_config = SettingsConfigDict(
        env_prefix="ICEBOX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def resolved_executable(self) -> Path:
        """Absolute path of the executable, relative paths resolved against the build location."""
        if self.executable.is_absolute():
            return self.executable
        return (self.build_location / self.executable).absolute()
