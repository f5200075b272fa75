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
import sys
from pathlib import Path

from loguru import logger

__all__ = ["logger"]

LOG_DIR = Path(os.getenv("ICEBOX_LOG_DIR", "logs"))

# Console output keeps the blue/red "Icebox:" prefix of the harness
CONSOLE_FORMAT = (
    "<level>{level: <8}</level> | "
    "<blue>Icebox:</blue> <level>{message}</level>"
)

logger.remove()

logger.level("INFO", color="<blue>")
logger.level("ERROR", color="<red>")

logger.add(
    sys.stderr,
    level=os.getenv("ICEBOX_LOG_LEVEL", "INFO"),
    format=CONSOLE_FORMAT,
    colorize=None,
)

LOG_DIR.mkdir(parents=True, exist_ok=True)

# Structured JSON log for post-mortem of failed test runs
logger.add(
    LOG_DIR / "icebox.log",
    level="DEBUG",
    rotation="10 MB",
    retention="1 week",
    serialize=True,
    enqueue=True,
)
