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
import shutil
from enum import Enum
from pathlib import Path

from coreason_icebox.exceptions import IceboxSetupError
from coreason_icebox.utils.logger import logger

EMPTY_TEMPLATE = "empty"

_NOT_ALLOWED = re.compile(r"[^0-9A-Za-z]+")

Template = str | Enum


def sanitize(label: str) -> str:
    """Collapse every run of non-alphanumeric characters into ``_``."""
    cleaned = _NOT_ALLOWED.sub("_", label).strip("_")
    return cleaned or "unknown"


def box_path(box_location: Path, executable: str | Path, *labels: str) -> Path:
    """Deterministic sandbox root for an executable and a calling context."""
    path = Path(box_location) / sanitize(str(executable))
    for label in labels:
        path = path / sanitize(label)
    return path


def template_name(template: Template | None) -> str | None:
    if template is None:
        return None
    if isinstance(template, Enum):
        return str(template.value)
    return template


class SandboxProvisioner:
    """
    Materializes sandbox roots, either empty or copied from a named template.
    """

    def __init__(self, template_location: Path):
        self.template_location = Path(template_location)

    def provision(self, root: Path, template: Template | None = None) -> None:
        """Clears ``root`` and recreates it from ``template``.

        Args:
            root: The sandbox root to (re)create.
            template: Template name or str-valued Enum. ``None`` or ``"empty"``
                (any case) creates an empty directory.

        Raises:
            IceboxSetupError: If the old root cannot be removed, the template
                does not exist, or the directory cannot be created or copied.
        """
        name = template_name(template)
        try:
            self._remove(root)
            if name is None or name.lower() == EMPTY_TEMPLATE:
                logger.debug(f"Creating empty icebox at {root}")
                root.mkdir(parents=True)
            else:
                source = self.find_template(name)
                logger.debug(f"Copying template {source} to {root}")
                root.parent.mkdir(parents=True, exist_ok=True)
                shutil.copytree(source, root, symlinks=True)
        except IceboxSetupError as e:
            logger.error(f"failed to set up icebox directory {root}\nError: {e}")
            raise
        except OSError as e:
            logger.error(f"failed to set up icebox directory {root}\nError: {e}")
            raise IceboxSetupError(f"Failed to set up icebox directory {root}: {e}") from e

    def find_template(self, name: str) -> Path:
        """Locate a template directory, exact name first, then case-insensitively."""
        exact = self.template_location / name
        if exact.is_dir():
            return exact
        if self.template_location.is_dir():
            for candidate in self.template_location.iterdir():
                if candidate.is_dir() and candidate.name.lower() == name.lower():
                    return candidate
        raise IceboxSetupError(f"Template {name!r} not found in {self.template_location}")

    @staticmethod
    def _remove(root: Path) -> None:
        if root.is_symlink() or root.is_file():
            root.unlink()
        elif root.exists():
            shutil.rmtree(root)
