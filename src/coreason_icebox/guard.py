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
import shutil
from pathlib import Path

from coreason_icebox.exceptions import IceboxSetupError, PathEscapeError
from coreason_icebox.utils.logger import logger

StrPath = str | os.PathLike[str]


def resolve(root: Path, relative: StrPath) -> Path:
    """Resolve ``relative`` against the sandbox root, refusing anything outside it.

    The joined path is fully normalised (``..`` segments collapsed, symlinks
    followed) before the containment check, so traversal through either is
    caught. The root itself is not a valid target.

    Args:
        root: The sandbox root directory.
        relative: Path relative to the root.

    Returns:
        Path: The absolute, normalised path inside the root.

    Raises:
        PathEscapeError: If the normalised path is not strictly inside the root.
    """
    base = Path(root).resolve()
    full = (base / relative).resolve()
    if not str(full).startswith(str(base) + os.sep):
        logger.error(f"Attempted to modify file outside of icebox directory: {relative} (root: {base})")
        raise PathEscapeError(base, relative)
    return full


class PathGuard:
    """File operations confined to a single sandbox root.

    Write and remove failures are fatal: they raise IceboxSetupError, since
    these calls stage a test fixture rather than exercise the program under test.
    """

    def __init__(self, root: Path):
        self.root = root

    def resolve(self, relative: StrPath) -> Path:
        return resolve(self.root, relative)

    def create_file(self, path: StrPath, contents: str | bytes) -> Path:
        """Writes ``contents`` to ``path``, creating parent directories as needed."""
        target = self.resolve(path)
        logger.debug(f"Creating file {target}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(contents, bytes):
                target.write_bytes(contents)
            else:
                # newline="" keeps embedded line endings byte-exact
                with open(target, "w", encoding="utf-8", newline="") as f:
                    f.write(contents)
        except OSError as e:
            raise _fatal(f"failed to create file {target}", e) from e
        return target

    def create_directory(self, path: StrPath) -> Path:
        target = self.resolve(path)
        logger.debug(f"Creating directory {target}")
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise _fatal(f"failed to create directory {target}", e) from e
        return target

    def remove_item(self, path: StrPath) -> None:
        """Removes a file, symlink or directory tree.

        A symlink is removed itself, never the file or tree it points at.
        """
        target = self.resolve(path)
        name = Path(path).name
        if name not in ("", ".", ".."):
            # Resolve only the parent so a trailing symlink is not followed
            base = Path(self.root).resolve()
            parent = (base / path).parent.resolve()
            if parent != base and not str(parent).startswith(str(base) + os.sep):
                raise PathEscapeError(base, path)
            target = parent / name
        logger.debug(f"Removing {target}")
        try:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            else:
                target.unlink()
        except OSError as e:
            raise _fatal(f"failed to remove {target}", e) from e


    def file_contents(self, path: StrPath) -> str | None:
        """Text contents of ``path``, or None if it is missing or not valid UTF-8."""
        data = self.file_bytes(path)
        if data is None:
            return None
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            return None

    def file_bytes(self, path: StrPath) -> bytes | None:
        target = self.resolve(path)
        try:
            return target.read_bytes()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            return None

    def file_exists(self, path: StrPath) -> bool:
        return self.resolve(path).exists()

    def list_directory(self, path: StrPath = ".") -> list[str]:
        """Sorted entry names of a directory inside the box; ``"."`` lists the root."""
        target = Path(self.root).resolve() if str(path) in ("", ".") else self.resolve(path)
        try:
            return sorted(entry.name for entry in target.iterdir())
        except FileNotFoundError:
            return []


def _fatal(message: str, error: Exception) -> IceboxSetupError:
    logger.error(f"{message}\nError: {error}")
    return IceboxSetupError(f"{message}: {error}")
