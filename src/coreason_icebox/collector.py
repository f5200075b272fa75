# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_icebox

import threading
from typing import BinaryIO

from coreason_icebox.utils.logger import logger

CHUNK_SIZE = 64 * 1024


class StreamCollector:
    """Drains one output pipe of a live child process on a background thread.

    Draining starts in the constructor. A parent that only reads after the
    child exits would otherwise deadlock once the pipe buffer fills.
    """

    def __init__(self, stream: BinaryIO, name: str = "stream"):
        self.name = name
        self._stream = stream
        self._data: bytearray | None = bytearray()
        self._error: BaseException | None = None
        self._finished = threading.Event()
        self._consumed = False
        self._thread = threading.Thread(target=self._drain, name=f"icebox-{name}", daemon=True)
        self._thread.start()

    def _drain(self) -> None:
        read = getattr(self._stream, "read1", self._stream.read)
        try:
            while True:
                chunk = read(CHUNK_SIZE)
                if not chunk:
                    break
                self._data += chunk  # type: ignore[operator]
        except (OSError, ValueError) as e:
            self._error = e
        finally:
            try:
                self._stream.close()
            except OSError:  # pragma: no cover
                pass
            self._finished.set()

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Waits for end-of-stream without consuming the data. Returns whether it was reached."""
        return self._finished.wait(timeout)

    def read(self) -> bytes:
        """Blocks until end-of-stream and returns everything collected.

        Returns:
            bytes: The complete stream contents.

        Raises:
            RuntimeError: If called more than once.
            OSError: If reading the pipe failed.
        """
        if self._consumed:
            raise RuntimeError(f"{self.name} collector has already been read")
        self._finished.wait()
        self._thread.join()
        self._consumed = True
        if self._error is not None:
            logger.error(f"Failed reading {self.name}: {self._error}")
            raise self._error
        data = bytes(self._data or b"")
        self._data = None
        logger.debug(f"Collected {len(data)} bytes from {self.name}")
        return data
