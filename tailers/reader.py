"""Incremental line extraction from a growing file."""

import logging
import os
from pathlib import Path

from .errors import (
    PermissionDenied,
    ReadError,
    RegistrationError,
    RotationDetected,
    SourceMissing,
    SourceNotFound,
)
from .models import SourceHandle

log = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
MAX_PULL = 1024 * 1024


def register(path: str | Path, index: int) -> SourceHandle:
    """Open `path` for tailing from its current end.

    Raises SourceNotFound or PermissionDenied when the file cannot be opened.
    """
    path = Path(path)
    try:
        stream = open(path, "rb")
    except FileNotFoundError as e:
        raise SourceNotFound(path) from e
    except PermissionError as e:
        raise PermissionDenied(path) from e
    except OSError as e:
        raise RegistrationError(path, e.strerror or str(e)) from e

    end = stream.seek(0, os.SEEK_END)
    log.info(f"Registered [{index}] {path} at offset {end}")
    return SourceHandle(path=path, index=index, cursor=end, stream=stream)


class LineReader:
    """Pull complete lines from a SourceHandle.

    Bytes after the last newline stay buffered until a later pull completes
    the line, so `handle.cursor` only ever covers delivered lines.
    """

    def __init__(
        self, handle: SourceHandle, chunk_size: int = CHUNK_SIZE, max_pull: int = MAX_PULL
    ):
        if handle.stream is None:
            raise ValueError(f"Handle for {handle.path} has no open stream")
        self.handle = handle
        self.chunk_size = chunk_size
        # Upper bound on bytes read by one pull; a backlog is drained over several pulls.
        self.max_pull = max_pull
        self.backlog = False
        self._partial = bytearray()

    @property
    def position(self) -> int:
        """Offset of the next byte to read from the stream."""
        return self.handle.cursor + len(self._partial)

    def pull(self) -> list[str]:
        """Return the complete lines appended since the last pull.

        An empty list means no new complete line. When a pull stops at
        `max_pull` before reaching the end of the file, `backlog` is set and
        the caller should pull again. Raises SourceMissing if the path is
        gone, ReadError if it is unreadable and RotationDetected if it was
        truncated or replaced.
        """
        stream = self.handle.stream
        if stream is None:
            raise ReadError(f"{self.handle.path} is closed")

        lines: list[str] = []
        consumed = 0
        self.backlog = False
        try:
            stream.seek(self.position)
            while True:
                if consumed >= self.max_pull:
                    self.backlog = True
                    break
                chunk = stream.read(self.chunk_size)
                if not chunk:
                    break
                consumed += len(chunk)
                lines.extend(self._split(chunk))
        except OSError as e:
            raise ReadError(f"Read failed on {self.handle.path}: {e}") from e

        if not lines and not self.backlog:
            self._check_identity()
        return lines

    def reopen(self) -> None:
        """Start over from offset 0 of whatever file is now at the path."""
        self.close()
        try:
            self.handle.stream = open(self.handle.path, "rb")
        except OSError as e:
            raise ReadError(f"Cannot reopen {self.handle.path}: {e}") from e
        if self._partial:
            log.debug(f"Dropping {len(self._partial)} unterminated bytes from {self.handle.path}")
        self._partial.clear()
        self.backlog = False
        self.handle.cursor = 0

    def close(self) -> None:
        if self.handle.stream is not None:
            self.handle.stream.close()
            self.handle.stream = None

    def _split(self, chunk: bytes) -> list[str]:
        lines = []
        start = 0
        while True:
            end = chunk.find(b"\n", start)
            if end < 0:
                break
            if self._partial:
                self._partial += chunk[start:end]
                raw = bytes(self._partial)
                self._partial.clear()
            else:
                raw = chunk[start:end]
            self.handle.cursor += len(raw) + 1
            lines.append(raw.decode("utf-8", errors="replace"))
            start = end + 1
        self._partial += chunk[start:]
        return lines

    def _check_identity(self) -> None:
        path = self.handle.path
        try:
            current = os.stat(path)
            opened = os.fstat(self.handle.stream.fileno())
        except FileNotFoundError as e:
            raise SourceMissing(f"{path} was removed") from e
        except OSError as e:
            raise ReadError(f"Cannot stat {path}: {e}") from e

        if (current.st_ino, current.st_dev) != (opened.st_ino, opened.st_dev):
            raise RotationDetected(path, "was replaced")
        if opened.st_size < self.position:
            raise RotationDetected(path, f"was truncated to {opened.st_size} bytes")
