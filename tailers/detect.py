"""Change detection: when might a tailed file have new bytes?

Two strategies share one interface (arm, wait, close):

- PushDetector subscribes to watchdog notifications on the file's directory.
- PollDetector compares the file's size and inode on a fixed interval.

`wait(stop)` returns True when the reader should be drained and False when it
timed out or `stop` is set. A True that turns out to carry no new bytes is
fine; the reader just returns no lines.
"""

import logging
import os
import threading
import time
from pathlib import Path
from queue import Empty, Queue

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .errors import ReadError, SourceMissing, WatchError
from .models import DetectMode

log = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 0.25
WAKE_INTERVAL_SECONDS = 0.5
ROTATE_GRACE_SECONDS = 1.0


def _normalize(path) -> str:
    return os.path.realpath(os.fsdecode(path))


def _await_path(path: Path, grace: float, pause) -> bool:
    """True once `path` exists again, False if `grace` runs out or `pause` says stop.

    `pause(timeout)` blocks for up to `timeout` seconds and returns True to stop.
    """
    deadline = time.monotonic() + grace
    while True:
        if path.exists():
            return True
        remaining = deadline - time.monotonic()
        if remaining <= 0 or pause(remaining):
            return path.exists()


class TargetFileHandler(FileSystemEventHandler):
    """Forward events touching one file to a wake queue."""

    def __init__(self, target: str, wakes: Queue):
        self.target = target
        self.wakes = wakes

    def _matches(self, event: FileSystemEvent) -> bool:
        if event.is_directory:
            return False
        if _normalize(event.src_path) == self.target:
            return True
        dest = getattr(event, "dest_path", None)
        return bool(dest) and _normalize(dest) == self.target

    def on_modified(self, event):
        if self._matches(event):
            self.wakes.put(event.event_type)

    def on_created(self, event):
        if self._matches(event):
            self.wakes.put(event.event_type)

    def on_deleted(self, event):
        if self._matches(event):
            self.wakes.put(event.event_type)

    def on_moved(self, event):
        if self._matches(event):
            self.wakes.put(event.event_type)


class PushDetector:
    mode = DetectMode.PUSH

    def __init__(
        self,
        path: Path,
        wake_interval: float = WAKE_INTERVAL_SECONDS,
        rotate_grace: float = ROTATE_GRACE_SECONDS,
    ):
        self.path = Path(path)
        self.wake_interval = wake_interval
        self.rotate_grace = rotate_grace
        self._target = _normalize(self.path)
        self._wakes: Queue = Queue()
        self._observer = None

    def arm(self) -> None:
        observer = Observer()
        handler = TargetFileHandler(self._target, self._wakes)
        try:
            observer.schedule(handler, os.path.dirname(self._target), recursive=False)
            observer.start()
        except OSError as e:
            raise WatchError(f"Cannot watch {self.path}: {e}") from e
        self._observer = observer
        log.debug(f"Watching {os.path.dirname(self._target)} for {self.path.name}")

    def wait(self, stop: threading.Event) -> bool:
        if stop.is_set():
            return False
        try:
            kind = self._wakes.get(timeout=self.wake_interval)
        except Empty:
            if not stop.is_set() and self._observer is not None and not self._observer.is_alive():
                raise WatchError(f"Notification channel for {self.path} closed") from None
            return False

        coalesced = 1
        while True:
            try:
                self._wakes.get_nowait()
            except Empty:
                break
            coalesced += 1
        log.debug(f"{self.path}: {kind} ({coalesced} notifications)")
        return not stop.is_set()

    def await_recreate(self, stop: threading.Event) -> bool:
        """After a move or delete, wait for a file to be created at the path."""

        def pause(remaining: float) -> bool:
            try:
                self._wakes.get(timeout=min(remaining, self.wake_interval))
            except Empty:
                pass
            return stop.is_set()

        return _await_path(self.path, self.rotate_grace, pause)

    def close(self) -> None:
        observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        if observer.is_alive() and observer is not threading.current_thread():
            observer.join(timeout=self.wake_interval * 4)


class PollDetector:
    mode = DetectMode.POLL

    def __init__(
        self,
        path: Path,
        interval: float = POLL_INTERVAL_SECONDS,
        rotate_grace: float = ROTATE_GRACE_SECONDS,
    ):
        self.path = Path(path)
        self.interval = interval
        self.rotate_grace = rotate_grace
        self._last: tuple[int, int] | None = None

    def _observe(self) -> tuple[int, int]:
        try:
            st = os.stat(self.path)
        except FileNotFoundError as e:
            raise SourceMissing(f"{self.path} was removed") from e
        except OSError as e:
            raise ReadError(f"Cannot stat {self.path}: {e}") from e
        return st.st_size, st.st_ino

    def arm(self) -> None:
        self._last = self._observe()

    def wait(self, stop: threading.Event) -> bool:
        if stop.wait(self.interval):
            return False

        current = self._observe()
        last, self._last = self._last, current
        if last is None or current == last:
            return False

        size, ino = current
        last_size, last_ino = last
        if ino != last_ino:
            log.warning(f"{self.path} was replaced")
        elif size < last_size:
            log.warning(f"{self.path} shrank from {last_size} to {size} bytes")
        return True

    def await_recreate(self, stop: threading.Event) -> bool:
        """Give a removed file up to `rotate_grace` seconds to reappear."""
        found = _await_path(
            self.path, self.rotate_grace, lambda remaining: stop.wait(min(remaining, self.interval))
        )
        if not found:
            return False
        try:
            self._last = self._observe()
        except SourceMissing:
            return False
        return True

    def close(self) -> None:
        pass


def make_detector(
    mode: DetectMode | str,
    path: Path,
    poll_interval: float = POLL_INTERVAL_SECONDS,
    wake_interval: float = WAKE_INTERVAL_SECONDS,
    rotate_grace: float = ROTATE_GRACE_SECONDS,
) -> PushDetector | PollDetector:
    mode = DetectMode(mode)
    if mode is DetectMode.POLL:
        return PollDetector(path, interval=poll_interval, rotate_grace=rotate_grace)
    return PushDetector(path, wake_interval=wake_interval, rotate_grace=rotate_grace)
