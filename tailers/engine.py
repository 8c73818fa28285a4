"""Wire registered files, tailer threads, the fan-in channel and a sink together."""

import logging
import threading
from collections.abc import Iterable, Iterator
from pathlib import Path

from .config import Settings
from .detect import make_detector
from .errors import NoSourcesError, RegistrationError
from .fanin import FanIn
from .models import LineEvent, SourceHandle
from .reader import register
from .sink import PresentationSink
from .tailer import SourceTailer

log = logging.getLogger(__name__)

STOP_TIMEOUT_SECONDS = 2.0


class Engine:
    """Owns every tailer and the channel they publish into.

    Register files first, then `start()`, then consume `events()` from a
    single thread. `stop()` signals every tailer and waits for them.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()
        self.fanin = FanIn(maxsize=self.settings.queue_size)
        self.stop_event = threading.Event()
        self.tailers: list[SourceTailer] = []
        self.started = False

    def register(self, path: str | Path) -> SourceHandle:
        """Open `path` from its end and attach a tailer under the next index.

        Raises RegistrationError (SourceNotFound, PermissionDenied) if the
        file cannot be opened; nothing is attached in that case.
        """
        if self.started:
            raise RuntimeError("Cannot register after start")
        handle = register(path, len(self.tailers))
        detector = make_detector(
            self.settings.mode,
            handle.path,
            poll_interval=self.settings.poll_interval,
            wake_interval=self.settings.wake_interval,
            rotate_grace=self.settings.rotate_grace,
        )
        producer = self.fanin.connect(name=f"tailer-{handle.index}")
        self.tailers.append(SourceTailer(handle, detector, producer, self.stop_event))
        return handle

    def start(self) -> None:
        if not self.tailers:
            raise NoSourcesError("No files registered")
        if self.started:
            return
        self.started = True
        for tailer in self.tailers:
            tailer.start()
        log.info(f"Watching {len(self.tailers)} sources ({self.settings.mode})")

    @property
    def alive(self) -> list[SourceTailer]:
        return [t for t in self.tailers if t.alive]

    def events(self) -> Iterator[LineEvent]:
        """Events in arrival order until every tailer has terminated."""
        return iter(self.fanin)

    def stop(self, timeout: float = STOP_TIMEOUT_SECONDS) -> None:
        self.stop_event.set()
        for tailer in self.tailers:
            tailer.join(timeout)
        stuck = self.alive
        if stuck:
            log.warning(f"{len(stuck)} tailers did not stop within {timeout}s")


def run(paths: Iterable[str | Path], settings: Settings, sink: PresentationSink) -> int:
    """Tail `paths` into `sink` until interrupted or every source is gone.

    Registration errors propagate unless `settings.skip_missing` is set, in
    which case they are logged and the file is skipped. SinkError
    propagates after all tailers are stopped.
    """
    engine = Engine(settings)
    for path in paths:
        try:
            handle = engine.register(path)
        except RegistrationError as e:
            if not settings.skip_missing:
                engine.stop()
                raise
            log.warning(f"Skipping {e}")
            continue
        sink.assign(handle.index)

    engine.start()
    try:
        for event in engine.events():
            sink.consume(event)
    except KeyboardInterrupt:
        log.info("Interrupted")
    finally:
        engine.stop()

    failed = [t for t in engine.tailers if t.error is not None]
    if failed and len(failed) == len(engine.tailers):
        log.warning("Every source stopped")
    return 0
