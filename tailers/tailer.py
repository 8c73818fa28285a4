"""One thread per tailed file: wait for a change, drain lines, publish."""

import logging
import threading

from .detect import PollDetector, PushDetector
from .errors import ReadError, RotationDetected, SourceMissing, WatchError
from .fanin import Producer
from .models import LineEvent, SourceHandle, TailerState
from .reader import LineReader

log = logging.getLogger(__name__)


class SourceTailer:
    """Binds one SourceHandle to its reader, detector and channel producer.

    Nothing outside the tailer's own thread touches these once started.
    The tailer ends on a read error, a watch failure or the shared stop
    event, and never restarts itself. A removed path that is recreated
    within the detector's grace period counts as a rotation.
    """

    def __init__(
        self,
        handle: SourceHandle,
        detector: PushDetector | PollDetector,
        producer: Producer,
        stop: threading.Event,
    ):
        self.handle = handle
        self.reader = LineReader(handle)
        self.detector = detector
        self.producer = producer
        self.stop = stop
        self.state = TailerState.REGISTERED
        self.error: Exception | None = None
        self.rotations = 0
        self._path = str(handle.path)
        self._thread = threading.Thread(
            target=self._run, name=f"tailer-{handle.index}", daemon=True
        )

    @property
    def index(self) -> int:
        return self.handle.index

    @property
    def alive(self) -> bool:
        return self._thread.is_alive()

    def start(self) -> None:
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        if self._thread.ident is None:
            # Never started: release the file and producer here.
            if self.state is not TailerState.TERMINATED:
                self._shutdown()
            return
        self._thread.join(timeout)

    def _run(self) -> None:
        log.debug(f"Tailer {self.index} starting on {self._path} ({self.detector.mode.value})")
        try:
            self.detector.arm()
            self.state = TailerState.WATCHING
            # Bytes appended between registration and arming.
            pending = True
            while not self.stop.is_set():
                try:
                    if pending or self.detector.wait(self.stop):
                        pending = False
                        self.drain()
                except SourceMissing:
                    # Move-then-create rotation leaves the path missing for a moment.
                    if not self.detector.await_recreate(self.stop):
                        raise
                    self.rotations += 1
                    log.warning(f"{self._path} was recreated; reading it again from the start")
                    self.reader.reopen()
                    pending = True
        except (ReadError, WatchError) as e:
            self.error = e
            log.warning(f"Stopped tailing {self._path}: {e}")
        finally:
            self._shutdown()

    def drain(self) -> int:
        """Publish every complete line available now. Returns the count."""
        self.state = TailerState.DRAINING
        sent = 0
        while not self.stop.is_set():
            try:
                lines = self.reader.pull()
            except RotationDetected as e:
                self.rotations += 1
                log.warning(f"{e}; reading {self._path} again from the start")
                self.reader.reopen()
                continue
            if not lines:
                if self.reader.backlog:
                    continue
                break
            for text in lines:
                event = LineEvent(source_index=self.index, path=self._path, text=text)
                if not self.producer.publish(event, self.stop):
                    return sent
                sent += 1
        if sent:
            log.debug(f"Tailer {self.index} drained {sent} lines")
        self.state = TailerState.IDLE
        return sent

    def _shutdown(self) -> None:
        try:
            self.detector.close()
            self.reader.close()
        finally:
            self.producer.close()
            self.state = TailerState.TERMINATED
            log.debug(f"Tailer {self.index} terminated")
