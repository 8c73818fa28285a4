"""Many producers, one consumer: the channel every tailer publishes into."""

import logging
import threading
import time
from collections.abc import Iterator
from queue import Empty, Full, Queue

from .models import LineEvent

log = logging.getLogger(__name__)

QUEUE_SIZE = 1024
PUBLISH_RETRY_SECONDS = 0.1
CLOSE_CHECK_SECONDS = 0.25

_CLOSED = object()


class Producer:
    """Sending side held by one tailer."""

    def __init__(self, fanin: "FanIn", name: str):
        self._fanin = fanin
        self.name = name
        self.closed = False
        self.published = 0

    def publish(self, event: LineEvent, stop: threading.Event | None = None) -> bool:
        """Enqueue `event`, blocking while the channel is full.

        Returns False only if `stop` was set before the event could be
        enqueued; nothing is dropped otherwise.
        """
        if self.closed:
            raise RuntimeError(f"Producer {self.name} is closed")
        queue = self._fanin._queue
        while True:
            try:
                queue.put(event, timeout=PUBLISH_RETRY_SECONDS)
            except Full:
                if stop is not None and stop.is_set():
                    log.debug(f"{self.name}: shutdown while blocked on a full channel")
                    return False
                continue
            self.published += 1
            return True

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._fanin._disconnect(self)


class FanIn:
    """Ordered channel fed by N producers and read by a single consumer.

    Events from one producer arrive in the order they were published.
    The channel reports end-of-stream only after every producer closed.
    """

    def __init__(self, maxsize: int = QUEUE_SIZE):
        self._queue: Queue = Queue(maxsize=maxsize)
        self._lock = threading.Lock()
        self._producers = 0
        self._connected = 0
        self._closed = False

    @property
    def producers(self) -> int:
        return self._producers

    @property
    def closed(self) -> bool:
        return self._closed

    def connect(self, name: str | None = None) -> Producer:
        with self._lock:
            if self._connected and not self._producers:
                raise RuntimeError("Channel already closed")
            self._producers += 1
            self._connected += 1
            return Producer(self, name or f"producer-{self._connected - 1}")

    def _disconnect(self, producer: Producer) -> None:
        with self._lock:
            self._producers -= 1
            remaining = self._producers
        log.debug(f"{producer.name} disconnected after {producer.published} events, {remaining} left")
        if remaining == 0:
            try:
                self._queue.put_nowait(_CLOSED)
            except Full:
                # The consumer notices closure from the producer count once it drains.
                pass

    def _exhausted(self) -> bool:
        with self._lock:
            return self._connected > 0 and self._producers == 0

    def get(self, timeout: float | None = None) -> LineEvent | None:
        """Next event, or None once every producer has closed.

        Raises queue.Empty when `timeout` elapses first.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while not self._closed:
            wait = CLOSE_CHECK_SECONDS
            if deadline is not None:
                wait = min(wait, max(deadline - time.monotonic(), 0))
            try:
                item = self._queue.get(timeout=wait)
            except Empty:
                # Every publish precedes its producer's close, so empty + no producers is final.
                if self._exhausted() and self._queue.empty():
                    self._closed = True
                    break
                if deadline is not None and time.monotonic() >= deadline:
                    raise
                continue
            if item is _CLOSED:
                self._closed = True
                break
            return item
        return None

    def __iter__(self) -> Iterator[LineEvent]:
        while True:
            event = self.get()
            if event is None:
                return
            yield event
