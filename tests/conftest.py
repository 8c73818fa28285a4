import time
from pathlib import Path
from queue import Empty

import pytest

from tailers import config
from tailers.config import Settings


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Point config lookups at an empty per-test home."""
    monkeypatch.delenv("TAILERS_CONFIG", raising=False)
    monkeypatch.setenv("TAILERS_HOME", str(tmp_path / "home"))
    config.clear_cache()
    yield
    config.clear_cache()


@pytest.fixture
def logs(tmp_path) -> Path:
    d = tmp_path / "logs"
    d.mkdir()
    return d


@pytest.fixture
def poll_settings() -> Settings:
    return Settings(
        mode="poll", poll_interval=0.02, wake_interval=0.05, rotate_grace=0.2, queue_size=0
    )


@pytest.fixture
def append():
    def _append(path: Path, text: str) -> None:
        with open(path, "a") as f:
            f.write(text)
            f.flush()

    return _append


@pytest.fixture
def collect():
    """Read up to `n` events from a FanIn, giving up after `timeout` seconds."""

    def _collect(fanin, n: int, timeout: float = 5.0) -> list:
        events = []
        deadline = time.monotonic() + timeout
        while len(events) < n:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                event = fanin.get(timeout=remaining)
            except Empty:
                break
            if event is None:
                break
            events.append(event)
        return events

    return _collect


@pytest.fixture
def wait_until():
    def _wait_until(predicate, timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.01)
        return predicate()

    return _wait_until
