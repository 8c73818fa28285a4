from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import BinaryIO


class TailerState(str, Enum):
    REGISTERED = "registered"
    WATCHING = "watching"
    DRAINING = "draining"
    IDLE = "idle"
    TERMINATED = "terminated"


class DetectMode(str, Enum):
    PUSH = "push"
    POLL = "poll"


@dataclass
class SourceHandle:
    """One tailed file.

    `cursor` is the offset of the first byte not yet delivered as a line.
    The handle and its stream belong to a single tailer.
    """

    path: Path
    index: int
    cursor: int = 0
    stream: BinaryIO | None = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class LineEvent:
    source_index: int
    path: str
    text: str
    emitted_at: datetime | None = None
