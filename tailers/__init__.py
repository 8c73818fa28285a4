__version__ = "0.1.0"

from .config import Settings, load_settings
from .engine import Engine, run
from .errors import (
    NoSourcesError,
    PermissionDenied,
    ReadError,
    RegistrationError,
    RotationDetected,
    SinkError,
    SourceMissing,
    SourceNotFound,
    TailersError,
    WatchError,
)
from .fanin import FanIn, Producer
from .models import DetectMode, LineEvent, SourceHandle, TailerState
from .reader import LineReader, register
from .sink import PresentationSink, palette_color
from .tailer import SourceTailer

__all__ = [
    "DetectMode",
    "Engine",
    "FanIn",
    "LineEvent",
    "LineReader",
    "NoSourcesError",
    "PermissionDenied",
    "PresentationSink",
    "Producer",
    "ReadError",
    "RegistrationError",
    "RotationDetected",
    "Settings",
    "SinkError",
    "SourceHandle",
    "SourceMissing",
    "SourceNotFound",
    "SourceTailer",
    "TailersError",
    "WatchError",
    "load_settings",
    "palette_color",
    "register",
    "run",
]
