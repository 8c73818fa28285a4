"""Render aggregated events to a terminal stream, one line per event."""

import colorsys
import dataclasses
import logging
import sys
from collections.abc import Callable
from datetime import datetime, timezone
from typing import TextIO

import typer

from .errors import SinkError
from .models import LineEvent

log = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f UTC"

# Golden-ratio hue steps keep neighbouring indices visually apart.
HUE_STEP = 0.618033988749895
SATURATION = 0.6
VALUE = 0.95

BASIC_COLORS = (
    "cyan",
    "magenta",
    "yellow",
    "green",
    "blue",
    "red",
    "bright_cyan",
    "bright_magenta",
    "bright_yellow",
    "bright_green",
    "bright_blue",
    "bright_red",
)

PALETTES = ("rgb", "basic")
COLOR_MODES = {"auto": None, "always": True, "never": False}

Color = str | tuple[int, int, int]


def palette_color(index: int, palette: str = "rgb") -> Color:
    """Fixed color for a source index."""
    if palette == "basic":
        return BASIC_COLORS[index % len(BASIC_COLORS)]
    if palette != "rgb":
        raise ValueError(f"Unknown palette: {palette}")
    hue = (index * HUE_STEP) % 1.0
    r, g, b = colorsys.hsv_to_rgb(hue, SATURATION, VALUE)
    return (round(r * 255), round(g * 255), round(b * 255))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PresentationSink:
    """Serial writer for LineEvents.

    Each consumed event is stamped with the consumption time and written as
    `<timestamp> [<path>]: <text>`, the path colored per source index.
    """

    def __init__(
        self,
        stream: TextIO | None = None,
        palette: str = "rgb",
        color: str = "auto",
        timestamp_format: str = TIMESTAMP_FORMAT,
        clock: Callable[[], datetime] = utc_now,
    ):
        if palette not in PALETTES:
            raise ValueError(f"Unknown palette: {palette}")
        if color not in COLOR_MODES:
            raise ValueError(f"Unknown color mode: {color}")
        self.stream = stream
        self.palette = palette
        self.color = COLOR_MODES[color]
        self.timestamp_format = timestamp_format
        self.clock = clock
        self.colors: dict[int, Color] = {}
        self.written = 0

    def assign(self, index: int) -> Color:
        if index not in self.colors:
            self.colors[index] = palette_color(index, self.palette)
        return self.colors[index]

    def format(self, event: LineEvent) -> str:
        stamp = event.emitted_at.strftime(self.timestamp_format) if event.emitted_at else "-"
        path = typer.style(event.path, fg=self.assign(event.source_index))
        return f"{stamp} [{path}]: {event.text.rstrip()}"

    def consume(self, event: LineEvent) -> LineEvent:
        stamped = dataclasses.replace(event, emitted_at=self.clock())
        line = self.format(stamped)
        stream = self.stream if self.stream is not None else sys.stdout
        try:
            typer.echo(line, file=stream, color=self.color)
            stream.flush()
        except (OSError, ValueError) as e:
            log.error(f"Output stream failed: {e}")
            raise SinkError(f"Cannot write output: {e}") from e
        self.written += 1
        return stamped
