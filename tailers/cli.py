import logging
import sys
from functools import wraps
from pathlib import Path

import typer
from click.exceptions import Exit

from . import __version__, config, engine
from .errors import NoSourcesError, RegistrationError, SinkError
from .models import DetectMode
from .sink import PresentationSink

LOG_FORMAT = "[tailers] %(levelname)s %(name)s: %(message)s"

app = typer.Typer(add_completion=False)


def error_feedback(f):
    """Report startup and output failures as one line on stderr, then exit 1."""

    @wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except (SystemExit, Exit):
            raise
        except NoSourcesError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1) from e
        except RegistrationError as e:
            typer.echo(f"Cannot tail {e}", err=True)
            raise typer.Exit(1) from e
        except SinkError as e:
            typer.echo(f"Output error: {e}", err=True)
            raise typer.Exit(1) from e
        except ValueError as e:
            typer.echo(f"Invalid configuration: {e}", err=True)
            raise typer.Exit(1) from e
        except OSError as e:
            typer.echo(f"File error: {e}", err=True)
            raise typer.Exit(1) from e
        except Exception as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1) from e

    return wrapper


def setup_logging(level: int) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)
    logging.getLogger("tailers").setLevel(level)


def _version_callback(value: bool):
    if value:
        typer.echo(f"tailers {__version__}")
        raise typer.Exit()


@app.command()
@error_feedback
def tail(
    paths: list[Path] = typer.Argument(None, help="Files to tail."),
    files: list[Path] = typer.Option([], "--file", "-f", help="File to tail (repeatable)."),
    mode: DetectMode = typer.Option(
        None, "--mode", "-m", help="Change detection: push (filesystem events) or poll."
    ),
    poll: bool = typer.Option(False, "--poll", help="Shorthand for --mode poll."),
    push: bool = typer.Option(False, "--push", help="Shorthand for --mode push."),
    interval: float = typer.Option(None, "--interval", help="Poll interval in seconds."),
    queue_size: int = typer.Option(
        None, "--queue-size", help="Lines buffered before tailers block (0 = unbounded)."
    ),
    color: str = typer.Option(None, "--color", help="auto, always or never."),
    palette: str = typer.Option(None, "--palette", help="rgb or basic."),
    skip_missing: bool = typer.Option(
        False, "--skip-missing", help="Report and skip files that cannot be opened."
    ),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="-v info, -vv debug."),
    config_path: Path = typer.Option(None, "--config", help="YAML config file."),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version."
    ),
):
    """Follow several growing files and print their new lines as one stream."""
    if poll and push:
        raise ValueError("--poll and --push cannot be combined")
    if poll:
        mode = DetectMode.POLL
    elif push:
        mode = DetectMode.PUSH
    settings = config.load_settings(
        config_path,
        mode=mode.value if mode else None,
        poll_interval=interval,
        queue_size=queue_size,
        color=color,
        palette=palette,
        skip_missing=True if skip_missing else None,
    )

    level = settings.level
    if verbose:
        level = logging.DEBUG if verbose > 1 else min(level, logging.INFO)
    setup_logging(level)

    targets = list(paths or []) + list(files)
    if not targets:
        raise NoSourcesError("No files given; pass paths or -f FILE")

    sink = PresentationSink(
        palette=settings.palette,
        color=settings.color,
        timestamp_format=settings.timestamp_format,
    )
    engine.run(targets, settings, sink)


def main() -> None:
    """Entry point for the tailers command."""
    try:
        app()
    except SystemExit:
        raise
    except BaseException as e:
        raise SystemExit(1) from e
