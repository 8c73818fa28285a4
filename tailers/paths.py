import os
from pathlib import Path


def tailers_home() -> Path:
    override = os.environ.get("TAILERS_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".tailers"


def config_file() -> Path:
    """Return the config path: $TAILERS_CONFIG, else config.yaml under tailers_home()."""
    override = os.environ.get("TAILERS_CONFIG")
    if override:
        return Path(override).expanduser()
    return tailers_home() / "config.yaml"
