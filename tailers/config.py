import dataclasses
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import yaml

from . import paths
from .detect import POLL_INTERVAL_SECONDS, ROTATE_GRACE_SECONDS, WAKE_INTERVAL_SECONDS
from .fanin import QUEUE_SIZE
from .models import DetectMode
from .sink import COLOR_MODES, PALETTES, TIMESTAMP_FORMAT

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Settings:
    mode: str = DetectMode.PUSH.value
    poll_interval: float = POLL_INTERVAL_SECONDS
    wake_interval: float = WAKE_INTERVAL_SECONDS
    rotate_grace: float = ROTATE_GRACE_SECONDS
    queue_size: int = QUEUE_SIZE
    color: str = "auto"
    palette: str = "rgb"
    timestamp_format: str = TIMESTAMP_FORMAT
    skip_missing: bool = False
    log_level: str = "WARNING"

    def __post_init__(self):
        self.log_level = self.log_level.upper()

    @property
    def level(self) -> int:
        return getattr(logging, self.log_level)


def _validate_config(cfg: dict) -> None:
    """Validate config structure. Fail fast on unknown keys and bad values."""
    if not isinstance(cfg, dict):
        raise ValueError(f"Config must be a dict, got {type(cfg).__name__}")

    known = {f.name: f for f in dataclasses.fields(Settings)}
    for key, value in cfg.items():
        if key not in known:
            raise ValueError(f"Unknown config key '{key}'")
        default = known[key].default
        if isinstance(default, bool):
            if not isinstance(value, bool):
                raise ValueError(f"Config '{key}' must be true or false")
        elif isinstance(default, int):
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"Config '{key}' must be a non-negative integer")
        elif isinstance(default, float):
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                raise ValueError(f"Config '{key}' must be a non-negative number")
        elif not isinstance(value, str):
            raise ValueError(f"Config '{key}' must be a string")

    if "mode" in cfg and cfg["mode"] not in {m.value for m in DetectMode}:
        raise ValueError(f"Config 'mode' must be one of: {', '.join(m.value for m in DetectMode)}")
    if "color" in cfg and cfg["color"] not in COLOR_MODES:
        raise ValueError(f"Config 'color' must be one of: {', '.join(COLOR_MODES)}")
    if "palette" in cfg and cfg["palette"] not in PALETTES:
        raise ValueError(f"Config 'palette' must be one of: {', '.join(PALETTES)}")
    if "log_level" in cfg and str(cfg["log_level"]).upper() not in LOG_LEVELS:
        raise ValueError(f"Config 'log_level' must be one of: {', '.join(LOG_LEVELS)}")
    for key in ("poll_interval", "wake_interval"):
        if key in cfg and cfg[key] == 0:
            raise ValueError(f"Config '{key}' must be positive")


def clear_cache():
    load_config.cache_clear()


@lru_cache(maxsize=1)
def load_config(path: Path | None = None) -> dict:
    """Load the config file, returning its content or an empty dict if not found."""
    path = path or paths.config_file()
    if not path.exists():
        return {}
    with open(path) as f:
        cfg = yaml.safe_load(f) or {}
    _validate_config(cfg)
    return cfg


def load_settings(path: Path | None = None, **overrides) -> Settings:
    """Defaults, then the config file, then non-None `overrides`."""
    cfg = dict(load_config(path))
    cfg.update({k: v for k, v in overrides.items() if v is not None})
    _validate_config(cfg)
    return Settings(**cfg)
