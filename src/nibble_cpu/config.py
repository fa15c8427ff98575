"""Config loader and validator.

Provides `load_config` which accepts either a path to a YAML file,
a dictionary or None and returns a normalized configuration dict
using DEFAULTS for missing values.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .state import MEMORY_SIZE, INSTRUCTION_SIZE


DEFAULTS: Dict[str, Any] = {
    "entry_point": 0,
    "max_cycles": None,
    "trace": False,
    "log_level": None,
}

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(ValueError):
    """Raised when configuration is invalid or cannot be loaded."""


def _convert_types(cfg: Dict[str, Any]) -> None:
    """Normalize types for configuration values in-place.

    Raises ConfigError on conversion failure.
    """
    try:
        cfg["entry_point"] = int(cfg["entry_point"])

        v = cfg.get("max_cycles")
        cfg["max_cycles"] = None if v is None else int(v)

        # strings must spell out true/false
        v = cfg["trace"]
        if isinstance(v, str):
            if v.lower() not in ("true", "false"):
                raise ValueError(f"trace must be true or false, got {v!r}")
            v = v.lower() == "true"
        cfg["trace"] = bool(v)

        v = cfg.get("log_level")
        cfg["log_level"] = None if v is None else str(v).upper()
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Bad types in config: {e}") from e


def _validate_cfg(cfg: Dict[str, Any]) -> None:
    """Perform semantic validation on normalized config dict.

    Raises ConfigError on invalid values.
    """
    last_fetch = MEMORY_SIZE - INSTRUCTION_SIZE
    if not 0 <= cfg["entry_point"] <= last_fetch:
        raise ConfigError(
            f"entry_point ({cfg['entry_point']}) out of memory range (0..{last_fetch})"
        )

    if cfg["max_cycles"] is not None and cfg["max_cycles"] <= 0:
        raise ConfigError("max_cycles must be positive or null")

    if cfg["log_level"] is not None and cfg["log_level"] not in LOG_LEVELS:
        raise ConfigError(
            f"log_level must be one of {', '.join(LOG_LEVELS)}, got {cfg['log_level']}"
        )


def load_config(path_or_dict: Union[str, Path, Dict[str, Any], None] = None) -> Dict[str, Any]:
    """Load and normalize configuration.

    Accepts:
      - None -> returns DEFAULTS copy
      - dict -> overlay DEFAULTS with provided dict
      - str/Path -> load YAML and overlay DEFAULTS

    Returns a normalized dict or raises ConfigError.
    """
    if path_or_dict is None:
        data: Dict[str, Any] = {}
    elif isinstance(path_or_dict, dict):
        data = path_or_dict
    elif isinstance(path_or_dict, (str, Path)):
        data = _read_yaml(Path(path_or_dict))
    else:
        raise ConfigError(f"Unsupported config input: {type(path_or_dict).__name__}")

    unknown = set(data) - set(DEFAULTS)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    cfg = dict(DEFAULTS)
    cfg.update(data)

    _convert_types(cfg)
    _validate_cfg(cfg)

    return cfg


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} does not contain a mapping")
    return data


def init_logging(level: Union[str, int] = "WARNING", stream: Optional[Any] = None) -> logging.Logger:
    """Attach a console handler to the package logger.

    Replaces any handler a previous call installed, so repeated calls
    don't duplicate output. The root logger is left alone.

    Args:
        level: Level name or number
        stream: Output stream (defaults to stderr)

    Returns:
        The configured package logger
    """
    pkg_logger = logging.getLogger("nibble_cpu")
    for h in list(pkg_logger.handlers):
        if getattr(h, "_nibble_cpu_handler", False):
            pkg_logger.removeHandler(h)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter("%(levelname)-5s %(name)s: %(message)s"))
    handler._nibble_cpu_handler = True  # type: ignore[attr-defined]
    pkg_logger.addHandler(handler)
    pkg_logger.setLevel(level.upper() if isinstance(level, str) else level)
    return pkg_logger
