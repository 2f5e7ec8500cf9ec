"""TOML persistence for polygraph configuration files."""

from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional

import toml

from .config import (
    CONFIG_FILE,
    DEFAULT_ARCHITECTURE_MIN_CONFIDENCE,
    DEFAULT_LAYER_RULES,
    DEFAULT_MAX_FILE_BYTES,
    Thresholds,
)

logger = logging.getLogger(__name__)


def default_config() -> Dict[str, Any]:
    """Return the built-in settings as a TOML-ready document."""
    return {
        "analysis": {
            "max_file_bytes": DEFAULT_MAX_FILE_BYTES,
            "default_layer": "data",
            "skip_dirs": [],
        },
        "thresholds": asdict(Thresholds()),
        "security": {"enabled": True},
        "architecture": {"enabled": True, "min_confidence": DEFAULT_ARCHITECTURE_MIN_CONFIDENCE},
        "layers": {prefix: layer.value for prefix, layer in DEFAULT_LAYER_RULES},
    }


def load_full_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load an entire TOML config (all sections).

    Returns an empty dict when the file does not exist or cannot be parsed.
    """
    path = path or CONFIG_FILE
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (toml.TomlDecodeError, OSError) as exc:
        logger.warning("Could not read config %s: %s", path, exc)
        return {}


def save_full_config(config: Dict[str, Any], path: Optional[Path] = None) -> Path:
    """Write the entire config dict to a TOML file, creating parent dirs."""
    path = path or CONFIG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        toml.dump(config, f)
    return path


def init_config(path: Optional[Path] = None, overwrite: bool = False) -> Path:
    """Write the default config unless a file already exists."""
    path = path or CONFIG_FILE
    if path.exists() and not overwrite:
        raise FileExistsError(f"Config already exists at {path}")
    return save_full_config(default_config(), path)
