"""Configuration paths and analysis defaults for polygraph."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from .models import Layer

logger = logging.getLogger(__name__)

BASE_DIR = Path(os.environ.get("POLYGRAPH_HOME", str(Path.home() / ".polygraph"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"
PROJECT_CONFIG_NAME = "polygraph.toml"

DEFAULT_MAX_FILE_BYTES = 1_000_000
DEFAULT_ARCHITECTURE_MIN_CONFIDENCE = 30

# Directories never descended into when collecting sources
SKIP_DIRS: Set[str] = {
    "__pycache__", ".git", ".hg", ".svn", "node_modules", ".venv", "venv",
    "env", ".env", ".tox", ".nox", ".mypy_cache", ".pytest_cache", ".ruff_cache",
    "dist", "build", "target", ".next", "coverage", ".idea", ".vscode",
    ".eggs", "vendor",
}

# First matching path prefix wins; unmatched files fall into ``default_layer``
DEFAULT_LAYER_RULES: List[Tuple[str, Layer]] = [
    ("src-tauri/", Layer.BACKEND),
    ("sidecar/", Layer.SIDECAR),
    ("src/", Layer.FRONTEND),
]


@dataclass
class Thresholds:
    """Limits used by the code-quality issue rules."""

    god_class_loc: int = 500
    god_class_methods: int = 20
    long_method_loc: int = 50
    high_complexity: int = 10
    deep_nesting: int = 4
    feature_envy_ratio: float = 2.0
    feature_envy_min_accesses: int = 3

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if value <= 0:
                raise ValueError(f"Threshold '{f.name}' must be positive, got {value!r}")


@dataclass
class AnalyzerConfig:
    """Runtime settings shared by the analyzer, graph passes and scanner."""

    thresholds: Thresholds = field(default_factory=Thresholds)
    layer_rules: List[Tuple[str, Layer]] = field(default_factory=lambda: list(DEFAULT_LAYER_RULES))
    default_layer: Layer = Layer.DATA
    max_workers: Optional[int] = None
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    skip_dirs: Set[str] = field(default_factory=lambda: set(SKIP_DIRS))
    security_enabled: bool = True
    architecture_enabled: bool = True
    architecture_min_confidence: int = DEFAULT_ARCHITECTURE_MIN_CONFIDENCE

    def detect_layer(self, path: str) -> Layer:
        normalized = path.replace("\\", "/")
        for prefix, layer in self.layer_rules:
            if normalized.startswith(prefix):
                return layer
        return self.default_layer


def _env_max_workers() -> Optional[int]:
    raw = os.environ.get("POLYGRAPH_MAX_WORKERS", "").strip()
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"POLYGRAPH_MAX_WORKERS must be an integer, got {raw!r}")
    return max(1, value)


def config_from_dict(data: Dict[str, Any]) -> AnalyzerConfig:
    """Build an :class:`AnalyzerConfig` from a parsed TOML document.

    Recognised sections: ``[analysis]``, ``[thresholds]``, ``[security]``,
    ``[architecture]`` and ``[layers]`` (a table of path prefix to layer name).
    """
    analysis = data.get("analysis", {})
    security = data.get("security", {})
    architecture = data.get("architecture", {})

    known = {f.name for f in fields(Thresholds)}
    threshold_values = {k: v for k, v in data.get("thresholds", {}).items() if k in known}
    unknown = set(data.get("thresholds", {})) - known
    if unknown:
        logger.warning("Ignoring unknown thresholds: %s", ", ".join(sorted(unknown)))

    layer_rules = list(DEFAULT_LAYER_RULES)
    if "layers" in data:
        try:
            layer_rules = [(prefix, Layer(name)) for prefix, name in data["layers"].items()]
        except ValueError as exc:
            raise ValueError(f"Invalid layer in [layers]: {exc}") from exc

    default_layer = Layer(analysis.get("default_layer", Layer.DATA.value))

    skip_dirs = set(SKIP_DIRS)
    skip_dirs.update(analysis.get("skip_dirs", []))

    min_confidence = int(architecture.get("min_confidence", DEFAULT_ARCHITECTURE_MIN_CONFIDENCE))
    if not 0 <= min_confidence <= 100:
        raise ValueError(f"[architecture] min_confidence must be between 0 and 100, got {min_confidence}")

    return AnalyzerConfig(
        thresholds=Thresholds(**threshold_values),
        layer_rules=layer_rules,
        default_layer=default_layer,
        max_workers=analysis.get("max_workers"),
        max_file_bytes=int(analysis.get("max_file_bytes", DEFAULT_MAX_FILE_BYTES)),
        skip_dirs=skip_dirs,
        security_enabled=bool(security.get("enabled", True)),
        architecture_enabled=bool(architecture.get("enabled", True)),
        architecture_min_confidence=min_confidence,
    )


def load_settings(
    project_root: Optional[Path] = None,
    config_path: Optional[Path] = None,
) -> AnalyzerConfig:
    """Load settings from the user config, then the project config.

    Project values override user values section by section. An explicit
    ``config_path`` replaces both. ``POLYGRAPH_MAX_WORKERS`` wins over files.
    """
    from .config_manager import load_full_config

    if config_path is not None:
        merged = load_full_config(config_path)
    else:
        merged = load_full_config(CONFIG_FILE)
        if project_root is not None:
            project_config = load_full_config(project_root / PROJECT_CONFIG_NAME)
            for section, values in project_config.items():
                if isinstance(values, dict):
                    merged.setdefault(section, {}).update(values)
                else:
                    merged[section] = values

    settings = config_from_dict(merged)
    env_workers = _env_max_workers()
    if env_workers is not None:
        settings.max_workers = env_workers
    return settings
