"""Engine configuration: defaults merged with an optional ``notecalc.yaml``."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from notecalc.formatting import DEFAULT_PRECISION, clamp_precision

CONFIG_FILENAME = "notecalc.yaml"

DEFAULT_MAX_ITERATIONS = 10

DEFAULT_CONFIG = {
    "precision": DEFAULT_PRECISION,
    "max_iterations": DEFAULT_MAX_ITERATIONS,
    "logging_fsync": False,
    "logging_tail_bytes": 2_097_152,  # 2 MB
}

DEFAULT_CONFIG_YAML = """\
# notecalc engine configuration
engine:
  precision: 2         # decimal digits shown, clamped to 0-15
  max_iterations: 10   # fixed-point passes per document
# logging_fsync: false
"""


class ConfigError(ValueError):
    """The configuration file exists but cannot be used."""


def _flatten_engine_block(user_config: dict[str, Any]) -> dict[str, Any]:
    """Flatten a nested ``engine:`` block into flat config keys.

    Supports::

        engine:
          precision: 3
          max_iterations: 20

    which maps to ``precision`` and ``max_iterations``.  Flat keys given
    alongside the block win.
    """
    engine = user_config.pop("engine", None)
    if not isinstance(engine, dict):
        return user_config
    merged = dict(engine)
    merged.update(user_config)
    return merged


def load_config(project_dir: Path) -> dict[str, Any]:
    """Load configuration from ``notecalc.yaml``, with defaults.

    Args:
        project_dir: Directory that may hold ``notecalc.yaml``.

    Returns:
        Merged configuration dict.

    Raises:
        ConfigError: If the file is not valid YAML or not a mapping.
    """
    config = dict(DEFAULT_CONFIG)
    config_path = Path(project_dir) / CONFIG_FILENAME
    if config_path.exists():
        try:
            user_config = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
        if not isinstance(user_config, dict):
            raise ConfigError(f"{config_path} must contain a mapping")
        config.update(_flatten_engine_block(user_config))
    return config


def engine_settings(config: dict[str, Any]) -> tuple[int, int]:
    """Return the validated ``(precision, max_iterations)`` pair.

    Precision is clamped to ``[0, 15]``; ``max_iterations`` must be at
    least 1.

    Raises:
        ConfigError: If either value is not an integer.
    """
    try:
        precision = clamp_precision(int(config.get("precision", DEFAULT_PRECISION)))
        max_iterations = int(config.get("max_iterations", DEFAULT_MAX_ITERATIONS))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"precision and max_iterations must be integers: {exc}") from exc
    if max_iterations < 1:
        raise ConfigError("max_iterations must be at least 1")
    return precision, max_iterations


def write_default_config(project_dir: Path) -> Path:
    """Write a commented ``notecalc.yaml`` into *project_dir*.

    Raises:
        FileExistsError: If the file already exists.
    """
    path = Path(project_dir) / CONFIG_FILENAME
    if path.exists():
        raise FileExistsError(f"{CONFIG_FILENAME} already exists in {project_dir}")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_CONFIG_YAML, encoding="utf-8")
    return path
